from typing import List
from models import db
from models.cart import CartItem
from models.product import Product


class CartError(Exception):
    pass


class ProductNotFound(CartError):
    pass


def view_cart(user_id) -> List[CartItem]:
    return (
        CartItem.query.filter_by(user_id=user_id)
        .order_by(CartItem.added_at.asc(), CartItem.id.asc())
        .all()
    )


def add_to_cart(user_id, product_id, quantity: int = 1) -> CartItem:
    """Upsert on (user, product): the requested quantity replaces any existing one."""
    if quantity is None or int(quantity) < 1:
        raise CartError("Quantity must be at least 1")
    product = Product.query.filter_by(id=product_id, is_active=True).first()
    if not product:
        raise ProductNotFound("Product not found")
    ci = CartItem.query.filter_by(user_id=user_id, product_id=product_id).first()
    if ci:
        ci.quantity = int(quantity)
    else:
        ci = CartItem(user_id=user_id, product_id=product_id, quantity=int(quantity))
        db.session.add(ci)
    return ci


def update_quantity(user_id, product_id, quantity: int):
    """Set a new quantity; anything below 1 removes the row instead."""
    ci = CartItem.query.filter_by(user_id=user_id, product_id=product_id).first()
    if not ci:
        raise ProductNotFound("Item not in cart")
    if quantity is None or int(quantity) < 1:
        db.session.delete(ci)
        return None
    ci.quantity = int(quantity)
    return ci


def remove_item(user_id, product_id) -> bool:
    deleted = CartItem.query.filter_by(user_id=user_id, product_id=product_id).delete()
    return deleted > 0


def clear_cart(user_id) -> int:
    return CartItem.query.filter_by(user_id=user_id).delete()
