from flask import Blueprint, request
from app.utils.responses import ok
from app.utils import create_access_token, create_refresh_token, transactional
import logging
from models import db
from models.user import UserProfile
from models.product import Product
from models.address import Address
from models.cart import CartItem
from models.shipping import ShippingRule


test_support_bp = Blueprint("test_support_bp", __name__)


@test_support_bp.route("/__ok", methods=["GET"])
def __ok():
    return ok({"ping": "pong"})


@test_support_bp.route("/__boom", methods=["GET"])
def __boom():
    raise RuntimeError("boom")


@test_support_bp.route("/__log", methods=["GET"])
def __log():
    logging.getLogger(__name__).info("test log line")
    return ok({"logged": True})


@test_support_bp.route("/__auth/login_stub", methods=["POST"])
def __login_stub():
    j = request.get_json() or {}
    email = j.get("email", "test@example.com")
    role = j.get("role", "consumer")
    user = UserProfile.query.filter_by(email=email).first()
    if not user:
        user = UserProfile(email=email, name=j.get("name"), phone=j.get("phone"), role=role)
        with transactional("Login stub failed"):
            db.session.add(user)
    return ok({
        "user_id": user.id,
        "access": create_access_token(user.id, user.role),
        "refresh": create_refresh_token(user.id),
    })


@test_support_bp.route("/__seed/checkout", methods=["POST"])
def __seed_checkout():
    """
    Body:
    {
      "email": "c@example.com",
      "products": [{"name": "Tea", "price": 120, "cart_qty": 2}],
      "rules": [{"min_order_value": 0, "charge": 40}, {"min_order_value": 500, "charge": 0}],
      "address": true
    }
    Creates a consumer, products (added to the cart when cart_qty is set),
    shipping rules and a shipping address.
    Returns: {"user_id":..., "product_ids":[...], "address_id":...}
    """
    p = request.get_json() or {}
    email = p.get("email", "c@example.com")
    with transactional("Checkout seed failed"):
        user = UserProfile.query.filter_by(email=email).first()
        if not user:
            user = UserProfile(email=email, name="Test Consumer", phone="9999999999", role="consumer")
            db.session.add(user)
            db.session.flush()

        product_ids = []
        for spec in p.get("products", []):
            product = Product(name=spec.get("name", "Item"), price=spec.get("price", 100), is_active=True)
            db.session.add(product)
            db.session.flush()
            product_ids.append(product.id)
            if spec.get("cart_qty"):
                db.session.add(CartItem(user_id=user.id, product_id=product.id, quantity=int(spec["cart_qty"])))

        for rule in p.get("rules", []):
            db.session.add(ShippingRule(
                min_order_value=rule.get("min_order_value", 0),
                charge=rule.get("charge", 0),
                is_active=rule.get("is_active", True),
            ))

        address_id = None
        if p.get("address", True):
            address = Address(
                user_id=user.id,
                house_no="12",
                street="MG Road",
                landmark="City Mall",
                city="Pune",
                state="MH",
                postal_code="411001",
                country="India",
                mobile_number="9999999999",
                is_default=True,
            )
            db.session.add(address)
            db.session.flush()
            address_id = address.id

    return ok({"user_id": user.id, "product_ids": product_ids, "address_id": address_id})


@test_support_bp.route("/__checkout_error/<kind>", methods=["GET"])
def __checkout_error(kind):
    """Raise a checkout error so the error handlers can be exercised."""
    from app.services.checkout.errors import CheckoutError, PaymentCancelled, StorageError
    errors = {
        "storage": StorageError("Order insert failed: db exploded"),
        "cancel": PaymentCancelled(),
        "generic": CheckoutError("nope"),
    }
    raise errors[kind]
