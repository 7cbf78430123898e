from flask import request, current_app
from app.services import cart as cart_service
from app.services.checkout.pricing import PricingEngine, load_cart_lines
from app.services.checkout.errors import CheckoutError
from app.schemas.cart import AddToCartRequest, UpdateCartRequest, RemoveFromCartRequest
from app.utils import transactional, ok, error, internal_error_response, validate_schema
from . import consumer_bp


@consumer_bp.route("/cart/view", methods=["GET"])
def view_cart():
    """
    View the cart with its current quote
    ---
    tags:
      - Consumer
    responses:
      200:
        description: Cart lines, subtotal, shipping fee and free-shipping progress
    """
    user = request.user
    items = cart_service.view_cart(user.id)
    try:
        quote = PricingEngine.from_config(current_app.config).quote(load_cart_lines(user.id))
    except CheckoutError as e:
        return error(e.public_message, status=e.status_code)
    return ok({
        "cart": [ci.to_dict() for ci in items],
        "quote": quote.to_dict(),
    })


@consumer_bp.route("/cart/add", methods=["POST"])
@validate_schema(AddToCartRequest)
def add_to_cart():
    """
    Add a product or replace its quantity
    ---
    tags:
      - Consumer
    """
    data = request.validated_data
    try:
        with transactional("Failed to add to cart"):
            item = cart_service.add_to_cart(request.user.id, data.product_id, data.quantity)
    except cart_service.ProductNotFound as e:
        return error(str(e), status=404)
    except cart_service.CartError as e:
        return error(str(e), status=400)
    except Exception:
        return internal_error_response()
    return ok(item.to_dict(), message="Item added to cart")


@consumer_bp.route("/cart/update", methods=["POST"])
@validate_schema(UpdateCartRequest)
def update_cart_quantity():
    """
    Change a line quantity; below 1 removes the line
    ---
    tags:
      - Consumer
    """
    data = request.validated_data
    try:
        with transactional("Failed to update cart quantity"):
            item = cart_service.update_quantity(request.user.id, data.product_id, data.quantity)
            payload = item.to_dict() if item is not None else None
    except cart_service.ProductNotFound as e:
        return error(str(e), status=404)
    except Exception:
        return internal_error_response()
    if payload is None:
        return ok(message="Item removed")
    return ok(payload, message="Cart quantity updated")


@consumer_bp.route("/cart/remove", methods=["POST"])
@validate_schema(RemoveFromCartRequest)
def remove_item():
    """
    Remove a product from the cart
    ---
    tags:
      - Consumer
    """
    data = request.validated_data
    try:
        with transactional("Failed to remove cart item"):
            removed = cart_service.remove_item(request.user.id, data.product_id)
    except Exception:
        return internal_error_response()
    if not removed:
        return error("Item not found", status=404)
    return ok(message="Item removed")


@consumer_bp.route("/cart/clear", methods=["POST"])
def clear_cart():
    """
    Empty the cart
    ---
    tags:
      - Consumer
    """
    try:
        with transactional("Failed to clear cart"):
            cart_service.clear_cart(request.user.id)
    except Exception:
        return internal_error_response()
    return ok(message="Cart cleared")
