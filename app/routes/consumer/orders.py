from flask import request
from sqlalchemy.exc import SQLAlchemyError
from models.order import Order
from app.utils import ok, error, internal_error_response
from . import consumer_bp

MAX_HISTORY = 100


@consumer_bp.route("/orders", methods=["GET"])
def order_history():
    """
    Orders placed by the caller, newest first, with their items
    ---
    tags:
      - Consumer
    parameters:
      - in: query
        name: limit
        type: integer
        required: false
    responses:
      200:
        description: Order list with items and product details
    """
    user = request.user
    limit = request.args.get("limit", default=MAX_HISTORY, type=int)
    limit = max(1, min(limit, MAX_HISTORY))
    try:
        orders = (
            Order.query.filter_by(user_id=user.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError:
        return internal_error_response()
    return ok({"orders": [o.to_dict() for o in orders]})


@consumer_bp.route("/orders/<int:order_id>", methods=["GET"])
def order_detail(order_id):
    """
    One of the caller's orders
    ---
    tags:
      - Consumer
    parameters:
      - in: path
        name: order_id
        type: integer
        required: true
    responses:
      200:
        description: Order with shipping address, totals and items
      404:
        description: No such order for this user
    """
    user = request.user
    try:
        order = Order.query.filter_by(id=order_id, user_id=user.id).first()
    except SQLAlchemyError:
        return internal_error_response()
    if not order:
        return error("Order not found", status=404)
    return ok({"order": order.to_dict()})
