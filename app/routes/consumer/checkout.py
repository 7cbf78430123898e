import uuid

from flask import request, jsonify, current_app
from flask_limiter.util import get_remote_address
from extensions import limiter, get_payment_gateway
from app.services.checkout import (
    BuyNowRequest,
    CheckoutError,
    CheckoutOrchestrator,
    PaymentCallback,
    PaymentCoordinator,
    PaymentMethod,
    PlaceOrderInput,
    PricingEngine,
    SubmittedCallbackUI,
    ValidationError,
)
from app.services.checkout.pricing import load_cart_lines, load_product_lines
from app.schemas.checkout import PaymentOrderRequest, PlaceOrderRequest, QuoteQuery
from app.utils import ok, error, validate_schema
from . import consumer_bp

MAX_IDEMPOTENCY_KEY_LEN = 64


def _quote_for(user, buy_now):
    engine = PricingEngine.from_config(current_app.config)
    if buy_now is not None:
        lines = load_product_lines([(buy_now.product_id, buy_now.quantity)])
    else:
        lines = load_cart_lines(user.id)
    return engine.quote(lines)


def _checkout_error(e: CheckoutError, **extra):
    return error(e.public_message, status=e.status_code, **extra)


def _prefill(user):
    fields = {"name": user.name, "email": user.email, "contact": user.phone}
    return {k: v for k, v in fields.items() if v}


@consumer_bp.route("/checkout/quote", methods=["GET"])
@validate_schema(QuoteQuery, source="args")
def checkout_quote():
    """
    Price the cart, or a single buy-now product
    ---
    tags:
      - Consumer
    parameters:
      - in: query
        name: product_id
        type: integer
        required: false
      - in: query
        name: quantity
        type: integer
        required: false
    responses:
      200:
        description: Subtotal, shipping fee, total and free-shipping progress
    """
    query = request.validated_data
    buy_now = BuyNowRequest(query.product_id, query.quantity) if query.product_id else None
    try:
        quote = _quote_for(request.user, buy_now)
    except CheckoutError as e:
        return _checkout_error(e)
    return ok(quote.to_dict())


@consumer_bp.route("/checkout/payment-order", methods=["POST"])
@validate_schema(PaymentOrderRequest)
def create_payment_order():
    """
    Open a gateway payment order for the current quote
    ---
    tags:
      - Consumer
    responses:
      200:
        description: Options for the gateway checkout UI plus the attempt token
    """
    data = request.validated_data
    user = request.user
    buy_now = None
    if data.buy_now is not None:
        buy_now = BuyNowRequest(data.buy_now.product_id, data.buy_now.quantity)
    token = uuid.uuid4().hex
    coordinator = PaymentCoordinator(
        get_payment_gateway(current_app),
        currency=current_app.config.get("CHECKOUT_CURRENCY", "INR"),
    )
    try:
        quote = _quote_for(user, buy_now)
        if not quote.lines:
            return error("Your cart is empty.", status=400)
        options = coordinator.open(
            quote.total,
            receipt=f"rcpt_{token}",
            prefill=_prefill(user),
            timeout=current_app.config.get("PAYMENT_GATEWAY_TIMEOUT_SEC"),
        )
    except CheckoutError as e:
        return _checkout_error(e)
    payload = options.to_dict()
    payload["attempt_token"] = token
    payload["quote"] = quote.to_dict()
    return ok(payload)


@consumer_bp.route("/checkout/place-order", methods=["POST"])
@limiter.limit(
    lambda: current_app.config["ORDER_LIMIT_PER_IP"],
    key_func=get_remote_address,
    error_message="Too many orders from this IP",
)
@validate_schema(PlaceOrderRequest)
def place_order():
    """
    Place an order from the cart or a buy-now item
    ---
    tags:
      - Consumer
    parameters:
      - in: header
        name: Idempotency-Key
        type: string
        required: false
    responses:
      201:
        description: Order placed
      200:
        description: Payment cancelled, or an idempotent replay
    """
    data = request.validated_data
    token = (request.headers.get("Idempotency-Key") or "").strip() or None
    if token and len(token) > MAX_IDEMPOTENCY_KEY_LEN:
        return error("Idempotency-Key too long", status=400)

    try:
        method = PaymentMethod.parse(data.payment_method)
    except ValidationError as e:
        return _checkout_error(e)

    buy_now = None
    if data.buy_now is not None:
        buy_now = BuyNowRequest(data.buy_now.product_id, data.buy_now.quantity, data.buy_now.product)

    ui = None
    gateway_order_id = data.gateway_order_id
    if method is PaymentMethod.ONLINE:
        if data.payment is None:
            return error("Payment result required for online payments", status=400)
        gateway_order_id = gateway_order_id or data.payment.razorpay_order_id
        ui = SubmittedCallbackUI(PaymentCallback(
            status=data.payment.status,
            gateway_order_id=data.payment.razorpay_order_id,
            payment_id=data.payment.razorpay_payment_id,
            signature=data.payment.razorpay_signature,
            reason=data.payment.reason,
        ))

    orchestrator = CheckoutOrchestrator.from_config(current_app.config, get_payment_gateway(current_app))
    result = orchestrator.place_order(
        request.user,
        PlaceOrderInput(
            address_id=data.address_id,
            payment_method=method,
            buy_now=buy_now,
            gateway_order_id=gateway_order_id,
        ),
        ui=ui,
        token=token,
    )

    if result.cancelled:
        return jsonify({"status": "cancelled", "attempt_token": result.attempt_token}), 200
    if not result.ok:
        return _checkout_error(result.error, attempt_token=result.attempt_token)
    return ok(
        {
            "order_id": result.order_id,
            "attempt_token": result.attempt_token,
            "replayed": result.replayed,
            "total": float(result.quote.total) if result.quote else None,
        },
        message="Order placed successfully",
        status=200 if result.replayed else 201,
    )
