import logging
from flask import Blueprint
from werkzeug.exceptions import HTTPException
from app.services.checkout.errors import CheckoutError, PaymentCancelled
from app.utils.responses import error

errors_bp = Blueprint("errors_bp", __name__)

@errors_bp.app_errorhandler(HTTPException)
def handle_http_exception(e):
    msg = e.description or getattr(e, "name", "HTTP Error")
    return error(msg, status=e.code, code=e.code)

@errors_bp.app_errorhandler(CheckoutError)
def handle_checkout_error(e):
    if isinstance(e, PaymentCancelled):
        return {"status": "cancelled"}, 200
    if e.status_code >= 500:
        logging.error("Checkout storage failure: %s", e)
    return error(e.public_message, status=e.status_code)

@errors_bp.app_errorhandler(Exception)
def handle_unexpected_exception(e):
    logging.exception("Unhandled exception")
    return error(
        "An unexpected error occurred. Please try again later.",
        status=500,
        code=500,
    )
