from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import logging
import os

from app.services.checkout.payment import RazorpayGateway

# Global limiter instance used across the app
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATELIMIT_STORAGE_URL", "memory://"),
    strategy="fixed-window",
    default_limits=["200 per hour"],
)


def init_payment_gateway(app):
    """Build the configured gateway client and park it on app.extensions."""
    name = (app.config.get("PAYMENT_GATEWAY") or "disabled").lower()
    gateway = None
    if name == "razorpay":
        key_id = app.config.get("RAZORPAY_KEY_ID")
        key_secret = app.config.get("RAZORPAY_KEY_SECRET")
        if key_id and key_secret:
            gateway = RazorpayGateway(
                key_id,
                key_secret,
                base_url=app.config.get("RAZORPAY_API_BASE", "https://api.razorpay.com/v1"),
                timeout=app.config.get("PAYMENT_GATEWAY_TIMEOUT_SEC", 10),
            )
        else:
            logging.warning("Razorpay keys missing; online payments disabled")
    app.extensions["payment_gateway"] = gateway
    return gateway


def get_payment_gateway(app):
    return app.extensions.get("payment_gateway")
