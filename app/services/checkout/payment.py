"""
Payment coordination for online checkouts.

COD needs no authorization. ONLINE opens a gateway-side payment order, hands
the checkout options to an external payment UI and resolves the UI callback
into one of three outcomes: authorized, cancelled by the user, or failed.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

import requests

from .errors import PaymentCancelled, PaymentFailed
from .pricing import to_money
from .types import PaymentAuthorization, PaymentMethod

logger = logging.getLogger(__name__)

AUTHORIZED = "authorized"
CANCELLED = "cancelled"
FAILED = "failed"
PENDING = "pending"

# Razorpay rejects receipts longer than this
MAX_RECEIPT_LEN = 40


class GatewayError(Exception):
    pass


@dataclass(frozen=True)
class GatewayOrder:
    gateway_order_id: str
    amount: Decimal
    currency: str
    receipt: Optional[str] = None


@dataclass(frozen=True)
class CheckoutOptions:
    """What the external payment UI is opened with."""

    key_id: str
    gateway_order_id: str
    amount: Decimal
    currency: str
    prefill: dict

    def to_dict(self):
        return {
            "key": self.key_id,
            "order_id": self.gateway_order_id,
            "amount": to_subunits(self.amount),
            "currency": self.currency,
            "prefill": self.prefill,
        }


@dataclass(frozen=True)
class PaymentCallback:
    status: str  # authorized, cancelled, failed
    gateway_order_id: Optional[str] = None
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    reason: Optional[str] = None


class PaymentGateway(Protocol):
    key_id: str

    def create_order(self, amount: Decimal, currency: str, receipt: str, timeout=None) -> GatewayOrder: ...

    def fetch_order(self, gateway_order_id: str, timeout=None) -> GatewayOrder: ...

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool: ...


class PaymentUI(Protocol):
    def present(self, options: CheckoutOptions, timeout: Optional[float] = None) -> PaymentCallback: ...


def to_subunits(amount) -> int:
    return int((to_money(amount) * 100).to_integral_value())


def from_subunits(value) -> Decimal:
    return to_money(Decimal(int(value)) / 100)


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str, base_url: str = "https://api.razorpay.com/v1",
                 timeout: float = 10, session: Optional[requests.Session] = None):
        self.key_id = key_id
        self._key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (key_id, key_secret)

    def _request(self, method: str, path: str, timeout=None, **kwargs) -> dict:
        try:
            resp = self.session.request(
                method, f"{self.base_url}{path}", timeout=timeout or self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise GatewayError(f"Payment gateway unreachable: {e}") from e
        if resp.status_code >= 400:
            try:
                description = resp.json().get("error", {}).get("description")
            except ValueError:
                description = None
            raise GatewayError(description or f"Payment gateway error ({resp.status_code})")
        try:
            return resp.json()
        except ValueError as e:
            raise GatewayError("Payment gateway returned an unreadable response") from e

    @staticmethod
    def _to_order(data: dict) -> GatewayOrder:
        try:
            return GatewayOrder(
                gateway_order_id=data["id"],
                amount=from_subunits(data["amount"]),
                currency=data.get("currency", "INR"),
                receipt=data.get("receipt"),
            )
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise GatewayError(f"Payment gateway returned a malformed order: {e!r}") from e

    def create_order(self, amount, currency, receipt, timeout=None) -> GatewayOrder:
        data = self._request(
            "POST",
            "/orders",
            timeout=timeout,
            json={
                "amount": to_subunits(amount),
                "currency": currency,
                "receipt": receipt[:MAX_RECEIPT_LEN],
                "payment_capture": 1,
            },
        )
        return self._to_order(data)

    def fetch_order(self, gateway_order_id, timeout=None) -> GatewayOrder:
        return self._to_order(self._request("GET", f"/orders/{gateway_order_id}", timeout=timeout))

    def verify_signature(self, gateway_order_id, payment_id, signature) -> bool:
        if not (gateway_order_id and payment_id and signature):
            return False
        expected = hmac.new(
            self._key_secret.encode(),
            f"{gateway_order_id}|{payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)


class PaymentCoordinator:
    def __init__(self, gateway: Optional[PaymentGateway], currency: str = "INR"):
        self.gateway = gateway
        self.currency = currency

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise PaymentFailed("Online payments are not available")
        return self.gateway

    def open(self, amount, receipt: str, prefill: Optional[dict] = None, *,
             gateway_order_id: Optional[str] = None, timeout=None) -> CheckoutOptions:
        """
        Create the gateway-side payment order, or bind to one the client
        already opened after checking it was opened for this exact amount.
        """
        gateway = self._require_gateway()
        amount = to_money(amount)
        try:
            if gateway_order_id:
                order = gateway.fetch_order(gateway_order_id, timeout=timeout)
                if order.amount != amount or order.currency != self.currency:
                    raise PaymentFailed(
                        f"Payment order {gateway_order_id} was opened for "
                        f"{order.amount} {order.currency}, expected {amount} {self.currency}"
                    )
            else:
                order = gateway.create_order(amount, self.currency, receipt, timeout=timeout)
        except GatewayError as e:
            raise PaymentFailed(str(e)) from e
        return CheckoutOptions(
            key_id=gateway.key_id,
            gateway_order_id=order.gateway_order_id,
            amount=order.amount,
            currency=order.currency,
            prefill=prefill or {},
        )

    def resolve(self, options: CheckoutOptions, callback: PaymentCallback) -> PaymentAuthorization:
        auth = PaymentAuthorization(
            gateway_order_id=options.gateway_order_id,
            amount=options.amount,
            currency=options.currency,
            payment_id=callback.payment_id,
            signature=callback.signature,
        )
        status = (callback.status or "").lower()
        if status == CANCELLED:
            auth.status = CANCELLED
            logger.info("Payment cancelled by user for gateway order %s", options.gateway_order_id)
            raise PaymentCancelled()
        if status != AUTHORIZED:
            auth.status = FAILED
            auth.reason = callback.reason or "Payment failed"
            raise PaymentFailed(auth.reason)
        if callback.gateway_order_id and callback.gateway_order_id != options.gateway_order_id:
            raise PaymentFailed("Payment callback does not match the payment order")
        if not self._require_gateway().verify_signature(
            options.gateway_order_id, callback.payment_id, callback.signature
        ):
            logger.warning("Invalid payment signature for gateway order %s", options.gateway_order_id)
            raise PaymentFailed("Payment could not be verified")
        auth.status = AUTHORIZED
        return auth

    def authorize(self, method: PaymentMethod, amount, user_context: Optional[dict] = None, *,
                  ui: Optional[PaymentUI] = None, receipt: str = "",
                  gateway_order_id: Optional[str] = None, timeout=None) -> Optional[PaymentAuthorization]:
        """
        Returns None for COD (no authorization required). For ONLINE returns
        an authorized PaymentAuthorization or raises PaymentCancelled /
        PaymentFailed.
        """
        if PaymentMethod.parse(method) is PaymentMethod.COD:
            return None
        if ui is None:
            raise PaymentFailed("No payment interface available")
        options = self.open(amount, receipt, prefill=user_context,
                            gateway_order_id=gateway_order_id, timeout=timeout)
        try:
            callback = ui.present(options, timeout=timeout)
        except (PaymentCancelled, PaymentFailed):
            raise
        except Exception as e:
            raise PaymentFailed(f"Payment interface error: {e}") from e
        return self.resolve(options, callback)


class SubmittedCallbackUI:
    """Payment UI whose result was already collected by the client."""

    def __init__(self, callback: PaymentCallback):
        self.callback = callback

    def present(self, options, timeout=None) -> PaymentCallback:
        return self.callback


__all__ = [
    "GatewayError",
    "GatewayOrder",
    "CheckoutOptions",
    "PaymentCallback",
    "PaymentGateway",
    "PaymentUI",
    "RazorpayGateway",
    "PaymentCoordinator",
    "SubmittedCallbackUI",
    "to_subunits",
    "from_subunits",
]
