import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from .errors import CheckoutError, ValidationError


class PaymentMethod(str, Enum):
    COD = "COD"
    ONLINE = "ONLINE"

    @classmethod
    def parse(cls, value) -> "PaymentMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            raise ValidationError(f"Unsupported payment method: {value!r}")


class CartOrigin(str, Enum):
    CART = "CART"
    BUY_NOW = "BUY_NOW"


class CheckoutState(str, Enum):
    INIT = "INIT"
    CART_PREPARED = "CART_PREPARED"
    PRICED = "PRICED"
    PAYMENT_RESOLVED = "PAYMENT_RESOLVED"
    COMMITTED = "COMMITTED"
    RESTORED = "RESTORED"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (CheckoutState.DONE, CheckoutState.FAILED, CheckoutState.CANCELLED)


@dataclass(frozen=True)
class BuyNowRequest:
    product_id: int
    quantity: int = 1
    product_snapshot: Optional[dict] = None


@dataclass(frozen=True)
class PlaceOrderInput:
    address_id: Optional[int]
    payment_method: PaymentMethod
    buy_now: Optional[BuyNowRequest] = None
    # Gateway order opened ahead of time by the client (two-phase HTTP flow)
    gateway_order_id: Optional[str] = None

    @property
    def origin(self) -> CartOrigin:
        return CartOrigin.BUY_NOW if self.buy_now is not None else CartOrigin.CART


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    name: str
    quantity: int
    unit_price: Decimal
    cart_item_id: Optional[int] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class ShippingTier:
    min_order_value: Decimal
    charge: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class Quote:
    """Single authoritative pricing for one attempt."""

    lines: Tuple[PricedLine, ...]
    subtotal: Decimal
    shipping_fee: Decimal
    # None means the rule table was unavailable and the fallback policy applied
    rules: Optional[Tuple[ShippingTier, ...]]
    free_shipping_threshold: Decimal

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.shipping_fee

    @property
    def amount_to_free_shipping(self) -> Decimal:
        remaining = self.free_shipping_threshold - self.subtotal
        return remaining if remaining > 0 else Decimal("0.00")

    def to_dict(self):
        return {
            "items": [
                {
                    "product_id": line.product_id,
                    "name": line.name,
                    "quantity": line.quantity,
                    "unit_price": float(line.unit_price),
                    "line_total": float(line.line_total),
                }
                for line in self.lines
            ],
            "subtotal": float(self.subtotal),
            "shipping_fee": float(self.shipping_fee),
            "total": float(self.total),
            "free_shipping_threshold": float(self.free_shipping_threshold),
            "amount_to_free_shipping": float(self.amount_to_free_shipping),
        }


@dataclass(frozen=True)
class CartSnapshot:
    user_id: str
    items: Tuple[Tuple[int, int], ...]  # (product_id, quantity)
    captured_at: float = field(default_factory=time.time)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def as_dict(self):
        return dict(self.items)


@dataclass
class PaymentAuthorization:
    gateway_order_id: str
    amount: Decimal
    currency: str
    status: str = "pending"  # pending, authorized, cancelled, failed
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class CheckoutAttempt:
    """Handle for one in-flight checkout; held by the caller, never shared."""

    user: object
    request: PlaceOrderInput
    deadline: float
    token: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: CheckoutState = CheckoutState.INIT
    history: List[CheckoutState] = field(default_factory=lambda: [CheckoutState.INIT])
    snapshot: Optional[CartSnapshot] = None
    quote: Optional[Quote] = None
    authorization: Optional[PaymentAuthorization] = None
    order_id: Optional[int] = None
    replayed: bool = False
    error: Optional[CheckoutError] = None
    restored: bool = False

    @property
    def user_id(self):
        return getattr(self.user, "id", None)

    @property
    def in_flight(self) -> bool:
        return not self.state.is_terminal

    def remaining(self) -> float:
        return self.deadline - time.monotonic()

    def transition(self, state: CheckoutState) -> None:
        self.state = state
        self.history.append(state)


@dataclass(frozen=True)
class CheckoutResult:
    status: str  # done, cancelled, failed
    attempt_token: str
    order_id: Optional[int] = None
    error: Optional[CheckoutError] = None
    replayed: bool = False
    quote: Optional[Quote] = None

    @property
    def ok(self) -> bool:
        return self.status == "done"

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"


__all__ = [
    "PaymentMethod",
    "CartOrigin",
    "CheckoutState",
    "BuyNowRequest",
    "PlaceOrderInput",
    "PricedLine",
    "ShippingTier",
    "Quote",
    "CartSnapshot",
    "PaymentAuthorization",
    "CheckoutAttempt",
    "CheckoutResult",
]
