import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from models.cart import CartItem
from models.product import Product
from models.shipping import ShippingRule
from .errors import NotFoundError, StorageError, ValidationError
from .types import PricedLine, Quote, ShippingTier

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
_UNSET = object()


def to_money(value) -> Decimal:
    d = Decimal(str(value))
    return d.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def compute_subtotal(lines: Iterable[PricedLine]) -> Decimal:
    """Sum of price * quantity; zero for an empty set, never negative."""
    total = sum((to_money(line.unit_price) * line.quantity for line in lines), Decimal("0"))
    return max(to_money(total), to_money("0"))


def resolve_shipping_fee(
    subtotal,
    rules: Optional[Sequence[ShippingTier]],
    *,
    fallback_threshold,
    fallback_fee,
) -> Decimal:
    """
    Pick the active tier with the greatest min_order_value <= subtotal and
    return its charge. Equal thresholds resolve to the lowest charge.

    An empty or unavailable (None) rule set uses the fixed fallback policy.
    A non-empty rule set with no applicable tier charges nothing.
    """
    subtotal = to_money(subtotal)
    if subtotal <= 0:
        return to_money("0")

    active = [r for r in (rules or ()) if r.is_active]
    if not active:
        if subtotal >= to_money(fallback_threshold):
            return to_money("0")
        return to_money(fallback_fee)

    applicable = [r for r in active if to_money(r.min_order_value) <= subtotal]
    if not applicable:
        return to_money("0")
    best = max(applicable, key=lambda r: (to_money(r.min_order_value), -to_money(r.charge)))
    return to_money(best.charge)


def free_shipping_threshold(rules: Optional[Sequence[ShippingTier]], fallback_threshold) -> Decimal:
    free = [to_money(r.min_order_value) for r in (rules or ()) if r.is_active and to_money(r.charge) == 0]
    if free:
        return min(free)
    return to_money(fallback_threshold)


def load_shipping_rules() -> Optional[Tuple[ShippingTier, ...]]:
    """Read active tiers ordered by min_order_value descending; None if unavailable."""
    try:
        rows = (
            ShippingRule.query.filter_by(is_active=True)
            .order_by(ShippingRule.min_order_value.desc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.warning("Shipping rule fetch failed, using fallback policy: %s", e)
        return None
    return tuple(
        ShippingTier(
            min_order_value=to_money(r.min_order_value),
            charge=to_money(r.charge),
            is_active=bool(r.is_active),
        )
        for r in rows
    )


def load_cart_lines(user_id) -> Tuple[PricedLine, ...]:
    """Current cart rows joined with product prices."""
    try:
        rows = (
            CartItem.query.filter_by(user_id=user_id)
            .join(Product, CartItem.product_id == Product.id)
            .order_by(CartItem.id.asc())
            .all()
        )
    except SQLAlchemyError as e:
        raise StorageError(f"Cart read failed: {e}") from e
    return tuple(
        PricedLine(
            product_id=ci.product_id,
            name=ci.product.name,
            quantity=ci.quantity,
            unit_price=to_money(ci.product.price),
            cart_item_id=ci.id,
        )
        for ci in rows
    )


def load_product_lines(items: Iterable[Tuple[int, int]]) -> Tuple[PricedLine, ...]:
    """Price explicit (product_id, quantity) pairs that are not staged in the cart."""
    lines = []
    for product_id, quantity in items:
        if quantity is None or int(quantity) < 1:
            raise ValidationError("Quantity must be at least 1")
        try:
            product = Product.query.filter_by(id=product_id, is_active=True).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Product read failed: {e}") from e
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        lines.append(
            PricedLine(
                product_id=product.id,
                name=product.name,
                quantity=int(quantity),
                unit_price=to_money(product.price),
            )
        )
    return tuple(lines)


class PricingEngine:
    def __init__(self, *, fallback_threshold="299", fallback_fee="40"):
        self.fallback_threshold = to_money(fallback_threshold)
        self.fallback_fee = to_money(fallback_fee)

    @classmethod
    def from_config(cls, config) -> "PricingEngine":
        return cls(
            fallback_threshold=config.get("SHIPPING_FALLBACK_THRESHOLD", "299"),
            fallback_fee=config.get("SHIPPING_FALLBACK_FEE", "40"),
        )

    def shipping_fee(self, subtotal, rules) -> Decimal:
        return resolve_shipping_fee(
            subtotal,
            rules,
            fallback_threshold=self.fallback_threshold,
            fallback_fee=self.fallback_fee,
        )

    def quote(self, lines: Sequence[PricedLine], rules=_UNSET) -> Quote:
        if rules is _UNSET:
            rules = load_shipping_rules()
        subtotal = compute_subtotal(lines)
        return Quote(
            lines=tuple(lines),
            subtotal=subtotal,
            shipping_fee=self.shipping_fee(subtotal, rules),
            rules=rules,
            free_shipping_threshold=free_shipping_threshold(rules, self.fallback_threshold),
        )


__all__ = [
    "to_money",
    "compute_subtotal",
    "resolve_shipping_fee",
    "free_shipping_threshold",
    "load_shipping_rules",
    "load_cart_lines",
    "load_product_lines",
    "PricingEngine",
]
