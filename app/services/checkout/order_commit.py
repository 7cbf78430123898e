import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.address import Address
from models.cart import CartItem
from models.order import Order, OrderItem, OrderCommitLog
from app.utils.db import transactional
from .errors import (
    AmountMismatchError,
    AuthError,
    EmptyCartError,
    NotFoundError,
    PartialCommitInconsistency,
    PaymentFailed,
    StorageError,
    ValidationError,
)
from .pricing import PricingEngine, compute_subtotal, load_cart_lines, load_product_lines, load_shipping_rules, to_money
from .types import PaymentAuthorization, PaymentMethod, PricedLine, Quote

logger = logging.getLogger(__name__)

ORDER_INSERTED = "order_inserted"
ITEMS_INSERTED = "items_inserted"
CART_CLEARED = "cart_cleared"
COMMIT_STEPS = (ORDER_INSERTED, ITEMS_INSERTED, CART_CLEARED)


@dataclass(frozen=True)
class CommitResult:
    order: Order
    replayed: bool = False


@contextmanager
def _storage(message):
    try:
        with transactional(message):
            yield
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        raise StorageError(f"{message}: {e}") from e


def _record_failure(token, user_id, step, order_id, details):
    try:
        with transactional("Commit log write failed"):
            db.session.add(OrderCommitLog(
                attempt_token=token, user_id=user_id, order_id=order_id,
                step=step, status="failed", details=details,
            ))
    except SQLAlchemyError:
        logger.exception("Could not record failed step %s for attempt %s", step, token)


def _find_existing(token) -> Optional[Order]:
    if not token:
        return None
    try:
        return Order.query.filter_by(idempotency_token=token).first()
    except SQLAlchemyError as e:
        raise StorageError(f"Order lookup failed: {e}") from e


def _find_by_payment(gateway_order_id, payment_id) -> Optional[Order]:
    clauses = []
    if gateway_order_id:
        clauses.append(Order.gateway_order_id == gateway_order_id)
    if payment_id:
        clauses.append(Order.gateway_payment_id == payment_id)
    if not clauses:
        return None
    try:
        return Order.query.filter(or_(*clauses)).first()
    except SQLAlchemyError as e:
        raise StorageError(f"Order lookup failed: {e}") from e


def _load_address(user_id, address_id) -> Address:
    try:
        address = Address.query.filter_by(id=address_id, user_id=user_id).first()
    except SQLAlchemyError as e:
        raise StorageError(f"Address read failed: {e}") from e
    if not address:
        raise NotFoundError(f"Selected address not found for ID: {address_id}")
    return address


def _insert_order(user_id, token, shipping_line, total, fee, method, authorization) -> Order:
    with _storage("Order insert failed"):
        order = Order(
            user_id=user_id,
            shipping_address=shipping_line,
            total_price=total,
            shipping_fee=fee,
            status="processing",
            payment_method=method.value,
            gateway_order_id=authorization.gateway_order_id if authorization else None,
            gateway_payment_id=authorization.payment_id if authorization else None,
            idempotency_token=token,
        )
        db.session.add(order)
        db.session.flush()
        db.session.add(OrderCommitLog(
            attempt_token=token, user_id=user_id, order_id=order.id,
            step=ORDER_INSERTED, status="done", details=f"total={total}",
        ))
    return order


def _insert_order_items(order_id, token, user_id, lines: Sequence[PricedLine]) -> None:
    with _storage("Order items insert failed"):
        for line in lines:
            db.session.add(OrderItem(
                order_id=order_id,
                product_id=line.product_id,
                quantity=line.quantity,
                price_at_purchase=line.unit_price,
            ))
        db.session.add(OrderCommitLog(
            attempt_token=token, user_id=user_id, order_id=order_id,
            step=ITEMS_INSERTED, status="done", details=f"count={len(lines)}",
        ))


def _clear_cart_lines(order_id, token, user_id, lines: Sequence[PricedLine]) -> None:
    cart_ids = [line.cart_item_id for line in lines if line.cart_item_id is not None]
    with _storage("Cart clear failed"):
        if cart_ids:
            CartItem.query.filter(
                CartItem.user_id == user_id, CartItem.id.in_(cart_ids)
            ).delete(synchronize_session=False)
        db.session.add(OrderCommitLog(
            attempt_token=token, user_id=user_id, order_id=order_id,
            step=CART_CLEARED, status="done", details=f"rows={len(cart_ids)}",
        ))


class OrderCommitService:
    """
    Turns the caller's lines into a persisted order.

    Each write step is its own transaction paired with a commit-log row. There
    is no rollback across steps: a failure after the order row exists raises
    PartialCommitInconsistency and leaves the partial state for reconciliation.
    """

    def __init__(self, pricing: Optional[PricingEngine] = None, tolerance="0.00"):
        self.pricing = pricing or PricingEngine()
        self.tolerance = to_money(tolerance)

    def existing_order(self, user_id, attempt_token) -> Optional[Order]:
        """The order already committed under this attempt token, if any."""
        existing = _find_existing(attempt_token)
        if existing is not None and existing.user_id != user_id:
            raise ValidationError("Idempotency key already used")
        return existing

    def existing_payment_order(self, user_id, gateway_order_id=None, payment_id=None) -> Optional[Order]:
        """
        The order already committed against this gateway order or payment.
        A payment that paid for another user's order is never reusable.
        """
        existing = _find_by_payment(gateway_order_id, payment_id)
        if existing is not None and existing.user_id != user_id:
            logger.warning(
                "Payment %s / %s already backs order %s of another user",
                gateway_order_id, payment_id, existing.id,
            )
            raise PaymentFailed("This payment has already been used")
        return existing

    def _existing_for(self, user_id, attempt_token, authorization) -> Optional[Order]:
        existing = self.existing_order(user_id, attempt_token)
        if existing is None and authorization is not None:
            existing = self.existing_payment_order(
                user_id, authorization.gateway_order_id, authorization.payment_id
            )
        return existing

    def commit(self, user, address_id, payment_method, expected_amount=None, *,
               attempt_token: str, lines: Optional[Sequence[PricedLine]] = None,
               quote: Optional[Quote] = None,
               authorization: Optional[PaymentAuthorization] = None) -> CommitResult:
        # 1. identity
        user_id = getattr(user, "id", None)
        if not user_id:
            raise AuthError("User not found")
        if not attempt_token:
            raise ValidationError("Missing attempt token")
        method = PaymentMethod.parse(payment_method)

        existing = self._existing_for(user_id, attempt_token, authorization)
        if existing is not None:
            logger.info("Replaying order %s for attempt %s", existing.id, attempt_token)
            return CommitResult(order=existing, replayed=True)

        # 2-3. address, flattened
        shipping_line = _load_address(user_id, address_id).to_shipping_line()

        # 4. lines with prices captured once
        if lines is not None:
            priced = load_product_lines((line.product_id, line.quantity) for line in lines)
        else:
            priced = load_cart_lines(user_id)
        if not priced:
            raise EmptyCartError()

        # 5. authoritative total, against the same rule snapshot the quote used
        rules = quote.rules if quote is not None else load_shipping_rules()
        subtotal = compute_subtotal(priced)
        fee = self.pricing.shipping_fee(subtotal, rules)
        total = subtotal + fee
        if expected_amount is not None:
            expected = to_money(expected_amount)
            if abs(total - expected) > self.tolerance:
                logger.warning(
                    "Commit total %s diverges from authorized amount %s for attempt %s",
                    total, expected, attempt_token,
                )
                raise AmountMismatchError(expected, total)

        # 6. order row
        try:
            order = _insert_order(user_id, attempt_token, shipping_line, total, fee, method, authorization)
        except IntegrityError as e:
            existing = self._existing_for(user_id, attempt_token, authorization)
            if existing is not None:
                logger.info("Concurrent commit for attempt %s resolved to order %s", attempt_token, existing.id)
                return CommitResult(order=existing, replayed=True)
            raise StorageError(f"Order insert failed: {e}") from e
        completed = [ORDER_INSERTED]

        # 7-8. items, then the cart rows that were priced
        for step, write in (
            (ITEMS_INSERTED, _insert_order_items),
            (CART_CLEARED, _clear_cart_lines),
        ):
            try:
                write(order.id, attempt_token, user_id, priced)
            except Exception as e:
                _record_failure(attempt_token, user_id, step, order.id, str(e))
                logger.error(
                    "Partial commit for order %s: step %s failed after %s",
                    order.id, step, ", ".join(completed),
                )
                raise PartialCommitInconsistency(
                    f"Order {order.id} committed partially; {step} failed",
                    order_id=order.id,
                    completed_steps=completed,
                    failed_step=step,
                ) from e
            completed.append(step)

        logger.info("Order %s committed with %d item(s), total %s", order.id, len(priced), total)
        return CommitResult(order=order)


__all__ = [
    "OrderCommitService",
    "CommitResult",
    "ORDER_INSERTED",
    "ITEMS_INSERTED",
    "CART_CLEARED",
    "COMMIT_STEPS",
]
