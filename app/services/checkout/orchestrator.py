"""
Checkout orchestration.

One attempt walks INIT -> CART_PREPARED -> PRICED -> PAYMENT_RESOLVED ->
COMMITTED -> RESTORED -> DONE, or ends in FAILED / CANCELLED. Pricing runs
once per attempt and the same quote drives both the payment amount and the
commit check.

Buy-now checkouts come in two strategies:

    direct  the single line is passed through pricing and commit as a
            parameter; the live cart is never touched.
    staged  the cart is snapshotted, replaced with the single line, committed
            from, and restored afterwards whatever the outcome.
"""
import logging
import time
from typing import Optional

from opentelemetry import trace

from app.logging import bind_attempt
from app.metrics import CART_RESTORES, CHECKOUT_ATTEMPTS, CHECKOUT_DURATION, PARTIAL_COMMITS
from .cart_snapshot import CartSnapshotManager
from .errors import (
    AuthError,
    CheckoutError,
    CheckoutTimeout,
    EmptyCartError,
    PartialCommitInconsistency,
    PaymentCancelled,
    ValidationError,
)
from .order_commit import OrderCommitService
from .payment import PaymentCoordinator, PaymentUI
from .pricing import PricingEngine, load_cart_lines, load_product_lines
from .types import (
    CartOrigin,
    CheckoutAttempt,
    CheckoutResult,
    CheckoutState,
    PaymentMethod,
    PlaceOrderInput,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DIRECT = "direct"
STAGED = "staged"
BUY_NOW_STRATEGIES = (DIRECT, STAGED)


def _prefill(user) -> dict:
    fields = {
        "name": getattr(user, "name", None),
        "email": getattr(user, "email", None),
        "contact": getattr(user, "phone", None),
    }
    return {k: v for k, v in fields.items() if v}


class CheckoutOrchestrator:
    def __init__(self, *, pricing: PricingEngine, snapshots: CartSnapshotManager,
                 payments: PaymentCoordinator, committer: OrderCommitService,
                 buy_now_strategy: str = DIRECT, attempt_timeout: float = 900):
        if buy_now_strategy not in BUY_NOW_STRATEGIES:
            raise ValueError(f"Unknown buy-now strategy: {buy_now_strategy}")
        self.pricing = pricing
        self.snapshots = snapshots
        self.payments = payments
        self.committer = committer
        self.buy_now_strategy = buy_now_strategy
        self.attempt_timeout = attempt_timeout

    @classmethod
    def from_config(cls, config, gateway=None) -> "CheckoutOrchestrator":
        pricing = PricingEngine.from_config(config)
        return cls(
            pricing=pricing,
            snapshots=CartSnapshotManager(config.get("CART_RESTORE_POLICY", "overwrite")),
            payments=PaymentCoordinator(gateway, currency=config.get("CHECKOUT_CURRENCY", "INR")),
            committer=OrderCommitService(pricing, tolerance=config.get("CHECKOUT_AMOUNT_TOLERANCE", "0.00")),
            buy_now_strategy=config.get("BUY_NOW_STRATEGY", DIRECT),
            attempt_timeout=float(config.get("CHECKOUT_ATTEMPT_TIMEOUT_SEC", 900)),
        )

    # ------------------------------------------------------------------ entry

    def begin(self, user, request: PlaceOrderInput, token: Optional[str] = None) -> CheckoutAttempt:
        attempt = CheckoutAttempt(
            user=user,
            request=request,
            deadline=time.monotonic() + self.attempt_timeout,
        )
        if token:
            attempt.token = token
        return attempt

    def place_order(self, user, request: PlaceOrderInput, *, ui: Optional[PaymentUI] = None,
                    token: Optional[str] = None) -> CheckoutResult:
        return self.run(self.begin(user, request, token=token), ui=ui)

    def run(self, attempt: CheckoutAttempt, ui: Optional[PaymentUI] = None) -> CheckoutResult:
        if attempt.state is not CheckoutState.INIT:
            raise ValueError(f"Attempt {attempt.token} already ran ({attempt.state.value})")
        started = time.monotonic()
        request = attempt.request
        labels = {"origin": request.origin.value, "payment_method": request.payment_method.value}
        outcome = "failed"

        with bind_attempt(attempt.token), tracer.start_as_current_span("checkout.attempt") as span:
            span.set_attribute("checkout.attempt", attempt.token)
            span.set_attribute("checkout.origin", request.origin.value)
            try:
                self._init(attempt)
                if not self._replay(attempt):
                    self._prepare_cart(attempt)
                    self._price(attempt)
                    self._resolve_payment(attempt, ui)
                    self._commit(attempt)
                outcome = "done"
            except PaymentCancelled as e:
                attempt.error = e
                outcome = "cancelled"
            except CheckoutError as e:
                attempt.error = e
                self._log_failure(attempt, e)
            except Exception:
                logger.exception("Unexpected checkout failure in state %s", attempt.state.value)
                attempt.transition(CheckoutState.FAILED)
                CHECKOUT_ATTEMPTS.labels(outcome="error", **labels).inc()
                raise
            finally:
                if attempt.snapshot is not None:
                    self._restore(attempt)
                CHECKOUT_DURATION.observe(time.monotonic() - started)

            span.set_attribute("checkout.outcome", outcome)

        CHECKOUT_ATTEMPTS.labels(outcome=outcome, **labels).inc()
        if attempt.restored:
            attempt.transition(CheckoutState.RESTORED)
        if outcome == "done":
            attempt.transition(CheckoutState.DONE)
        elif outcome == "cancelled":
            attempt.transition(CheckoutState.CANCELLED)
        else:
            attempt.transition(CheckoutState.FAILED)

        return CheckoutResult(
            status=outcome,
            attempt_token=attempt.token,
            order_id=attempt.order_id,
            error=attempt.error if outcome == "failed" else None,
            replayed=attempt.replayed,
            quote=attempt.quote,
        )

    # ----------------------------------------------------------------- states

    def _ensure_time_left(self, attempt: CheckoutAttempt) -> None:
        if attempt.remaining() <= 0:
            raise CheckoutTimeout()

    def _init(self, attempt: CheckoutAttempt) -> None:
        request = attempt.request
        with tracer.start_as_current_span("checkout.init"):
            if not attempt.user_id:
                raise AuthError("User not found")
            if not request.address_id:
                raise ValidationError("Please select a shipping address.")
            if request.payment_method is PaymentMethod.ONLINE and self.payments.gateway is None:
                raise ValidationError("Online payments are not available")
            if request.buy_now is not None:
                # Validates quantity and product existence before any write
                load_product_lines([(request.buy_now.product_id, request.buy_now.quantity)])

    def _replay(self, attempt: CheckoutAttempt) -> bool:
        """A token that already produced an order short-circuits to that order."""
        existing = self.committer.existing_order(attempt.user_id, attempt.token)
        if existing is None and attempt.request.gateway_order_id:
            # A paid gateway order resubmitted under a fresh token
            existing = self.committer.existing_payment_order(
                attempt.user_id, gateway_order_id=attempt.request.gateway_order_id
            )
        if existing is None:
            return False
        logger.info("Replaying order %s for attempt %s", existing.id, attempt.token)
        attempt.order_id = existing.id
        attempt.replayed = True
        return True

    def _is_staged(self, attempt: CheckoutAttempt) -> bool:
        return attempt.request.origin is CartOrigin.BUY_NOW and self.buy_now_strategy == STAGED

    def _prepare_cart(self, attempt: CheckoutAttempt) -> None:
        self._ensure_time_left(attempt)
        if self._is_staged(attempt):
            buy_now = attempt.request.buy_now
            with tracer.start_as_current_span("checkout.cart_prepared"):
                attempt.snapshot = self.snapshots.snapshot(attempt.user_id)
                self.snapshots.replace(attempt.user_id, [(buy_now.product_id, buy_now.quantity)])
        attempt.transition(CheckoutState.CART_PREPARED)

    def _price(self, attempt: CheckoutAttempt) -> None:
        self._ensure_time_left(attempt)
        request = attempt.request
        with tracer.start_as_current_span("checkout.priced"):
            if request.origin is CartOrigin.BUY_NOW and not self._is_staged(attempt):
                lines = load_product_lines([(request.buy_now.product_id, request.buy_now.quantity)])
            else:
                lines = load_cart_lines(attempt.user_id)
            if not lines:
                raise EmptyCartError()
            attempt.quote = self.pricing.quote(lines)
        attempt.transition(CheckoutState.PRICED)

    def _resolve_payment(self, attempt: CheckoutAttempt, ui: Optional[PaymentUI]) -> None:
        self._ensure_time_left(attempt)
        request = attempt.request
        with tracer.start_as_current_span("checkout.payment_resolved"):
            try:
                attempt.authorization = self.payments.authorize(
                    request.payment_method,
                    attempt.quote.total,
                    _prefill(attempt.user),
                    ui=ui,
                    receipt=f"rcpt_{attempt.token}",
                    gateway_order_id=request.gateway_order_id,
                    timeout=attempt.remaining(),
                )
            except PaymentCancelled:
                attempt.transition(CheckoutState.PAYMENT_RESOLVED)
                raise
        attempt.transition(CheckoutState.PAYMENT_RESOLVED)

    def _commit(self, attempt: CheckoutAttempt) -> None:
        request = attempt.request
        direct_lines = None
        if request.origin is CartOrigin.BUY_NOW and not self._is_staged(attempt):
            direct_lines = attempt.quote.lines
        with tracer.start_as_current_span("checkout.committed"):
            result = self.committer.commit(
                attempt.user,
                request.address_id,
                request.payment_method,
                attempt.quote.total,
                attempt_token=attempt.token,
                lines=direct_lines,
                quote=attempt.quote,
                authorization=attempt.authorization,
            )
        attempt.order_id = result.order.id
        attempt.replayed = result.replayed
        attempt.transition(CheckoutState.COMMITTED)

    def _restore(self, attempt: CheckoutAttempt) -> None:
        buy_now = attempt.request.buy_now
        with tracer.start_as_current_span("checkout.restored"):
            attempt.restored = self.snapshots.restore(
                attempt.user_id,
                attempt.snapshot,
                staged=[(buy_now.product_id, buy_now.quantity)],
            )
        CART_RESTORES.labels(result="ok" if attempt.restored else "failed").inc()

    def _log_failure(self, attempt: CheckoutAttempt, error: CheckoutError) -> None:
        if isinstance(error, PartialCommitInconsistency):
            PARTIAL_COMMITS.labels(failed_step=error.failed_step or "unknown").inc()
            logger.error({
                "event": "partial_commit",
                "order_id": error.order_id,
                "completed_steps": list(error.completed_steps),
                "failed_step": error.failed_step,
            })
        auth = attempt.authorization
        if auth is not None and auth.status == "authorized" and attempt.order_id is None:
            logger.error({
                "event": "authorized_without_order",
                "gateway_order_id": auth.gateway_order_id,
                "gateway_payment_id": auth.payment_id,
                "amount": str(auth.amount),
            })
        logger.warning("Checkout failed in state %s: %s", attempt.state.value, error)


__all__ = ["CheckoutOrchestrator", "DIRECT", "STAGED", "BUY_NOW_STRATEGIES"]
