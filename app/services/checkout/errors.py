"""
Checkout error taxonomy.

Every error raised by the checkout services derives from CheckoutError so the
orchestrator can run compensation before surfacing it, and the HTTP layer can
map it to a status code without inspecting message text.
"""


class CheckoutError(Exception):
    status_code = 400
    user_message = "There was a problem placing your order."

    def __init__(self, message=None):
        super().__init__(message or self.user_message)

    @property
    def public_message(self) -> str:
        return str(self)


class ValidationError(CheckoutError):
    user_message = "Invalid checkout request."


class EmptyCartError(CheckoutError):
    user_message = "Your cart is empty."


class NotFoundError(CheckoutError):
    status_code = 404
    user_message = "Not found."


class AuthError(CheckoutError):
    status_code = 401
    user_message = "Authentication required."


class PaymentCancelled(CheckoutError):
    """User dismissed the payment UI. Never shown as an error."""

    status_code = 200
    user_message = "Payment cancelled."


class PaymentFailed(CheckoutError):
    status_code = 402
    user_message = "Payment failed."

    def __init__(self, reason=None):
        self.reason = reason or self.user_message
        super().__init__(self.reason)


class StorageError(CheckoutError):
    status_code = 500

    @property
    def public_message(self) -> str:
        return self.user_message


class PartialCommitInconsistency(StorageError):
    """A commit step failed after an earlier step had already been written."""

    def __init__(self, message, *, order_id=None, completed_steps=(), failed_step=None):
        self.order_id = order_id
        self.completed_steps = tuple(completed_steps)
        self.failed_step = failed_step
        super().__init__(message)


class AmountMismatchError(CheckoutError):
    status_code = 409
    user_message = "Your order total changed. Please review your cart and try again."

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Order total changed from {expected} to {actual}")

    @property
    def public_message(self) -> str:
        return self.user_message


class CheckoutTimeout(CheckoutError):
    status_code = 504
    user_message = "Checkout took too long. Please try again."


__all__ = [
    "CheckoutError",
    "ValidationError",
    "EmptyCartError",
    "NotFoundError",
    "AuthError",
    "PaymentCancelled",
    "PaymentFailed",
    "StorageError",
    "PartialCommitInconsistency",
    "AmountMismatchError",
    "CheckoutTimeout",
]
