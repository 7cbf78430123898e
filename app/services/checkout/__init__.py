from .errors import *  # noqa: F401,F403
from .types import *  # noqa: F401,F403
from .pricing import PricingEngine, resolve_shipping_fee, compute_subtotal
from .cart_snapshot import CartSnapshotManager
from .payment import (
    PaymentCallback,
    PaymentCoordinator,
    RazorpayGateway,
    SubmittedCallbackUI,
)
from .order_commit import OrderCommitService, CommitResult
from .orchestrator import CheckoutOrchestrator
