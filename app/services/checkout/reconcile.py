"""
Detection of orders left half-written by a failed commit.

An order is partial when its commit log shows order_inserted but not
cart_cleared, or when the order has no item rows at all. Nothing here repairs
data; callers decide whether to finish, refund or cancel.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func

from models import db
from models.order import Order, OrderItem, OrderCommitLog
from .order_commit import CART_CLEARED, COMMIT_STEPS

logger = logging.getLogger(__name__)


@dataclass
class PartialCommit:
    order_id: int
    user_id: str
    attempt_token: Optional[str]
    completed_steps: List[str] = field(default_factory=list)
    failed_steps: List[str] = field(default_factory=list)
    item_count: int = 0

    @property
    def missing_steps(self) -> List[str]:
        return [s for s in COMMIT_STEPS if s not in self.completed_steps]

    def to_dict(self):
        return {
            "order_id": self.order_id,
            "user_id": self.user_id,
            "attempt_token": self.attempt_token,
            "completed_steps": self.completed_steps,
            "failed_steps": self.failed_steps,
            "missing_steps": self.missing_steps,
            "item_count": self.item_count,
        }


def find_partial_commits(limit: int = 500) -> List[PartialCommit]:
    orders = Order.query.order_by(Order.id.desc()).limit(limit).all()
    if not orders:
        return []
    order_ids = [o.id for o in orders]

    item_counts = dict(
        db.session.query(OrderItem.order_id, func.count(OrderItem.id))
        .filter(OrderItem.order_id.in_(order_ids))
        .group_by(OrderItem.order_id)
        .all()
    )

    logs = (
        OrderCommitLog.query
        .filter(OrderCommitLog.order_id.in_(order_ids))
        .order_by(OrderCommitLog.id.asc())
        .all()
    )
    by_order = {}
    for entry in logs:
        by_order.setdefault(entry.order_id, []).append(entry)

    partial = []
    for order in orders:
        entries = by_order.get(order.id, [])
        done = [e.step for e in entries if e.status == "done"]
        failed = [e.step for e in entries if e.status == "failed"]
        count = item_counts.get(order.id, 0)
        if CART_CLEARED in done and count:
            continue
        # Orders written before the commit log existed have no entries
        if not entries and count:
            continue
        partial.append(PartialCommit(
            order_id=order.id,
            user_id=order.user_id,
            attempt_token=order.idempotency_token,
            completed_steps=done,
            failed_steps=failed,
            item_count=count,
        ))

    if partial:
        logger.warning("Found %d partially committed order(s)", len(partial))
    return partial


__all__ = ["PartialCommit", "find_partial_commits"]
