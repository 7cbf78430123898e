import logging
from typing import Iterable, Tuple

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.cart import CartItem
from app.utils.db import transactional
from .errors import StorageError
from .types import CartSnapshot

logger = logging.getLogger(__name__)

OVERWRITE = "overwrite"
PRESERVE_CONCURRENT = "preserve_concurrent"
RESTORE_POLICIES = (OVERWRITE, PRESERVE_CONCURRENT)


class CartSnapshotManager:
    """
    Captures, replaces and restores a user's cart for staged buy-now checkouts.

    restore() runs in the cleanup phase of an attempt and never raises: a
    failure there is logged so the error that triggered cleanup, if any,
    stays the one the caller sees.
    """

    def __init__(self, policy: str = OVERWRITE):
        if policy not in RESTORE_POLICIES:
            raise ValueError(f"Unknown cart restore policy: {policy}")
        self.policy = policy

    def snapshot(self, user_id) -> CartSnapshot:
        try:
            rows = CartItem.query.filter_by(user_id=user_id).order_by(CartItem.id.asc()).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Cart snapshot failed: {e}") from e
        return CartSnapshot(
            user_id=user_id,
            items=tuple((ci.product_id, ci.quantity) for ci in rows),
        )

    def replace(self, user_id, items: Iterable[Tuple[int, int]]) -> None:
        items = tuple(items)
        try:
            with transactional("Cart replace failed"):
                CartItem.query.filter_by(user_id=user_id).delete()
                for product_id, quantity in items:
                    db.session.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))
        except SQLAlchemyError as e:
            raise StorageError(f"Cart replace failed: {e}") from e

    def restore(self, user_id, snapshot: CartSnapshot, staged: Iterable[Tuple[int, int]] = ()) -> bool:
        staged = dict(staged)
        try:
            with transactional("Cart restore failed"):
                current = CartItem.query.filter_by(user_id=user_id).all()
                concurrent = [
                    ci for ci in current
                    if ci.product_id not in staged or ci.quantity != staged[ci.product_id]
                ]
                if self.policy == PRESERVE_CONCURRENT:
                    kept = {ci.product_id for ci in concurrent}
                    for ci in current:
                        if ci.product_id not in kept:
                            db.session.delete(ci)
                    db.session.flush()
                    for product_id, quantity in snapshot.items:
                        if product_id not in kept:
                            db.session.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))
                else:
                    if concurrent:
                        logger.warning(
                            "Discarding %d concurrent cart change(s) for user %s during restore",
                            len(concurrent),
                            user_id,
                        )
                    CartItem.query.filter_by(user_id=user_id).delete()
                    db.session.flush()
                    for product_id, quantity in snapshot.items:
                        db.session.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))
        except Exception:
            logger.exception("Cart restore failed for user %s; snapshot=%s", user_id, snapshot.items)
            return False
        return True


__all__ = ["CartSnapshotManager", "OVERWRITE", "PRESERVE_CONCURRENT", "RESTORE_POLICIES"]
