import logging
from celery import shared_task
from flask import current_app

from app.services.checkout.reconcile import find_partial_commits

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def reconcile_partial_commits_task(self, limit: int = 500) -> list:
    """Report orders whose commit stopped between steps."""
    from app import create_app
    app = current_app._get_current_object() if current_app else create_app()
    with app.app_context():
        try:
            partial = find_partial_commits(limit=limit)
        except Exception as exc:
            logger.error("Reconciliation scan failed: %s", exc)
            raise self.retry(exc=exc)
        for p in partial:
            logger.error({"event": "partial_commit_found", **p.to_dict()})
        return [p.order_id for p in partial]
