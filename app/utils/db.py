from contextlib import contextmanager
import logging
from models import db

logger = logging.getLogger(__name__)


@contextmanager
def transactional(message="DB transaction failed"):
    """
    One unit of work on the scoped session: commit when the block finishes,
    roll back and re-raise on any error so the caller can translate it.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception as e:
        logger.error("%s: %s", message, e, exc_info=True)
        db.session.rollback()
        raise
