import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.services.errors import DuplicateRequest, StoreUnavailable

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, operation: str):
    """Run the enclosed block as one transaction: commit on success, roll back otherwise.

    Store failures surface as StoreUnavailable so callers can treat them as
    "no effect" and retry.
    """
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Store failure during %s: %s", operation, exc, exc_info=True)
        raise StoreUnavailable() from exc
    except Exception:
        db.rollback()
        raise


def flush_unique(db: Session, what: str) -> None:
    """Flush pending rows, turning a unique-key collision into DuplicateRequest."""
    try:
        db.flush()
    except IntegrityError as exc:
        raise DuplicateRequest(f"Duplicate {what}") from exc
