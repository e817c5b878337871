"""Commit helper shared by the domain services"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ConflictError, UpstreamError

logger = logging.getLogger(__name__)


def commit_or_raise(db: Session, action: str, duplicate_message: str = "Duplicate record") -> None:
    """
    Commit the unit of work. On failure roll back so nothing from it persists,
    mapping unique violations to ConflictError and anything else to UpstreamError.
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"⚠️ Integrity error while trying to {action}: {e.orig}")
        raise ConflictError(duplicate_message) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Database error while trying to {action}: {e}")
        raise UpstreamError(f"Failed to {action}") from e
