import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import CascadeFailure, FileTreeError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SubtreeChanged(Exception):
    """The subtree snapshot went stale between collection and commit."""


def run_cascade(db: Session, label: str, apply: Callable[[], T]) -> T:
    """Run ``apply`` and commit it as one transaction.

    ``apply`` loads its snapshot, stamps every row and flushes. When another
    writer got in between (version mismatch or a changed subtree) everything
    is rolled back and the whole cascade starts over from a fresh snapshot.
    """
    attempts = max(1, settings.cascade_max_retries)
    for attempt in range(1, attempts + 1):
        try:
            result = apply()
            db.commit()
            return result
        except (StaleDataError, SubtreeChanged) as e:
            db.rollback()
            logger.warning(f"{label}: concurrent change detected (attempt {attempt}/{attempts}): {e}")
        except FileTreeError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"{label} failed and was rolled back: {e}")
            raise CascadeFailure(f"{label} failed, nothing was changed") from e

    raise CascadeFailure(f"{label} could not be applied after {attempts} attempts, nothing was changed")
