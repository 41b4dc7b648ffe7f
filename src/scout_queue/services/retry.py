"""Optimistic-concurrency retry loop for ledger writes.

A write to a barcode's record runs as one read-modify-write unit inside the
caller's session. A version mismatch (``StaleDataError``) or a lost race on a
unique or primary key (``IntegrityError``) means another request committed
first; the session is rolled back and the whole unit re-run against fresh
state. Any other integrity violation is a storage failure.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from scout_queue.services.errors import ConcurrencyConflict, PersistenceFailure, VoteServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLite reports primary-key clashes as UNIQUE failures too.
_KEY_CONFLICT_MARKERS = ("unique constraint", "duplicate key")
_UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_key_conflict(exc: IntegrityError) -> bool:
    """Return True when ``exc`` is a unique or primary key violation."""
    if getattr(exc.orig, "pgcode", None) == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _KEY_CONFLICT_MARKERS)


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 1.0) -> float:
    """Exponential backoff with jitter: ``min(cap, base * 2^attempt) * U(0.5, 1.0)``."""
    delay = min(max_delay, base_delay * (2 ** attempt))
    return delay * random.uniform(0.5, 1.0)


def run_with_conflict_retry(
    db: Session,
    unit: Callable[[], T],
    *,
    max_retries: int,
    base_delay: float,
    label: str,
) -> T:
    """Run ``unit`` and commit, retrying on concurrency conflicts.

    Args:
        db: Session the unit reads and writes through.
        unit: Callable performing the read-modify-write; it must re-read all
            state it depends on, since it may run more than once.
        max_retries: Retries after the first attempt before giving up.
        base_delay: Base delay in seconds for the backoff between attempts.
        label: Short operation name used in log lines.

    Returns:
        Whatever ``unit`` returned on the attempt that committed.

    Raises:
        ConcurrencyConflict: If every attempt lost the race.
        PersistenceFailure: If the database raised any other error.
        VoteServiceError: Domain errors raised by ``unit`` pass through.
    """
    for attempt in range(max_retries + 1):
        try:
            result = unit()
            db.commit()
            return result
        except (StaleDataError, IntegrityError) as exc:
            db.rollback()
            if isinstance(exc, IntegrityError) and not is_key_conflict(exc):
                logger.error("%s violated a constraint", label, exc_info=True)
                raise PersistenceFailure() from exc
            if attempt >= max_retries:
                logger.warning(
                    "%s gave up after %d attempts (%s)", label, attempt + 1, type(exc).__name__
                )
                raise ConcurrencyConflict() from exc
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "Retry %d/%d for %s (%s), waiting %.3fs",
                attempt + 1,
                max_retries,
                label,
                type(exc).__name__,
                delay,
            )
            time.sleep(delay)
        except VoteServiceError:
            db.rollback()
            raise
        except (DBAPIError, SQLAlchemyError) as exc:
            db.rollback()
            logger.error("%s failed in the storage layer", label, exc_info=True)
            raise PersistenceFailure() from exc

    # max_retries is never negative, so the loop always returns or raises.
    raise ConcurrencyConflict()
