"""
Retry helpers for short policy-admin reads and single-record edits.
"""
import time
from typing import TypeVar, Callable, Any, Iterator, Optional
from functools import wraps

from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError, IntegrityError

from app.core.logging import get_logger

logger = get_logger(__name__)


T = TypeVar("T")


class DatabaseOperationError(Exception):
    """Raised when a read keeps hitting transient database errors."""

    def __init__(self, message: str, original_error: Exception = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


def _delays(max_retries: int, retry_delay: float, exponential_backoff: bool = True) -> Iterator[Optional[float]]:
    """Yield the pause before each retry, then None once attempts run out."""
    delay = retry_delay
    for _ in range(max_retries):
        yield delay
        if exponential_backoff:
            delay *= 2
    yield None


def _find_session(args: tuple, kwargs: dict) -> Optional[Session]:
    db = kwargs.get("db")
    if db is not None:
        return db
    return next((arg for arg in args if isinstance(arg, Session)), None)


def with_db_retry(
    max_retries: int = 3,
    retry_delay: float = 0.5,
    exponential_backoff: bool = True,
    rollback_on_error: bool = True,
):
    """
    Retry a read-mostly function when the database drops the connection or times out on a lock.

    Integrity errors are never retried: a repeated read cannot fix them.

    Args:
        max_retries: Extra attempts after the first one
        retry_delay: Pause before the first retry, in seconds
        exponential_backoff: Double the pause after every retry
        rollback_on_error: Roll back the Session argument before retrying
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            attempt = 0
            for delay in _delays(max_retries, retry_delay, exponential_backoff):
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except OperationalError as e:
                    db = _find_session(args, kwargs) if rollback_on_error else None
                    if db is not None:
                        db.rollback()

                    if delay is None:
                        logger.error(f"{func.__name__} gave up after {attempt} attempts: {e}")
                        raise DatabaseOperationError(
                            f"{func.__name__} failed after {attempt} attempts",
                            original_error=e,
                        )
                    logger.warning(f"{func.__name__} attempt {attempt} failed: {e}; next try in {delay:.1f}s")
                    time.sleep(delay)

            raise DatabaseOperationError(f"{func.__name__} failed")

        return wrapper
    return decorator


def update_record_with_retry(
    db: Session,
    model: Any,
    record_id: Any,
    updates: dict,
    max_retries: int = 3,
    retry_delay: float = 0.5,
) -> Optional[str]:
    """
    Apply column updates to one record and commit, retrying transient failures.

    Returns None on success, otherwise "not_found", "conflict" (a unique value is
    taken by another record) or "unavailable" (the database kept failing).
    """
    name = model.__name__
    for delay in _delays(max_retries, retry_delay):
        try:
            record = db.get(model, record_id)
            if record is None:
                logger.warning(f"{name} {record_id} vanished before the edit was saved")
                return "not_found"

            for column, value in updates.items():
                setattr(record, column, value)
            db.commit()
            return None

        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Edit of {name} {record_id} rejected: {e.orig}")
            return "conflict"

        except OperationalError as e:
            db.rollback()
            if delay is None:
                logger.error(f"Edit of {name} {record_id} abandoned: {e}")
                return "unavailable"
            logger.warning(f"Edit of {name} {record_id} hit a transient error: {e}; retrying in {delay:.1f}s")
            time.sleep(delay)

    return "unavailable"
