# backend/modules/menu_sync/utils/database_retry.py

import logging
import random
import time
from typing import TypeVar, Callable, Set, Tuple, Type
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Database error codes that indicate retry-able conditions
RETRY_ERROR_CODES: Set[str] = {
    # PostgreSQL
    "23505",  # unique_violation (lost a conditional increment race)
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
    # MySQL
    "1062",  # Duplicate entry
    "1205",  # Lock wait timeout exceeded
    "1213",  # Deadlock found when trying to get lock
    # SQLite (for testing)
    "database is locked",
    "database table is locked",
    "unique constraint failed",
}


def is_retryable_error(error: Exception) -> bool:
    """
    Check if a database error is a transient write conflict

    A unique violation counts as retryable because version numbers are
    assigned by conditional increment: the loser of a race re-reads the
    counter and tries again.
    """
    if isinstance(error, (IntegrityError, OperationalError, DBAPIError)):
        error_str = str(error).lower()
        if any(code in error_str for code in ["deadlock", "serialization", "lock", "unique"]):
            return True

        orig = getattr(error, "orig", None)
        if orig is not None and getattr(orig, "pgcode", None):
            return orig.pgcode in RETRY_ERROR_CODES
        if orig is not None and getattr(orig, "args", None):
            error_code = str(orig.args[0]).lower()
            return any(code in error_code for code in RETRY_ERROR_CODES)

    return False


def retry_on_conflict(
    func: Callable[..., T],
    *args,
    max_retries: int = 3,
    initial_delay: float = 0.05,
    max_delay: float = 1.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    on_retry: Callable[[Exception], None] = None,
    retry_on: Tuple[Type[Exception], ...] = (),
    **kwargs,
) -> T:
    """
    Retry a function on write conflicts with exponential backoff

    Args:
        func: The function to retry
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        backoff_factor: Multiplier for exponential backoff
        jitter: Add random jitter to prevent thundering herd
        on_retry: Called with the failed attempt's error before sleeping,
            typically to roll back the session
        retry_on: Extra exception types that are always retried

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries fail
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            retryable = isinstance(e, retry_on) or is_retryable_error(e)
            if not retryable or attempt == max_retries:
                raise

            if on_retry is not None:
                on_retry(e)

            actual_delay = min(delay, max_delay)
            if jitter:
                # Add random jitter (0-25% of delay)
                actual_delay *= 1 + random.random() * 0.25

            logger.warning(
                f"Write conflict on attempt {attempt + 1}/{max_retries + 1}. "
                f"Retrying in {actual_delay:.2f}s. Error: {str(e)}"
            )

            time.sleep(actual_delay)
            delay *= backoff_factor
