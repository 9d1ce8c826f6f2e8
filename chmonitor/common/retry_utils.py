"""
Retry helpers for ClickHouse round trips.

Only the networking layer retries (the connector's existence check); the
compatibility service and the error classifier see the final outcome.
"""

import logging
import time
from functools import wraps
from typing import Callable, Optional, Tuple, Type, Union

logger = logging.getLogger(__name__)

# 159 TIMEOUT_EXCEEDED, 202 TOO_MANY_SIMULTANEOUS_QUERIES, 209 SOCKET_TIMEOUT,
# 210 NETWORK_ERROR, 242 TABLE_IS_READ_ONLY, 425 SYSTEM_ERROR
TRANSIENT_CLICKHOUSE_CODES = ('159', '202', '209', '210', '242', '425')

TRANSIENT_PATTERNS = (
    'connection refused',
    'connection reset',
    'timed out',
    'too many simultaneous queries',
    'service unavailable',
    '502',
    '503',
    '504',
)

ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


def retry_on_failure(max_attempts: int = 3, delay: float = 1.0, backoff: float = 2.0,
                     exceptions: ExceptionTypes = Exception,
                     retry_if: Optional[Callable[[BaseException], bool]] = None,
                     log_attempts: bool = True):
    """
    Retries the decorated call with exponential backoff.

    Args:
        max_attempts: Total calls before giving up (>= 1).
        delay: Seconds to sleep after the first failure.
        backoff: Factor applied to the sleep after each failure.
        exceptions: Exception type(s) that trigger a retry; others propagate.
        retry_if: Optional predicate; a caught error it rejects propagates at once.
        log_attempts: Log each failed attempt.

    Raises:
        ValueError: If max_attempts is less than 1.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            pause = delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    retryable = retry_if is None or retry_if(e)
                    if not retryable or attempt == max_attempts:
                        if log_attempts and retryable:
                            logger.error(f"{func.__name__} gave up after {attempt} attempt(s): {e}")
                        raise
                    if log_attempts:
                        logger.warning(
                            f"{func.__name__} failed ({attempt}/{max_attempts}): {e}; "
                            f"next attempt in {pause:.1f}s"
                        )
                    time.sleep(pause)
                    pause *= backoff

        return wrapper
    return decorator


def is_transient_error(error: BaseException) -> bool:
    """True when a driver or server error is worth another attempt."""
    text = str(error).lower()
    if any(f'code: {code}' in text for code in TRANSIENT_CLICKHOUSE_CODES):
        return True
    return any(pattern in text for pattern in TRANSIENT_PATTERNS)
