"""
Bounded exponential backoff for transient store/database failures.

Only UnavailableError (connection-class) is retried. Conflicts, invalid
input and expiry are legitimate outcomes and are raised immediately.
"""

import logging
import time
from typing import Callable, TypeVar

from ..errors import UnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retry(
    fn: Callable[[], T],
    operation: str,
    attempts: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn, retrying UnavailableError up to `attempts` times in total.

    Delay doubles after each failure: base_delay, 2*base_delay, ...
    capped at max_delay. The last UnavailableError is re-raised.
    """
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except UnavailableError as e:
            if attempt >= attempts:
                logger.warning(f"{operation} failed after {attempts} attempts: {e}")
                raise
            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            logger.info(
                f"Retrying {operation} after {delay:.2f}s (attempt {attempt + 1}/{attempts})"
            )
            sleep(delay)

    raise UnavailableError(f"{operation}: no attempts made")
