"""Fixed-delay retry around provider calls."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from transcript_matrix.domain.errors import BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry(
    operation: Callable[[], T],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_permanent: bool = False,
    label: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call `operation` until it succeeds or `max_attempts` calls have failed.

    Waits `base_delay` seconds between attempts. The last error is re-raised
    as-is. A BackendError marked permanent stops the loop immediately unless
    `retry_permanent` is set.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as e:
            if isinstance(e, BackendError) and e.permanent and not retry_permanent:
                logger.debug(f"{label}: permanent failure, not retrying: {e}")
                raise
            if attempt >= max_attempts:
                raise
            logger.info(f"{label}: attempt {attempt}/{max_attempts} failed ({e}), retrying in {base_delay}s")
            sleep(base_delay)

    raise AssertionError("unreachable")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    retry_permanent: bool = False

    def call(self, operation: Callable[[], T], label: str = "operation") -> T:
        return retry(
            operation,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            retry_permanent=self.retry_permanent,
            label=label,
        )
