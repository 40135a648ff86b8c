"""Bounded status polling for job-based backends."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from transcript_matrix.domain.errors import BackendError, ErrorKind

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass
class JobStatus:
    state: JobState
    raw_status: str = ""
    detail: Optional[str] = None
    payload: Any = None


def wait_for_job(
    check: Callable[[], JobStatus],
    *,
    provider: str,
    interval: float = 5.0,
    max_polls: int = 360,
    cancel_event: Optional[threading.Event] = None,
) -> JobStatus:
    """Poll `check` until the job completes.

    Raises BackendError (permanent) on an explicit failure, on a status the
    backend should never report, or when `cancel_event` is set; raises
    BackendError (transient) once `max_polls` checks have all seen a running job.
    """
    cancel_event = cancel_event or threading.Event()

    for poll in range(1, max_polls + 1):
        status = check()

        if status.state is JobState.COMPLETED:
            return status
        if status.state is JobState.FAILED:
            raise BackendError(
                provider,
                f"Job failed: {status.detail or status.raw_status}",
                kind=ErrorKind.PERMANENT,
            )
        if status.state is JobState.UNKNOWN:
            raise BackendError(
                provider,
                f"Job reached unexpected status {status.raw_status!r}",
                kind=ErrorKind.PERMANENT,
            )

        logger.info(f"{provider}: job in progress (status: {status.raw_status}), poll {poll}/{max_polls}")
        if poll < max_polls and cancel_event.wait(interval):
            raise BackendError(provider, "Job polling cancelled", kind=ErrorKind.PERMANENT)

    raise BackendError(
        provider,
        f"Job did not finish after {max_polls} polls",
        kind=ErrorKind.TRANSIENT,
    )
