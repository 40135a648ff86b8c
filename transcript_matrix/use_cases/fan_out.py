"""Concurrent fan-out/fan-in over independent provider calls."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Hashable, Mapping, Optional, TypeVar

from transcript_matrix.domain.errors import BackendError
from transcript_matrix.domain.models import ProviderFailure

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def describe_failure(stage: str, label: str, exc: BaseException) -> ProviderFailure:
    if isinstance(exc, BackendError):
        kind = exc.kind.value
        message = str(exc)
        if exc.cause is not None and str(exc.cause) not in message:
            message = f"{message} (caused by {type(exc.cause).__name__}: {exc.cause})"
    else:
        kind = "unexpected"
        message = f"{type(exc).__name__}: {exc}"
    return ProviderFailure(stage=stage, provider=label, kind=kind, message=message)


def fan_out(
    calls: Mapping[K, Callable[[], V]],
    max_workers: int,
    cancel_event: threading.Event,
    on_settled: Optional[Callable[[K, Optional[BaseException], int, int], None]] = None,
) -> tuple[dict[K, V], dict[K, Exception]]:
    """Run every call concurrently and wait for all of them to settle.

    Each call is guarded on its own: an exception lands in the error map
    under that call's key and never reaches its siblings. If the caller is
    interrupted while waiting, `cancel_event` is set so polling calls stop.
    """
    results: dict[K, V] = {}
    errors: dict[K, Exception] = {}
    if not calls:
        return results, errors

    pool = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(calls))), thread_name_prefix="matrix")
    try:
        futures = {pool.submit(call): key for key, call in calls.items()}
        settled = 0
        for future in as_completed(futures):
            key = futures[future]
            settled += 1
            error: Optional[Exception] = None
            try:
                results[key] = future.result()
            except Exception as e:
                errors[key] = error = e
            if on_settled is not None:
                on_settled(key, error, settled, len(futures))
    except BaseException:
        cancel_event.set()
        raise
    finally:
        pool.shutdown(wait=True, cancel_futures=True)

    return results, errors
