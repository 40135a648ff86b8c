"""LogProgressAdapter: reports run progress via logging, with per-stage timings."""

import logging
import threading
import time
from typing import Callable, Optional

from transcript_matrix.ports.progress import ProgressPort

logger = logging.getLogger(__name__)

TERMINAL_STAGES = ("done", "failed")


class LogProgressAdapter(ProgressPort):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        # run_id -> (current stage, when it was entered, when the run started)
        self._runs: dict[str, tuple[str, float, float]] = {}

    def report(
        self,
        run_id: str,
        stage: str,
        progress: float = 0.0,
        detail: Optional[str] = None,
    ) -> None:
        now = self._clock()
        with self._lock:
            previous = self._runs.get(run_id)
            if previous is None:
                self._runs[run_id] = (stage, now, now)
            elif previous[0] != stage:
                logger.debug(f"[{run_id}] {previous[0]} took {now - previous[1]:.1f}s")
                self._runs[run_id] = (stage, now, previous[2])
            started = self._runs[run_id][2]
            if stage in TERMINAL_STAGES:
                self._runs.pop(run_id, None)

        msg = f"[{run_id}] {stage}"
        if 0 < progress < 1:
            msg += f" {progress:.0%}"
        if detail:
            msg += f": {detail}"
        if stage in TERMINAL_STAGES:
            msg += f" (total {now - started:.1f}s)"

        if stage == "failed":
            logger.warning(msg)
        else:
            logger.info(msg)

    def active_runs(self) -> list[str]:
        with self._lock:
            return list(self._runs)
