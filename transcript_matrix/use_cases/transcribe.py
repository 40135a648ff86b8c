"""TranscriptionStage: every transcription provider over the same audio.

Accepts adapters via dependency injection; each provider call runs
concurrently, wrapped in the retry policy, and fails on its own.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from transcript_matrix.domain.errors import AllProvidersFailedError
from transcript_matrix.domain.models import (
    ProviderFailure, TranscriptionProvider, TranscriptResult,
)
from transcript_matrix.ports.progress import ProgressPort
from transcript_matrix.ports.transcription import TranscriptionPort
from transcript_matrix.retry import RetryPolicy
from transcript_matrix.use_cases.fan_out import describe_failure, fan_out

logger = logging.getLogger(__name__)

STAGE_NAME = "transcription"


@dataclass
class TranscriptionOutcome:
    """Surviving transcripts in configured provider order, plus what failed."""
    results: dict[TranscriptionProvider, TranscriptResult] = field(default_factory=dict)
    failures: list[ProviderFailure] = field(default_factory=list)


class TranscriptionStage:
    def __init__(
        self,
        adapters: Mapping[TranscriptionProvider, TranscriptionPort],
        retry_policy: RetryPolicy,
        progress: ProgressPort,
        max_workers: int = 8,
    ):
        self._adapters = dict(adapters)
        self._retry = retry_policy
        self._progress = progress
        self._max_workers = max_workers

    def run(
        self,
        audio_path: str,
        providers: Sequence[TranscriptionProvider],
        run_id: str = "-",
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionOutcome:
        """Transcribe with every provider. Raises AllProvidersFailedError if none succeeds."""
        ordered = list(dict.fromkeys(providers))
        if not ordered:
            raise ValueError("At least one transcription provider is required")
        unknown = [p.value for p in ordered if p not in self._adapters]
        if unknown:
            raise ValueError(f"No adapter configured for transcription providers: {unknown}")

        cancel_event = cancel_event or threading.Event()
        logger.info(f"Transcribing with: {', '.join(p.value for p in ordered)}")

        def call(provider: TranscriptionProvider):
            adapter = self._adapters[provider]
            return lambda: self._retry.call(
                lambda: adapter.transcribe(audio_path, cancel_event=cancel_event),
                label=f"{provider.value} transcription",
            )

        def settled(provider, error, done, total):
            status = "failed" if error else "ok"
            self._progress.report(run_id, "transcribing", progress=done / total, detail=f"{provider.value} {status}")

        segments_by_provider, errors = fan_out(
            {p: call(p) for p in ordered},
            self._max_workers,
            cancel_event,
            on_settled=settled,
        )

        outcome = TranscriptionOutcome()
        for provider in ordered:
            if provider in errors:
                error = errors[provider]
                failure = describe_failure(STAGE_NAME, provider.value, error)
                logger.error(f"Error with {provider.value} transcription ({failure.kind}): {failure.message}")
                logger.debug(f"{provider.value} transcription traceback", exc_info=error)
                outcome.failures.append(failure)
                continue
            segments = tuple(segments_by_provider[provider])
            outcome.results[provider] = TranscriptResult(provider=provider, segments=segments)
            logger.info(f"{provider.value}: {len(segments)} segments")

        if not outcome.results:
            raise AllProvidersFailedError(outcome.failures)
        return outcome
