"""AnalysisStage: every analysis provider over every surviving transcript."""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence, Union

from transcript_matrix.domain.models import (
    AnalysisDocument, AnalysisProvider, ProviderFailure,
    TranscriptionProvider, TranscriptResult,
)
from transcript_matrix.ports.analysis import AnalysisPort
from transcript_matrix.ports.progress import ProgressPort
from transcript_matrix.retry import RetryPolicy
from transcript_matrix.use_cases.fan_out import describe_failure, fan_out

logger = logging.getLogger(__name__)

STAGE_NAME = "analysis"

Pair = tuple[TranscriptionProvider, AnalysisProvider]


def pair_label(pair: Pair) -> str:
    source, analyzer = pair
    return f"{analyzer.value}@{source.value}"


@dataclass
class AnalysisOutcome:
    documents: list[AnalysisDocument] = field(default_factory=list)
    failures: list[ProviderFailure] = field(default_factory=list)


class AnalysisStage:
    def __init__(
        self,
        adapters: Mapping[AnalysisProvider, AnalysisPort],
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
        transcripts: Mapping[TranscriptionProvider, TranscriptResult],
        frames: Sequence[Union[str, Path]],
        include_images: bool,
        providers: Sequence[AnalysisProvider],
        run_id: str = "-",
    ) -> AnalysisOutcome:
        """Analyze each (transcript, analyzer) pair. Failed pairs are reported, never raised."""
        ordered = list(dict.fromkeys(providers))
        unknown = [p.value for p in ordered if p not in self._adapters]
        if unknown:
            raise ValueError(f"No adapter configured for analysis providers: {unknown}")

        # Frames never leave this stage unless images were requested.
        frame_paths = [str(f) for f in frames] if include_images else []
        pairs: list[Pair] = [(source, analyzer) for source in transcripts for analyzer in ordered]
        logger.info(f"Running {len(pairs)} analyses ({len(transcripts)} transcripts x {len(ordered)} analyzers)")

        def call(pair: Pair):
            source, analyzer = pair
            adapter = self._adapters[analyzer]
            segments = transcripts[source].segments

            def analyze() -> AnalysisDocument:
                content = self._retry.call(
                    lambda: adapter.analyze(segments, frame_paths, include_images),
                    label=f"{pair_label(pair)} analysis",
                )
                return AnalysisDocument(
                    provider=analyzer,
                    source=source,
                    include_images=include_images,
                    content=content,
                )
            return analyze

        def settled(pair, error, done, total):
            status = "failed" if error else "ok"
            self._progress.report(run_id, "analyzing", progress=done / total, detail=f"{pair_label(pair)} {status}")

        documents, errors = fan_out(
            {pair: call(pair) for pair in pairs},
            self._max_workers,
            threading.Event(),
            on_settled=settled,
        )

        outcome = AnalysisOutcome()
        for pair in pairs:
            if pair in errors:
                failure = describe_failure(STAGE_NAME, pair_label(pair), errors[pair])
                logger.error(
                    f"Error with {pair[1].value} analysis ({pair[0].value} transcription, "
                    f"{failure.kind}): {failure.message}"
                )
                logger.debug(f"{pair_label(pair)} traceback", exc_info=errors[pair])
                outcome.failures.append(failure)
            else:
                outcome.documents.append(documents[pair])
        return outcome
