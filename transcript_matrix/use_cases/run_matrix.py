"""RunMatrixUseCase: one video through media extraction, transcription and analysis.

Owns the run state machine and the per-video output directory. Adapters,
progress reporting and the result sink are injected.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional

from transcript_matrix.adapters.local.filesystem_sink import FilesystemResultSink, OutputDirectory
from transcript_matrix.domain.errors import (
    AllProvidersFailedError, PersistenceError,
)
from transcript_matrix.domain.models import (
    AnalysisProvider, ProviderFailure, RunContext, RunReport, TranscriptionProvider,
)
from transcript_matrix.mappers import format_summary
from transcript_matrix.ports.analysis import AnalysisPort
from transcript_matrix.ports.media import MediaExtractionPort
from transcript_matrix.ports.progress import ProgressPort
from transcript_matrix.ports.result_sink import ResultSinkPort
from transcript_matrix.ports.transcription import TranscriptionPort
from transcript_matrix.retry import RetryPolicy
from transcript_matrix.use_cases.analyze import AnalysisStage
from transcript_matrix.use_cases.transcribe import TranscriptionStage

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    INIT = "init"
    EXTRACTING_MEDIA = "extracting_media"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    DONE = "done"
    FAILED = "failed"


TRANSITIONS: dict[RunState, frozenset] = {
    RunState.INIT: frozenset({RunState.EXTRACTING_MEDIA, RunState.FAILED}),
    RunState.EXTRACTING_MEDIA: frozenset({RunState.TRANSCRIBING, RunState.FAILED}),
    RunState.TRANSCRIBING: frozenset({RunState.ANALYZING, RunState.DONE, RunState.FAILED}),
    RunState.ANALYZING: frozenset({RunState.DONE, RunState.FAILED}),
    RunState.DONE: frozenset(),
    RunState.FAILED: frozenset(),
}


class RunStateMachine:
    """Tracks a run's state and reports each transition."""

    def __init__(self, run_id: str, progress: ProgressPort):
        self.run_id = run_id
        self.state = RunState.INIT
        self._progress = progress

    @property
    def terminal(self) -> bool:
        return not TRANSITIONS[self.state]

    def advance(self, target: RunState, detail: Optional[str] = None) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal run transition: {self.state.value} -> {target.value}")
        logger.debug(f"[{self.run_id}] {self.state.value} -> {target.value}")
        self.state = target
        progress = 1.0 if target in (RunState.DONE, RunState.FAILED) else 0.0
        self._progress.report(self.run_id, target.value, progress=progress, detail=detail)

    def fail(self, detail: str) -> None:
        if not self.terminal:
            self.advance(RunState.FAILED, detail=detail)


@dataclass
class RunRequest:
    video_path: Path
    output_root: Path
    include_images: bool = False
    only_transcribe: bool = False


class RunMatrixUseCase:
    def __init__(
        self,
        media: MediaExtractionPort,
        transcribers: Mapping[TranscriptionProvider, TranscriptionPort],
        analyzers: Mapping[AnalysisProvider, AnalysisPort],
        progress: ProgressPort,
        retry_policy: Optional[RetryPolicy] = None,
        max_workers: int = 8,
        sink_factory: Callable[[Path], ResultSinkPort] = FilesystemResultSink,
        removal_attempts: int = 3,
        removal_delay: float = 1.0,
    ):
        if not transcribers:
            raise ValueError("At least one transcription adapter is required")
        retry_policy = retry_policy or RetryPolicy()
        self._media = media
        self._transcription_providers = list(transcribers)
        self._analysis_providers = list(analyzers)
        self._transcription = TranscriptionStage(transcribers, retry_policy, progress, max_workers)
        self._analysis = AnalysisStage(analyzers, retry_policy, progress, max_workers)
        self._progress = progress
        self._sink_factory = sink_factory
        self._removal_attempts = removal_attempts
        self._removal_delay = removal_delay

    @property
    def transcription_providers(self) -> list[TranscriptionProvider]:
        return list(self._transcription_providers)

    @property
    def analysis_providers(self) -> list[AnalysisProvider]:
        return list(self._analysis_providers)

    def execute(self, request: RunRequest) -> RunReport:
        """Process one video. Raises MediaExtractionError or AllProvidersFailedError on failure."""
        video_path = Path(request.video_path)
        output_dir = Path(request.output_root) / video_path.stem
        run_id = uuid.uuid4().hex[:12]
        machine = RunStateMachine(run_id, self._progress)
        ctx = RunContext(
            video_path=video_path,
            output_dir=output_dir,
            include_images=request.include_images,
            only_transcribe=request.only_transcribe,
        )
        report = RunReport(video=ctx.video_name, output_dir=output_dir, state=machine.state.value)
        logger.info(f"[{run_id}] Processing video: {video_path}")

        cancel_event = threading.Event()
        with OutputDirectory(output_dir, self._removal_attempts, self._removal_delay):
            sink = self._sink_factory(output_dir)
            try:
                machine.advance(RunState.EXTRACTING_MEDIA)
                ctx.media = self._media.extract(video_path, output_dir, include_frames=request.include_images)
                report.artifacts.append(ctx.media.audio_path.name)
                if ctx.media.frames:
                    logger.info(f"Extracted {len(ctx.media.frames)} frames")

                machine.advance(RunState.TRANSCRIBING)
                outcome = self._transcription.run(
                    str(ctx.media.audio_path),
                    self._transcription_providers,
                    run_id=run_id,
                    cancel_event=cancel_event,
                )
                ctx.transcripts = outcome.results
                report.transcribed_by = list(outcome.results)
                report.failures.extend(outcome.failures)
                self._persist_transcripts(sink, ctx, report)

                if request.only_transcribe:
                    logger.info("Transcription-only mode, skipping analysis")
                else:
                    machine.advance(RunState.ANALYZING)
                    self._analyze(sink, ctx, report, run_id)

                machine.advance(RunState.DONE, detail=f"{len(report.failures)} failures")
            except AllProvidersFailedError as e:
                report.failures.extend(e.failures)
                machine.fail(str(e))
                raise
            except BaseException as e:
                cancel_event.set()
                machine.fail(f"{type(e).__name__}: {e}")
                raise
            finally:
                report.state = machine.state.value
                report.artifacts.extend(sink.list_artifacts())
                logger.info(format_summary(report))

        return report

    def _persist_transcripts(self, sink: ResultSinkPort, ctx: RunContext, report: RunReport) -> None:
        persisted = []
        for provider, result in ctx.transcripts.items():
            try:
                sink.write_transcript(result)
                persisted.append(result)
            except PersistenceError as e:
                self._record_persistence_failure(report, provider.value, e)

        try:
            sink.write_index(ctx.video_name, persisted)
        except PersistenceError as e:
            self._record_persistence_failure(report, "index", e)

    def _analyze(self, sink: ResultSinkPort, ctx: RunContext, report: RunReport, run_id: str) -> None:
        frames = ctx.media.frames if ctx.media else ()
        outcome = self._analysis.run(
            ctx.transcripts,
            frames,
            ctx.include_images,
            self._analysis_providers,
            run_id=run_id,
        )
        report.failures.extend(outcome.failures)
        for document in outcome.documents:
            try:
                sink.write_analysis(document)
                report.analyses.append((document.provider, document.source))
            except PersistenceError as e:
                self._record_persistence_failure(report, document.filename, e)

    @staticmethod
    def _record_persistence_failure(report: RunReport, label: str, error: PersistenceError) -> None:
        logger.error(f"Could not write {label}: {error}")
        report.failures.append(
            ProviderFailure(stage="persistence", provider=label, kind="persistence", message=str(error))
        )
