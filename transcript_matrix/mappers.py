"""Domain <-> DTO mappers.

Converts TranscriptSegment (domain) to SegmentDTO (pydantic) and run
reports to API/log summaries. On-disk and API schemas live in models.py.
"""

from datetime import datetime
from typing import Iterable, Sequence

from transcript_matrix.domain.models import (
    ProviderFailure, RunReport, TranscriptResult, TranscriptSegment,
)
from transcript_matrix.models import (
    AnalysisPairDTO, FailureDTO, RunSummary, SegmentDTO, TranscriptionIndex,
)


def segment_to_dto(seg: TranscriptSegment) -> SegmentDTO:
    return SegmentDTO(start=seg.start, end=seg.end, text=seg.text)


def dto_to_segment(dto: SegmentDTO) -> TranscriptSegment:
    return TranscriptSegment(start=dto.start, end=dto.end, text=dto.text)


def segments_to_dtos(segments: Iterable[TranscriptSegment]) -> list[SegmentDTO]:
    """Convert domain segments to DTOs, preserving order."""
    return [segment_to_dto(seg) for seg in segments]


def dtos_to_segments(dtos: Iterable[SegmentDTO]) -> list[TranscriptSegment]:
    return [dto_to_segment(dto) for dto in dtos]


def build_transcription_index(
    video_name: str,
    results: Sequence[TranscriptResult],
    created_at: datetime,
) -> TranscriptionIndex:
    return TranscriptionIndex(
        created_at=created_at,
        video=video_name,
        providers=[r.provider.value for r in results],
        transcriptions={r.provider.value: segments_to_dtos(r.segments) for r in results},
    )


def failure_to_dto(failure: ProviderFailure) -> FailureDTO:
    return FailureDTO(
        stage=failure.stage,
        provider=failure.provider,
        kind=failure.kind,
        message=failure.message,
    )


def report_to_summary(report: RunReport) -> RunSummary:
    return RunSummary(
        video=report.video,
        state=report.state,
        output_dir=str(report.output_dir),
        transcribed_by=[p.value for p in report.transcribed_by],
        analyses=[
            AnalysisPairDTO(analysis_provider=a.value, transcription_provider=t.value)
            for a, t in report.analyses
        ],
        failures=[failure_to_dto(f) for f in report.failures],
        artifacts=list(report.artifacts),
    )


def format_summary(report: RunReport) -> str:
    """Human-readable end-of-run summary."""
    lines = [f"===== Results Summary: {report.video} ({report.state}) ====="]
    lines.append(f"Output directory: {report.output_dir}")
    lines.append(
        "Transcription succeeded: "
        + (", ".join(p.value for p in report.transcribed_by) or "none")
    )
    if report.analyses:
        lines.append("Analyses produced:")
        for analysis, source in report.analyses:
            lines.append(f"- {analysis.value} on {source.value} transcription")
    if report.failures:
        lines.append(f"Failures ({len(report.failures)}):")
        for f in report.failures:
            lines.append(f"- [{f.stage}] {f.provider} ({f.kind}): {f.message}")
    if report.artifacts:
        lines.append("Files written:")
        lines.extend(f"- {name}" for name in report.artifacts)
    return "\n".join(lines)
