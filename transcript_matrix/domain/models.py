"""Framework-agnostic domain models for transcript-matrix.

Provider SDK types and pydantic DTOs stay at the edges; everything that
flows between stages is one of these dataclasses.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class TranscriptionProvider(str, Enum):
    """Closed set of transcription backends. Values appear in filenames."""
    OPENAI = "openai"
    AMAZON = "amazon"
    ASSEMBLYAI = "assemblyai"
    GEMINI = "gemini"


class AnalysisProvider(str, Enum):
    """Closed set of analysis backends. Values appear in filenames."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


@dataclass(frozen=True)
class TranscriptSegment:
    """A single transcribed span in seconds from the start of the audio."""
    start: float
    end: float
    text: str

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Segment ends before it starts: {self.start} > {self.end}")


@dataclass(frozen=True)
class Word:
    """A provider-native word timing, in seconds."""
    text: str
    start: float
    end: float


@dataclass(frozen=True)
class TranscriptResult:
    provider: TranscriptionProvider
    segments: tuple[TranscriptSegment, ...]


@dataclass(frozen=True)
class AnalysisDocument:
    """Opaque analysis payload tagged with the pair that produced it."""
    provider: AnalysisProvider
    source: TranscriptionProvider
    include_images: bool
    content: str

    @property
    def filename(self) -> str:
        suffix = "_with_images" if self.include_images else ""
        return f"analysis_{self.provider.value}_transcribed_by_{self.source.value}{suffix}.json"


@dataclass(frozen=True)
class MediaDerivatives:
    audio_path: Path
    frames: tuple[Path, ...] = ()


@dataclass(frozen=True)
class ProviderFailure:
    """One itemized failure: which stage, which provider (or pair), and why."""
    stage: str
    provider: str
    kind: str
    message: str


@dataclass
class RunContext:
    """State for a single video run. Never outlives the run."""
    video_path: Path
    output_dir: Path
    include_images: bool = False
    only_transcribe: bool = False
    media: Optional[MediaDerivatives] = None
    transcripts: dict[TranscriptionProvider, TranscriptResult] = field(default_factory=dict)

    @property
    def video_name(self) -> str:
        return self.video_path.name


@dataclass
class RunReport:
    """Outcome of a run, successful or not."""
    video: str
    output_dir: Path
    state: str
    transcribed_by: list[TranscriptionProvider] = field(default_factory=list)
    analyses: list[tuple[AnalysisProvider, TranscriptionProvider]] = field(default_factory=list)
    failures: list[ProviderFailure] = field(default_factory=list)
    artifacts: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == "done"
