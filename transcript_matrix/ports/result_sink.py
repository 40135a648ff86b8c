"""ResultSinkPort: abstract interface for writing run artifacts."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from transcript_matrix.domain.models import AnalysisDocument, TranscriptResult


class ResultSinkPort(ABC):
    @property
    @abstractmethod
    def root(self) -> Path:
        """Directory every artifact of this run is written under."""

    @abstractmethod
    def write_transcript(self, result: TranscriptResult) -> list[str]:
        """Write structured + raw transcript files. Returns written filenames."""

    @abstractmethod
    def write_index(self, video_name: str, results: Sequence[TranscriptResult]) -> str:
        """Write the combined transcription index. Returns its filename."""

    @abstractmethod
    def write_analysis(self, document: AnalysisDocument) -> str:
        """Write one analysis document. Returns its filename."""

    @abstractmethod
    def list_artifacts(self) -> Sequence[str]:
        """Relative paths of everything written so far."""
