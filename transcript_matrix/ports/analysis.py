"""AnalysisPort: abstract interface for content-analysis (LLM) backends."""

from abc import ABC, abstractmethod
from typing import Sequence

from transcript_matrix.domain.models import AnalysisProvider, TranscriptSegment


class AnalysisPort(ABC):
    @property
    @abstractmethod
    def provider(self) -> AnalysisProvider:
        """The provider tag this adapter answers to."""

    @abstractmethod
    def analyze(
        self,
        segments: Sequence[TranscriptSegment],
        frames: Sequence[str],
        include_images: bool,
    ) -> str:
        """Analyze one transcript. Returns the provider's document as a string.

        Frames must not be read at all when `include_images` is False.
        Raises BackendError on failure.
        """
