"""MediaExtractionPort: abstract interface for audio/frame derivatives."""

from abc import ABC, abstractmethod
from pathlib import Path

from transcript_matrix.domain.models import MediaDerivatives


class MediaExtractionPort(ABC):
    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying tooling is installed and runnable."""

    @abstractmethod
    def extract(self, video_path: Path, output_dir: Path, include_frames: bool) -> MediaDerivatives:
        """Write audio (and frames, if requested) into output_dir."""

    @abstractmethod
    def probe_duration(self, media_path: Path) -> float:
        """Duration of a media file in seconds."""
