"""FrameReaderPort: abstract interface for loading still frames."""

from abc import ABC, abstractmethod


class FrameReaderPort(ABC):
    @abstractmethod
    def read_base64(self, frame_path: str) -> str:
        """Return the frame's bytes as base64 text."""

    @abstractmethod
    def read_bytes(self, frame_path: str) -> bytes:
        """Return the frame's raw bytes."""
