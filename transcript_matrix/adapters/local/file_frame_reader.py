"""FileFrameReader: reads extracted frames from local disk."""

import base64
from pathlib import Path

from transcript_matrix.ports.frames import FrameReaderPort


class FileFrameReader(FrameReaderPort):
    def read_bytes(self, frame_path: str) -> bytes:
        return Path(frame_path).read_bytes()

    def read_base64(self, frame_path: str) -> str:
        return base64.standard_b64encode(self.read_bytes(frame_path)).decode("utf-8")
