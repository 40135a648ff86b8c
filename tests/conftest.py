"""Shared fakes and fixtures. No test here touches the network or ffmpeg."""

import json
import threading
from pathlib import Path
from typing import Optional, Sequence

import pytest

from transcript_matrix.domain.errors import BackendError, ErrorKind
from transcript_matrix.domain.models import (
    AnalysisProvider, MediaDerivatives, TranscriptionProvider, TranscriptSegment,
)
from transcript_matrix.ports.analysis import AnalysisPort
from transcript_matrix.ports.frames import FrameReaderPort
from transcript_matrix.ports.media import MediaExtractionPort
from transcript_matrix.ports.progress import ProgressPort
from transcript_matrix.ports.transcription import TranscriptionPort
from transcript_matrix.retry import RetryPolicy


def make_segments(count: int, prefix: str = "segment") -> list[TranscriptSegment]:
    return [TranscriptSegment(start=float(i), end=float(i + 1), text=f"{prefix} {i}.") for i in range(count)]


def permanent(provider: str, message: str = "invalid request") -> BackendError:
    return BackendError(provider, message, kind=ErrorKind.PERMANENT)


class FakeMedia(MediaExtractionPort):
    def __init__(self, frame_count: int = 2, error: Optional[Exception] = None):
        self.frame_count = frame_count
        self.error = error
        self.calls: list[tuple[Path, bool]] = []

    def is_available(self) -> bool:
        return True

    def extract(self, video_path: Path, output_dir: Path, include_frames: bool) -> MediaDerivatives:
        self.calls.append((Path(video_path), include_frames))
        if self.error is not None:
            raise self.error
        audio = Path(output_dir) / "audio.mp3"
        audio.write_bytes(b"ID3fake")
        frames = []
        if include_frames:
            frames_dir = Path(output_dir) / "frames"
            frames_dir.mkdir(parents=True, exist_ok=True)
            for i in range(1, self.frame_count + 1):
                frame = frames_dir / f"frame-{i}.jpg"
                frame.write_bytes(b"\xff\xd8fake-jpeg")
                frames.append(frame)
        return MediaDerivatives(audio_path=audio, frames=tuple(frames))

    def probe_duration(self, media_path: Path) -> float:
        return 30.0


class FakeTranscriber(TranscriptionPort):
    """Returns fixed segments, or raises `error` on the first `fail_times` calls (every call if None)."""

    def __init__(
        self,
        provider: TranscriptionProvider,
        segments: Optional[Sequence[TranscriptSegment]] = None,
        error: Optional[Exception] = None,
        fail_times: Optional[int] = None,
    ):
        self._provider = provider
        self.segments = list(segments) if segments is not None else make_segments(2, provider.value)
        self.error = error
        self.fail_times = fail_times
        self.calls = 0
        self._lock = threading.Lock()

    @property
    def provider(self) -> TranscriptionProvider:
        return self._provider

    def transcribe(self, audio_path: str, cancel_event: Optional[threading.Event] = None):
        with self._lock:
            self.calls += 1
            call = self.calls
        if self.error is not None and (self.fail_times is None or call <= self.fail_times):
            raise self.error
        return list(self.segments)


class FakeAnalyzer(AnalysisPort):
    def __init__(self, provider: AnalysisProvider, frame_reader: Optional[FrameReaderPort] = None,
                 error: Optional[Exception] = None):
        self._provider = provider
        self.frame_reader = frame_reader
        self.error = error
        self.calls: list[tuple[int, list[str], bool]] = []
        self._lock = threading.Lock()

    @property
    def provider(self) -> AnalysisProvider:
        return self._provider

    def analyze(self, segments, frames, include_images):
        with self._lock:
            self.calls.append((len(segments), list(frames), include_images))
        if self.error is not None:
            raise self.error
        encoded = []
        if include_images and self.frame_reader is not None:
            encoded = [self.frame_reader.read_base64(f) for f in frames]
        return json.dumps({
            "analyzer": self._provider.value,
            "segments": [s.text for s in segments],
            "images": len(encoded),
        })


class SpyFrameReader(FrameReaderPort):
    def __init__(self):
        self.reads: list[str] = []

    def read_base64(self, frame_path: str) -> str:
        self.reads.append(frame_path)
        return "ZmFrZQ=="

    def read_bytes(self, frame_path: str) -> bytes:
        self.reads.append(frame_path)
        return b"fake"


class RecordingProgress(ProgressPort):
    def __init__(self):
        self.events: list[tuple[str, str, float, Optional[str]]] = []
        self._lock = threading.Lock()

    def report(self, run_id, stage, progress=0.0, detail=None):
        with self._lock:
            self.events.append((run_id, stage, progress, detail))

    def stages(self) -> list[str]:
        return [stage for _, stage, _, _ in self.events]


@pytest.fixture
def video_file(tmp_path):
    videos = tmp_path / "videos"
    videos.mkdir()
    video = videos / "lecture.mp4"
    video.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return video


@pytest.fixture
def output_root(tmp_path):
    return tmp_path / "output"


@pytest.fixture
def fast_retry():
    return RetryPolicy(max_attempts=3, base_delay=0.0)


@pytest.fixture
def progress():
    return RecordingProgress()


@pytest.fixture
def spy_frames():
    return SpyFrameReader()
