"""FFmpegMediaAdapter: audio and still-frame derivatives via ffmpeg/ffprobe."""

import json
import logging
import math
import shutil
import subprocess
from pathlib import Path

from transcript_matrix.domain.errors import MediaExtractionError
from transcript_matrix.domain.models import MediaDerivatives
from transcript_matrix.ports.media import MediaExtractionPort

logger = logging.getLogger(__name__)

AUDIO_FILENAME = "audio.mp3"
FRAMES_DIRNAME = "frames"

# Longest side of an extracted frame, in pixels.
MAX_FRAME_DIMENSION = 1280


def fit_within(width: int, height: int, max_dimension: int = MAX_FRAME_DIMENSION) -> tuple[int, int]:
    """Scale (width, height) down so neither side exceeds max_dimension."""
    if width > height and width > max_dimension:
        return max_dimension, round(height * max_dimension / width)
    if height > max_dimension:
        return round(width * max_dimension / height), max_dimension
    return width, height


class FFmpegMediaAdapter(MediaExtractionPort):
    def __init__(self, ffmpeg_bin: str = "ffmpeg", ffprobe_bin: str = "ffprobe"):
        self._ffmpeg = ffmpeg_bin
        self._ffprobe = ffprobe_bin

    def is_available(self) -> bool:
        if shutil.which(self._ffmpeg) is None:
            return False
        result = subprocess.run([self._ffmpeg, "-version"], capture_output=True, text=True)
        return result.returncode == 0

    def extract(self, video_path: Path, output_dir: Path, include_frames: bool) -> MediaDerivatives:
        audio_path = self._extract_audio(video_path, output_dir / AUDIO_FILENAME)
        frames: tuple[Path, ...] = ()
        if include_frames:
            frames = self._extract_frames(video_path, output_dir / FRAMES_DIRNAME)
        return MediaDerivatives(audio_path=audio_path, frames=frames)

    def probe_duration(self, media_path: Path) -> float:
        info = self._probe(media_path)
        try:
            return float(info.get("format", {}).get("duration") or 0.0)
        except (TypeError, ValueError):
            return 0.0

    def _exec(self, cmd: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise MediaExtractionError(f"Could not run {cmd[0]}: {e}") from e

    def _run(self, cmd: list[str], what: str) -> None:
        result = self._exec(cmd)
        if result.returncode != 0:
            logger.error(f"Error {what}: {result.stderr}")
            raise MediaExtractionError(f"Failed {what}: {result.stderr.strip()[-500:]}")

    def _probe(self, media_path: Path) -> dict:
        cmd = [
            self._ffprobe, "-v", "error",
            "-print_format", "json",
            "-show_format", "-show_streams",
            str(media_path),
        ]
        result = self._exec(cmd)
        if result.returncode != 0:
            raise MediaExtractionError(f"ffprobe failed for {media_path}: {result.stderr.strip()}")
        try:
            return json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise MediaExtractionError(f"Unreadable ffprobe output for {media_path}") from e

    def _extract_audio(self, video_path: Path, audio_path: Path) -> Path:
        logger.info(f"Extracting audio: {video_path.name} -> {audio_path}")
        cmd = [
            self._ffmpeg, "-y",
            "-i", str(video_path),
            "-vn",
            "-c:a", "libmp3lame",
            str(audio_path),
        ]
        try:
            self._run(cmd, "extracting audio")
        except Exception:
            if audio_path.exists():
                audio_path.unlink()
            raise
        return audio_path

    def _extract_frames(self, video_path: Path, frames_dir: Path) -> tuple[Path, ...]:
        info = self._probe(video_path)
        video_stream = next(
            (s for s in info.get("streams", []) if s.get("codec_type") == "video"), None
        )
        if video_stream is None:
            raise MediaExtractionError(f"No video stream found in {video_path}")

        duration = float(info.get("format", {}).get("duration") or 0.0)
        width = int(video_stream.get("width") or 1280)
        height = int(video_stream.get("height") or 720)
        target_width, target_height = fit_within(width, height)
        count = math.ceil(duration)

        logger.info(f"Video dimensions: {width}x{height}")
        logger.info(f"Frame dimensions: {target_width}x{target_height}, {count} frames")

        frames_dir.mkdir(parents=True, exist_ok=True)
        frames: list[Path] = []
        # One still per second of video, at timemarks 0, 1, 2, ...
        for i in range(count):
            frame_path = frames_dir / f"frame-{i + 1}.jpg"
            cmd = [
                self._ffmpeg, "-y",
                "-ss", str(i),
                "-i", str(video_path),
                "-frames:v", "1",
                "-s", f"{target_width}x{target_height}",
                str(frame_path),
            ]
            self._run(cmd, f"extracting frame {i + 1}/{count}")
            if frame_path.exists():
                frames.append(frame_path)

        return tuple(frames)
