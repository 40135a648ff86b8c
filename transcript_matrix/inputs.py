"""Input video discovery."""

import logging
from pathlib import Path
from typing import Iterable, List

from transcript_matrix.domain.errors import PreconditionError

logger = logging.getLogger(__name__)

SUPPORTED_VIDEO_FORMATS = (".mp4", ".avi", ".mov", ".mkv", ".webm")


def is_supported_video(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_VIDEO_FORMATS


def find_videos(directory: Path) -> List[Path]:
    """Supported videos directly inside directory, sorted by name."""
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and is_supported_video(p))


def warn_if_large(path: Path, max_size_mb: float) -> None:
    size_mb = path.stat().st_size / (1024 * 1024)
    if size_mb > max_size_mb:
        logger.warning(f"{path.name} is {size_mb:.1f} MB (over {max_size_mb:g} MB), processing may be slow")


def resolve_inputs(paths: Iterable[str], default_dir: str, max_size_mb: float) -> List[Path]:
    """Expand files and directories into the list of videos to process.

    With no paths, scans default_dir. Raises PreconditionError if nothing
    usable is found.
    """
    candidates = [Path(p) for p in paths] or [Path(default_dir)]
    videos: List[Path] = []
    for candidate in candidates:
        if candidate.is_dir():
            found = find_videos(candidate)
            if not found:
                logger.warning(f"No supported videos in {candidate}")
            videos.extend(found)
        elif candidate.is_file():
            if is_supported_video(candidate):
                videos.append(candidate)
            else:
                logger.warning(f"Skipping {candidate}: unsupported format (supported: {', '.join(SUPPORTED_VIDEO_FORMATS)})")
        else:
            logger.warning(f"Input not found: {candidate}")

    videos = list(dict.fromkeys(videos))
    if not videos:
        raise PreconditionError(
            f"No video files found. Supported formats: {', '.join(SUPPORTED_VIDEO_FORMATS)}",
            inputs=[str(c) for c in candidates],
        )
    for video in videos:
        warn_if_large(video, max_size_mb)
    return videos
