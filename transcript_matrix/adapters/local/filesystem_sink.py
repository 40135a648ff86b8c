"""Filesystem result sink: one rebuilt directory per video, atomic writes."""

import json
import logging
import os
import shutil
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from transcript_matrix.domain.errors import PersistenceError
from transcript_matrix.domain.models import AnalysisDocument, TranscriptResult
from transcript_matrix.mappers import build_transcription_index, segments_to_dtos
from transcript_matrix.ports.result_sink import ResultSinkPort
from transcript_matrix.segmentation import render_raw_text

logger = logging.getLogger(__name__)

INDEX_FILENAME = "all_transcriptions.json"
TEMP_SUFFIX = ".partial"


def transcript_filenames(provider: str) -> tuple[str, str]:
    return f"transcription_{provider}.json", f"transcription_{provider}_raw.txt"


def clear_contents(directory: Path) -> list[Path]:
    """Best-effort removal of everything inside directory. Returns what survived."""
    leftovers: list[Path] = []
    for entry in directory.iterdir():
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as e:
            logger.warning(f"Could not remove {entry}: {e}")
            leftovers.append(entry)
    return leftovers


class OutputDirectory:
    """Scoped per-video output directory.

    Entering removes any previous directory (retrying up to `removal_attempts`
    times, then clearing its contents instead) and recreates it empty. Exiting
    removes half-written temp files, whatever happened inside the block.
    """

    def __init__(
        self,
        path: Path,
        removal_attempts: int = 3,
        removal_delay: float = 1.0,
        rmtree: Callable[[Path], None] = shutil.rmtree,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.path = Path(path)
        self.removal_attempts = max(1, removal_attempts)
        self.removal_delay = removal_delay
        self._rmtree = rmtree
        self._sleep = sleep

    def __enter__(self) -> Path:
        self.rebuild()
        return self.path

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.path.exists():
            return
        for partial in self.path.rglob(f"*{TEMP_SUFFIX}"):
            try:
                partial.unlink()
            except OSError as e:
                logger.warning(f"Could not remove partial file {partial}: {e}")

    def rebuild(self) -> None:
        if self.path.exists():
            logger.info(f"Removing existing output directory: {self.path}")
            self._remove()
        self.path.mkdir(parents=True, exist_ok=True)

    def _remove(self) -> None:
        for attempt in range(1, self.removal_attempts + 1):
            try:
                self._rmtree(self.path)
                return
            except OSError as e:
                if attempt < self.removal_attempts:
                    logger.info(
                        f"Retry {attempt}/{self.removal_attempts} removing {self.path} ({e}), "
                        f"waiting {self.removal_delay}s"
                    )
                    self._sleep(self.removal_delay)

        logger.warning(
            f"Could not remove directory {self.path} after {self.removal_attempts} attempts, "
            "clearing its contents instead"
        )
        leftovers = clear_contents(self.path)
        if leftovers:
            logger.warning(f"{len(leftovers)} entries could not be cleared from {self.path}")


class FilesystemResultSink(ResultSinkPort):
    def __init__(self, root: Path, clock: Optional[Callable[[], datetime]] = None):
        self._root = Path(root)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._written: list[str] = []

    @property
    def root(self) -> Path:
        return self._root

    def _write_atomic(self, filename: str, content: str) -> str:
        target = self._root / filename
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=f".{filename}.", suffix=TEMP_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, target)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(str(target), e) from e
        self._written.append(filename)
        return filename

    def write_transcript(self, result: TranscriptResult) -> list[str]:
        json_name, raw_name = transcript_filenames(result.provider.value)
        payload = [dto.model_dump() for dto in segments_to_dtos(result.segments)]
        written = [self._write_atomic(json_name, json.dumps(payload, indent=2, ensure_ascii=False))]
        logger.info(f"Transcription from {result.provider.value} saved ({len(result.segments)} segments)")
        written.append(self._write_atomic(raw_name, render_raw_text(result.segments) + "\n"))
        return written

    def write_index(self, video_name: str, results: Sequence[TranscriptResult]) -> str:
        index = build_transcription_index(video_name, results, created_at=self._clock())
        return self._write_atomic(INDEX_FILENAME, index.model_dump_json(indent=2))

    def write_analysis(self, document: AnalysisDocument) -> str:
        filename = self._write_atomic(document.filename, document.content)
        logger.info(f"Analysis saved to {self._root / filename}")
        return filename

    def list_artifacts(self) -> Sequence[str]:
        return list(self._written)
