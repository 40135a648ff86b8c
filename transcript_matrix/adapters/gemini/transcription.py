"""GeminiTranscriptionAdapter: prompt-driven transcription of an uploaded audio file.

The audio is uploaded through the Gemini Files API (the staging resource),
polled until the service marks it ACTIVE, transcribed with a JSON-timestamp
prompt and deleted again whether or not transcription succeeded.
"""

import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from google import genai
from google.genai import types
from pydantic import TypeAdapter, ValidationError

from transcript_matrix.adapters.gemini.errors import GEMINI_ERRORS, to_backend_error
from transcript_matrix.domain.errors import BackendError, ErrorKind, MatrixError
from transcript_matrix.domain.models import TranscriptionProvider, TranscriptSegment
from transcript_matrix.mappers import dtos_to_segments
from transcript_matrix.models import SegmentDTO
from transcript_matrix.polling import JobState, JobStatus, wait_for_job
from transcript_matrix.ports.transcription import TranscriptionPort
from transcript_matrix.prompts import transcribe_request
from transcript_matrix.segmentation import slice_paragraphs

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_TRANSCRIBE_MODEL = "gemini-1.5-flash"

# Used when the audio duration cannot be probed.
FALLBACK_DURATION_SECONDS = 60.0

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_CODE_FENCE = re.compile(r"```json[\s\S]*?```|```[\s\S]*?```")
_SEGMENTS = TypeAdapter(list[SegmentDTO])

_FILE_STATES = {
    "PROCESSING": JobState.RUNNING,
    "STATE_UNSPECIFIED": JobState.RUNNING,
    "ACTIVE": JobState.COMPLETED,
    "FAILED": JobState.FAILED,
}


def parse_transcript_text(text: str, duration: float, provider: str = "gemini") -> list[TranscriptSegment]:
    """Turn Gemini's reply into segments.

    A JSON array of {start, end, text} objects is used as-is; a reply without
    any array is split into paragraphs on a fixed time grid. An array that does
    not validate is a permanent failure.
    """
    match = _JSON_ARRAY.search(text or "")
    if not match:
        logger.warning("Could not extract JSON from Gemini response, creating timestamps from paragraphs")
        return slice_paragraphs(_CODE_FENCE.sub("", text or "").strip(), duration)

    try:
        dtos = _SEGMENTS.validate_python(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as e:
        raise BackendError(provider, f"Failed to parse Gemini transcription response: {e}",
                           kind=ErrorKind.PERMANENT, cause=e) from e
    return dtos_to_segments(dtos)


def _state_name(state: Any) -> str:
    return getattr(state, "name", None) or str(state or "STATE_UNSPECIFIED")


class GeminiTranscriptionAdapter(TranscriptionPort):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_GEMINI_TRANSCRIBE_MODEL,
        duration_probe: Optional[Callable[[Path], float]] = None,
        poll_interval: float = 2.0,
        max_polls: int = 150,
        client: Optional[Any] = None,
    ):
        self._model = model
        self._probe = duration_probe
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._client = client or genai.Client(api_key=api_key)

    @property
    def provider(self) -> TranscriptionProvider:
        return TranscriptionProvider.GEMINI

    def _duration(self, audio_path: str) -> float:
        if self._probe is None:
            return FALLBACK_DURATION_SECONDS
        try:
            return self._probe(Path(audio_path)) or FALLBACK_DURATION_SECONDS
        except MatrixError as e:
            logger.warning(f"Could not probe duration of {audio_path}: {e}")
            return FALLBACK_DURATION_SECONDS

    def _file_status(self, name: str) -> JobStatus:
        current = self._client.files.get(name=name)
        raw = _state_name(current.state)
        error = getattr(current, "error", None)
        return JobStatus(
            state=_FILE_STATES.get(raw, JobState.UNKNOWN),
            raw_status=raw,
            detail=getattr(error, "message", None),
            payload=current,
        )

    def _delete(self, name: str) -> None:
        try:
            self._client.files.delete(name=name)
            logger.info(f"Removed uploaded Gemini file {name}")
        except GEMINI_ERRORS as e:
            logger.warning(f"Failed to delete uploaded Gemini file {name}: {e}")

    def transcribe(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[TranscriptSegment]:
        logger.info("Using Google Gemini for transcription...")
        duration = self._duration(audio_path)

        uploaded = None
        try:
            uploaded = self._client.files.upload(
                file=audio_path,
                config=types.UploadFileConfig(mime_type="audio/mpeg"),
            )
            status = wait_for_job(
                lambda: self._file_status(uploaded.name),
                provider=self.provider.value,
                interval=self._poll_interval,
                max_polls=self._max_polls,
                cancel_event=cancel_event,
            )
            logger.info("Sending audio file to Gemini...")
            response = self._client.models.generate_content(
                model=self._model,
                contents=[status.payload, transcribe_request(duration)],
            )
        except GEMINI_ERRORS as e:
            raise to_backend_error(self.provider.value, e) from e
        except OSError as e:
            raise BackendError(self.provider.value, f"Cannot upload {audio_path}: {e}",
                               kind=ErrorKind.PERMANENT, cause=e) from e
        finally:
            if uploaded is not None:
                self._delete(uploaded.name)

        segments = parse_transcript_text(response.text or "", duration, self.provider.value)
        logger.info(f"Successfully transcribed audio with Gemini ({len(segments)} segments)")
        return segments
