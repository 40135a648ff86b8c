"""WhisperTranscriptionAdapter: OpenAI hosted Whisper with segment timestamps."""

import logging
import threading
from typing import Any, Optional

import openai

from transcript_matrix.adapters.openai.errors import to_backend_error
from transcript_matrix.domain.errors import BackendError, ErrorKind
from transcript_matrix.domain.models import TranscriptionProvider, TranscriptSegment
from transcript_matrix.ports.transcription import TranscriptionPort

logger = logging.getLogger(__name__)

DEFAULT_WHISPER_MODEL = "whisper-1"


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class WhisperTranscriptionAdapter(TranscriptionPort):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_WHISPER_MODEL,
        timeout: float = 600.0,
        client: Optional[Any] = None,
    ):
        self._model = model
        # Retries are owned by the stage's RetryPolicy, not the SDK.
        self._client = client or openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    @property
    def provider(self) -> TranscriptionProvider:
        return TranscriptionProvider.OPENAI

    def transcribe(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[TranscriptSegment]:
        logger.info(f"Using OpenAI Whisper ({self._model}) for transcription...")
        try:
            with open(audio_path, "rb") as audio_file:
                transcription = self._client.audio.transcriptions.create(
                    file=audio_file,
                    model=self._model,
                    response_format="verbose_json",
                )
        except OSError as e:
            raise BackendError(self.provider.value, f"Cannot read {audio_path}: {e}",
                               kind=ErrorKind.PERMANENT, cause=e) from e
        except openai.OpenAIError as e:
            raise to_backend_error(self.provider.value, e) from e

        segments = [
            TranscriptSegment(
                start=float(_field(seg, "start", 0.0)),
                end=float(_field(seg, "end", 0.0)),
                text=str(_field(seg, "text", "")).strip(),
            )
            for seg in (_field(transcription, "segments") or [])
        ]
        logger.info(f"Whisper returned {len(segments)} segments")
        return segments
