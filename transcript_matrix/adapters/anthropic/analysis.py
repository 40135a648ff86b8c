"""AnthropicAnalysisAdapter: lesson generation with the Messages API."""

import logging
from typing import Any, Optional, Sequence

import anthropic

from transcript_matrix.domain.errors import BackendError, ErrorKind, kind_for_status
from transcript_matrix.domain.models import AnalysisProvider, TranscriptSegment
from transcript_matrix.ports.analysis import AnalysisPort
from transcript_matrix.ports.frames import FrameReaderPort
from transcript_matrix.prompts import LESSON_SYSTEM_PROMPT, lesson_request

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-20240620"


class AnthropicAnalysisAdapter(AnalysisPort):
    def __init__(
        self,
        frame_reader: FrameReaderPort,
        api_key: Optional[str] = None,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        max_tokens: int = 1000,
        timeout: float = 600.0,
        client: Optional[Any] = None,
    ):
        self._frames = frame_reader
        self._model = model
        self._max_tokens = max_tokens
        self._client = client or anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    @property
    def provider(self) -> AnalysisProvider:
        return AnalysisProvider.ANTHROPIC

    def _content(self, segments, frames, include_images):
        text = f"{LESSON_SYSTEM_PROMPT}\n\n{lesson_request(segments)}"
        if not include_images:
            return text
        blocks: list[dict] = [{"type": "text", "text": text}]
        for frame in frames:
            blocks.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/jpeg",
                    "data": self._frames.read_base64(frame),
                },
            })
        return blocks

    def analyze(
        self,
        segments: Sequence[TranscriptSegment],
        frames: Sequence[str],
        include_images: bool,
    ) -> str:
        try:
            message = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": self._content(segments, frames, include_images)}],
            )
        except anthropic.APIStatusError as e:
            raise BackendError(self.provider.value, f"Anthropic request failed: {e}",
                               kind=kind_for_status(e.status_code), cause=e) from e
        except anthropic.APIConnectionError as e:
            raise BackendError(self.provider.value, f"Anthropic unreachable: {e}",
                               kind=ErrorKind.TRANSIENT, cause=e) from e

        for block in message.content or []:
            if getattr(block, "type", None) == "text":
                return block.text
        raise BackendError(self.provider.value, "No text content received from Claude")
