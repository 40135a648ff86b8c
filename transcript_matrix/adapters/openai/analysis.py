"""OpenAIAnalysisAdapter: lesson generation with chat completions."""

import logging
from typing import Any, Optional, Sequence

import openai

from transcript_matrix.adapters.openai.errors import to_backend_error
from transcript_matrix.domain.errors import BackendError
from transcript_matrix.domain.models import AnalysisProvider, TranscriptSegment
from transcript_matrix.ports.analysis import AnalysisPort
from transcript_matrix.ports.frames import FrameReaderPort
from transcript_matrix.prompts import LESSON_SYSTEM_PROMPT, lesson_request

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-2024-11-20"


class OpenAIAnalysisAdapter(AnalysisPort):
    def __init__(
        self,
        frame_reader: FrameReaderPort,
        api_key: Optional[str] = None,
        model: str = DEFAULT_OPENAI_MODEL,
        max_tokens: int = 1000,
        timeout: float = 600.0,
        client: Optional[Any] = None,
    ):
        self._frames = frame_reader
        self._model = model
        self._max_tokens = max_tokens
        self._client = client or openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    @property
    def provider(self) -> AnalysisProvider:
        return AnalysisProvider.OPENAI

    def _user_content(self, segments, frames, include_images):
        text = lesson_request(segments)
        if not include_images:
            return text
        content: list[dict] = [{"type": "text", "text": text}]
        for frame in frames:
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:image/jpeg;base64,{self._frames.read_base64(frame)}"},
            })
        return content

    def analyze(
        self,
        segments: Sequence[TranscriptSegment],
        frames: Sequence[str],
        include_images: bool,
    ) -> str:
        messages = [
            {"role": "system", "content": LESSON_SYSTEM_PROMPT},
            {"role": "user", "content": self._user_content(segments, frames, include_images)},
        ]
        try:
            completion = self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=self._max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            raise to_backend_error(self.provider.value, e) from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise BackendError(self.provider.value, "Empty completion returned")
        return content
