"""GeminiAnalysisAdapter: lesson generation with generate_content."""

import logging
from typing import Any, Optional, Sequence

from google import genai
from google.genai import types

from transcript_matrix.adapters.gemini.errors import GEMINI_ERRORS, to_backend_error
from transcript_matrix.domain.errors import BackendError
from transcript_matrix.domain.models import AnalysisProvider, TranscriptSegment
from transcript_matrix.ports.analysis import AnalysisPort
from transcript_matrix.ports.frames import FrameReaderPort
from transcript_matrix.prompts import LESSON_SYSTEM_PROMPT, lesson_request

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"


class GeminiAnalysisAdapter(AnalysisPort):
    def __init__(
        self,
        frame_reader: FrameReaderPort,
        api_key: Optional[str] = None,
        model: str = DEFAULT_GEMINI_MODEL,
        client: Optional[Any] = None,
    ):
        self._frames = frame_reader
        self._model = model
        self._client = client or genai.Client(api_key=api_key)

    @property
    def provider(self) -> AnalysisProvider:
        return AnalysisProvider.GEMINI

    def analyze(
        self,
        segments: Sequence[TranscriptSegment],
        frames: Sequence[str],
        include_images: bool,
    ) -> str:
        contents: list[Any] = [f"{LESSON_SYSTEM_PROMPT}\n\n{lesson_request(segments)}"]
        if include_images:
            contents.extend(
                types.Part.from_bytes(data=self._frames.read_bytes(frame), mime_type="image/jpeg")
                for frame in frames
            )
        try:
            response = self._client.models.generate_content(model=self._model, contents=contents)
        except GEMINI_ERRORS as e:
            raise to_backend_error(self.provider.value, e) from e

        text = response.text
        if not text:
            raise BackendError(self.provider.value, "Empty response from Gemini")
        return text
