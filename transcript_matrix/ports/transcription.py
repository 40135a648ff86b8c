"""TranscriptionPort: abstract interface for speech-to-text backends."""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from transcript_matrix.domain.models import TranscriptionProvider, TranscriptSegment


class TranscriptionPort(ABC):
    @property
    @abstractmethod
    def provider(self) -> TranscriptionProvider:
        """The provider tag this adapter answers to."""

    @abstractmethod
    def transcribe(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[TranscriptSegment]:
        """Transcribe an audio file into chronological segments.

        Raises BackendError on failure. Job-based backends stop waiting once
        `cancel_event` is set.
        """
