"""AssemblyAITranscriptionAdapter: AssemblyAI v2 REST API over httpx.

Uploads the audio, creates a transcript job, polls it, and converts the
word-level timings (milliseconds) into segments. The transcript record is
deleted from AssemblyAI afterwards, whether or not the job succeeded.
"""

import logging
import threading
from typing import Any, Optional

import httpx

from transcript_matrix.domain.errors import BackendError, ErrorKind, kind_for_status
from transcript_matrix.domain.models import TranscriptionProvider, TranscriptSegment, Word
from transcript_matrix.polling import JobState, JobStatus, wait_for_job
from transcript_matrix.ports.transcription import TranscriptionPort
from transcript_matrix.segmentation import DEFAULT_WORDS_PER_SEGMENT, group_words

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.assemblyai.com/v2"

_JOB_STATES = {
    "queued": JobState.RUNNING,
    "processing": JobState.RUNNING,
    "completed": JobState.COMPLETED,
    "error": JobState.FAILED,
}


def transcript_to_segments(transcript: dict[str, Any], max_words: int) -> list[TranscriptSegment]:
    words = transcript.get("words") or []
    if not words:
        text = (transcript.get("text") or "").strip()
        if not text:
            return []
        # No word timings: the whole transcript becomes one segment.
        return [TranscriptSegment(start=0.0, end=float(transcript.get("audio_duration") or 0.0), text=text)]

    return group_words(
        (
            Word(
                text=w.get("text", ""),
                start=(w.get("start") or 0) / 1000.0,
                end=(w.get("end") or 0) / 1000.0,
            )
            for w in words
        ),
        max_words,
    )


class AssemblyAITranscriptionAdapter(TranscriptionPort):
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        poll_interval: float = 3.0,
        max_polls: int = 600,
        max_words: int = DEFAULT_WORDS_PER_SEGMENT,
        timeout: float = 600.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._max_words = max_words
        self._http = httpx.Client(
            base_url=base_url,
            headers={"authorization": api_key},
            timeout=timeout,
            transport=transport,
        )

    @property
    def provider(self) -> TranscriptionProvider:
        return TranscriptionProvider.ASSEMBLYAI

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = self._http.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json() if response.content else {}

    def _status(self, transcript_id: str) -> JobStatus:
        transcript = self._request("GET", f"/transcript/{transcript_id}")
        raw = str(transcript.get("status", ""))
        return JobStatus(
            state=_JOB_STATES.get(raw, JobState.UNKNOWN),
            raw_status=raw,
            detail=transcript.get("error"),
            payload=transcript,
        )

    def _delete(self, transcript_id: str) -> None:
        try:
            self._request("DELETE", f"/transcript/{transcript_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Failed to delete AssemblyAI transcript {transcript_id}: {e}")

    def transcribe(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[TranscriptSegment]:
        logger.info("Using AssemblyAI for transcription...")
        transcript_id: Optional[str] = None
        try:
            with open(audio_path, "rb") as audio_file:
                upload = self._request("POST", "/upload", content=audio_file.read())

            created = self._request("POST", "/transcript", json={
                "audio_url": upload["upload_url"],
                "punctuate": True,
                "format_text": True,
                "disfluencies": False,
            })
            transcript_id = created["id"]
            logger.info(f"AssemblyAI transcript {transcript_id} created")

            status = wait_for_job(
                lambda: self._status(transcript_id),
                provider=self.provider.value,
                interval=self._poll_interval,
                max_polls=self._max_polls,
                cancel_event=cancel_event,
            )
        except httpx.HTTPStatusError as e:
            raise BackendError(self.provider.value, f"AssemblyAI request failed: {e}",
                               kind=kind_for_status(e.response.status_code), cause=e) from e
        except httpx.TransportError as e:
            raise BackendError(self.provider.value, f"AssemblyAI unreachable: {e}",
                               kind=ErrorKind.TRANSIENT, cause=e) from e
        except OSError as e:
            raise BackendError(self.provider.value, f"Cannot read {audio_path}: {e}",
                               kind=ErrorKind.PERMANENT, cause=e) from e
        except (KeyError, ValueError) as e:
            raise BackendError(self.provider.value, f"Unexpected AssemblyAI response, missing {e}",
                               kind=ErrorKind.PERMANENT, cause=e) from e
        finally:
            if transcript_id is not None:
                self._delete(transcript_id)

        return transcript_to_segments(status.payload, self._max_words)
