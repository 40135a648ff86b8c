"""AmazonTranscribeAdapter: S3-staged batch transcription job.

Flow: upload audio to S3 -> start a Transcribe job with language
identification -> poll the job -> download the JSON result from S3 ->
group word items into segments. The uploaded audio, the result object and
the job record are removed on every exit path.
"""

import json
import logging
import os
import threading
import uuid
from dataclasses import replace
from typing import Any, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from transcript_matrix.domain.errors import BackendError, ErrorKind, kind_for_status
from transcript_matrix.domain.models import TranscriptionProvider, TranscriptSegment, Word
from transcript_matrix.polling import JobState, JobStatus, wait_for_job
from transcript_matrix.ports.transcription import TranscriptionPort
from transcript_matrix.segmentation import DEFAULT_WORDS_PER_SEGMENT, group_words

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_KEY_PREFIX = "transcript-matrix"

_JOB_STATES = {
    "QUEUED": JobState.RUNNING,
    "IN_PROGRESS": JobState.RUNNING,
    "COMPLETED": JobState.COMPLETED,
    "FAILED": JobState.FAILED,
}


def _client_error_kind(exc: ClientError) -> ErrorKind:
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return kind_for_status(status)


def transcript_to_words(transcript: dict) -> list[Word]:
    """Flatten Transcribe result items into words, gluing punctuation onto the previous word."""
    items = (transcript.get("results") or {}).get("items")
    if items is None:
        raise ValueError("Invalid transcript format received from Amazon Transcribe")

    words: list[Word] = []
    for item in items:
        content = item["alternatives"][0]["content"]
        if item.get("type") == "pronunciation":
            words.append(Word(
                text=content,
                start=float(item["start_time"]),
                end=float(item["end_time"]),
            ))
        elif item.get("type") == "punctuation" and words:
            words[-1] = replace(words[-1], text=words[-1].text + content)
    return words


class AmazonTranscribeAdapter(TranscriptionPort):
    def __init__(
        self,
        bucket: str,
        region: str = DEFAULT_REGION,
        poll_interval: float = 5.0,
        max_polls: int = 360,
        max_words: int = DEFAULT_WORDS_PER_SEGMENT,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        s3_client: Optional[Any] = None,
        transcribe_client: Optional[Any] = None,
    ):
        self._bucket = bucket
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._max_words = max_words
        self._key_prefix = key_prefix.strip("/")
        self._s3 = s3_client or boto3.client("s3", region_name=region)
        self._transcribe = transcribe_client or boto3.client("transcribe", region_name=region)

    @property
    def provider(self) -> TranscriptionProvider:
        return TranscriptionProvider.AMAZON

    def _error(self, message: str, exc: Exception) -> BackendError:
        kind = _client_error_kind(exc) if isinstance(exc, ClientError) else ErrorKind.TRANSIENT
        return BackendError(self.provider.value, f"{message}: {exc}", kind=kind, cause=exc)

    def _job_status(self, job_name: str) -> JobStatus:
        job = self._transcribe.get_transcription_job(TranscriptionJobName=job_name)["TranscriptionJob"]
        raw = job.get("TranscriptionJobStatus", "")
        return JobStatus(
            state=_JOB_STATES.get(raw, JobState.UNKNOWN),
            raw_status=raw,
            detail=job.get("FailureReason"),
        )

    def _cleanup(self, keys: list[str], job_name: Optional[str]) -> None:
        if keys:
            logger.info(f"Cleaning up {len(keys)} S3 objects...")
        for key in keys:
            try:
                self._s3.delete_object(Bucket=self._bucket, Key=key)
            except (BotoCoreError, ClientError) as e:
                logger.warning(f"Failed to delete S3 object {key}: {e}")
        if job_name:
            try:
                self._transcribe.delete_transcription_job(TranscriptionJobName=job_name)
            except (BotoCoreError, ClientError) as e:
                logger.warning(f"Failed to delete transcription job {job_name}: {e}")

    def transcribe(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[TranscriptSegment]:
        logger.info("Using Amazon Transcribe for transcription...")
        job_name = f"job-{uuid.uuid4()}"
        media_key = f"{self._key_prefix}/{job_name}_{os.path.basename(audio_path)}"
        output_key = f"{self._key_prefix}/outputs/{job_name}/transcript.json"

        try:
            self._s3.head_bucket(Bucket=self._bucket)
        except ClientError as e:
            raise BackendError(self.provider.value, f"S3 bucket error: {e}",
                               kind=ErrorKind.PERMANENT, cause=e) from e
        except BotoCoreError as e:
            raise self._error("S3 unreachable", e) from e

        staged: list[str] = []
        started_job: Optional[str] = None
        try:
            logger.info(f"Uploading audio to S3 bucket '{self._bucket}'...")
            self._s3.upload_file(audio_path, self._bucket, media_key)
            staged.append(media_key)

            logger.info(f"Starting Amazon Transcribe job '{job_name}'...")
            self._transcribe.start_transcription_job(
                TranscriptionJobName=job_name,
                IdentifyLanguage=True,
                Media={"MediaFileUri": f"s3://{self._bucket}/{media_key}"},
                OutputBucketName=self._bucket,
                OutputKey=output_key,
            )
            started_job = job_name
            staged.append(output_key)

            wait_for_job(
                lambda: self._job_status(job_name),
                provider=self.provider.value,
                interval=self._poll_interval,
                max_polls=self._max_polls,
                cancel_event=cancel_event,
            )

            logger.info("Transcription complete, downloading transcript...")
            body = self._s3.get_object(Bucket=self._bucket, Key=output_key)["Body"].read()
            words = transcript_to_words(json.loads(body))
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            raise self._error("AWS request failed", e) from e
        except OSError as e:
            raise BackendError(self.provider.value, f"Cannot upload {audio_path}: {e}",
                               kind=ErrorKind.PERMANENT, cause=e) from e
        except (ValueError, KeyError, IndexError) as e:
            raise BackendError(self.provider.value, f"Unreadable transcript: {e}",
                               kind=ErrorKind.PERMANENT, cause=e) from e
        finally:
            self._cleanup(staged, started_job)

        return group_words(words, self._max_words)
