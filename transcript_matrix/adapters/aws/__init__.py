"""Amazon Web Services adapters (Transcribe + S3 staging)."""

from .transcription import AmazonTranscribeAdapter

__all__ = ["AmazonTranscribeAdapter"]
