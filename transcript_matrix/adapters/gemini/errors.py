"""Translate google-genai exceptions into BackendError."""

import httpx
from google.genai import errors as genai_errors

from transcript_matrix.domain.errors import BackendError, ErrorKind, kind_for_status

# Exceptions a Gemini call may raise that we know how to classify.
GEMINI_ERRORS = (genai_errors.APIError, httpx.TransportError)


def to_backend_error(provider: str, exc: Exception) -> BackendError:
    if isinstance(exc, genai_errors.APIError):
        kind = kind_for_status(getattr(exc, "code", None))
    elif isinstance(exc, httpx.TransportError):
        kind = ErrorKind.TRANSIENT
    else:
        kind = ErrorKind.PERMANENT
    return BackendError(provider, f"Gemini request failed: {exc}", kind=kind, cause=exc)
