"""Translate OpenAI SDK exceptions into BackendError."""

import openai

from transcript_matrix.domain.errors import BackendError, ErrorKind, kind_for_status


def to_backend_error(provider: str, exc: Exception) -> BackendError:
    if isinstance(exc, openai.APIStatusError):
        kind = kind_for_status(exc.status_code)
    elif isinstance(exc, openai.APIConnectionError):
        kind = ErrorKind.TRANSIENT
    else:
        kind = ErrorKind.PERMANENT
    return BackendError(provider, f"OpenAI request failed: {exc}", kind=kind, cause=exc)
