"""Exception hierarchy for transcript-matrix runs."""

from enum import Enum
from typing import Any, Iterable, Optional

from transcript_matrix.domain.models import ProviderFailure


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


# Statuses worth another attempt; every other 4xx means the request itself is wrong.
TRANSIENT_STATUS_CODES = frozenset({408, 409, 429})


def kind_for_status(status_code: Optional[int]) -> ErrorKind:
    """Classify an HTTP-ish status code. Unknown codes are treated as transient."""
    if status_code is None:
        return ErrorKind.TRANSIENT
    if status_code in TRANSIENT_STATUS_CODES or status_code >= 500:
        return ErrorKind.TRANSIENT
    if 400 <= status_code < 500:
        return ErrorKind.PERMANENT
    return ErrorKind.TRANSIENT


class MatrixError(Exception):
    """Base exception for all transcript-matrix errors.

    Attributes:
        context: Arbitrary key-value pairs providing additional error context.
    """

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


class PreconditionError(MatrixError):
    """A required tool, credential or input is missing. Fatal before any run starts."""

    def __init__(self, message: str, missing: Iterable[str] = (), **context: Any) -> None:
        super().__init__(message, **context)
        self.missing = list(missing)


class MediaExtractionError(MatrixError):
    """ffmpeg could not produce the audio or frame derivatives."""


class BackendError(MatrixError):
    """A single provider call failed.

    Attributes:
        provider: Provider tag (e.g. "amazon") the failure belongs to.
        kind: Whether another attempt could plausibly succeed.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        kind: ErrorKind = ErrorKind.TRANSIENT,
        cause: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        super().__init__(f"[{provider}] {message}", **context)
        self.provider = provider
        self.kind = kind
        self.cause = cause

    @property
    def permanent(self) -> bool:
        return self.kind is ErrorKind.PERMANENT


class AllProvidersFailedError(MatrixError):
    """No transcription provider produced a transcript; the video cannot continue."""

    def __init__(self, failures: Iterable[ProviderFailure]) -> None:
        self.failures = list(failures)
        detail = "; ".join(f"{f.provider}: {f.message}" for f in self.failures) or "no providers ran"
        super().__init__(f"All transcription providers failed ({detail})")


class PersistenceError(MatrixError):
    """An artifact could not be written. Only that artifact is skipped."""

    def __init__(self, path: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Failed to write {path}: {cause}", path=path)
        self.path = path
        self.cause = cause
