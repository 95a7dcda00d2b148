"""
Exception hierarchy for merge_streams.

Every failure that rejects a merge call is a MergeError subclass carrying an
ErrorCategory, so callers can decide on their own retry policy. The library
itself never retries and never logs these errors.
"""

from merge_streams.types import ErrorCategory


class MergeError(Exception):
    """
    Base exception for all merge errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.AUTH,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class ValidationError(MergeError):
    """Bad arguments: empty inputs, non-http(s) URL, unknown input shape."""

    category = ErrorCategory.PERMANENT


class FetchError(MergeError):
    """Non-2xx response or transport failure while fetching a chunk URL."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        category: ErrorCategory | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.status_code = status_code
        if category is not None:
            self.category = category
        elif status_code is not None:
            self.category = classify_http_status(status_code)
        else:
            self.category = ErrorCategory.TRANSIENT


class FormatError(MergeError):
    """Input is not structurally the format it claims to be."""

    category = ErrorCategory.PERMANENT


class MergeCancelledError(MergeError):
    """The caller's cancellation token fired."""

    category = ErrorCategory.CANCELLED


class CodecError(MergeError):
    """Failure raised by the Arrow IPC codec, e.g. a schema mismatch."""

    category = ErrorCategory.PERMANENT


class SinkClosedError(MergeError):
    """Write attempted on an output sink that is closed or errored."""

    category = ErrorCategory.PERMANENT


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    # Presigned URLs answer 403 once the signature has expired
    if status_code == 403:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


__all__ = [
    "CodecError",
    "ErrorCategory",
    "FetchError",
    "FormatError",
    "MergeCancelledError",
    "MergeError",
    "SinkClosedError",
    "ValidationError",
    "classify_http_status",
]
