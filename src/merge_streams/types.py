"""
Core types and protocols used across modules.

This module provides the format tag, error categories and the structural
protocols for byte streams and output sinks shared by every merge engine.
"""

from enum import Enum
from typing import AsyncIterable, Protocol, Union, runtime_checkable


class MergeFormat(str, Enum):
    """
    Closed set of formats a merge can produce.

    Values match the format names used by SQL warehouses that hand out
    chunked result sets (e.g. Databricks ``EXTERNAL_LINKS`` disposition).
    """

    CSV = "CSV"
    JSON_ARRAY = "JSON_ARRAY"
    ARROW_STREAM = "ARROW_STREAM"


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures a caller may choose to retry
                   (e.g., network timeouts, 429/503 errors)
        AUTH: Authentication failures (e.g., expired presigned URL, 401)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., 404, malformed input, validation errors)
        CANCELLED: The caller's cancellation token fired
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


# Any async iterable of raw byte chunks. Pull-based, so nothing is read
# until the consumer iterates.
ByteStream = AsyncIterable[bytes]


@runtime_checkable
class OutputSink(Protocol):
    """
    Sequential, single-use byte writer with backpressure.

    Mirrors the writing half of ``asyncio.StreamWriter`` so a socket or
    subprocess pipe can be used directly as a merge target.
    """

    def write(self, data: bytes) -> None:
        ...

    async def drain(self) -> None:
        """Suspend while the sink's buffer is saturated."""
        ...

    def close(self) -> None:
        ...

    async def wait_closed(self) -> None:
        """Wait for the final flush; raises if the flush failed."""
        ...

    def is_closing(self) -> bool:
        ...


FormatLike = Union[MergeFormat, str]


__all__ = [
    "ByteStream",
    "ErrorCategory",
    "FormatLike",
    "MergeFormat",
    "OutputSink",
]
