"""
merge_streams: merge chunked query results into one well-formed stream.

SQL warehouses hand out large result sets as ordered chunks (often presigned
URLs). Byte-concatenating them breaks CSV (repeated headers), JSON arrays
(``][`` between chunks) and Arrow IPC (one end-of-stream marker per chunk).
This package merges chunks into a single valid stream with bounded memory.

Example:
    from merge_streams import FileSink, MergeFormat, merge_streams_from_urls

    async with FileSink(Path("result.csv")) as sink:
        await merge_streams_from_urls(MergeFormat.CSV, chunk_urls, sink)
"""

from merge_streams.cancel import CancelToken
from merge_streams.config import (
    MergeSettings,
    get_settings,
    load_settings,
    reset_settings,
    set_settings,
)
from merge_streams.dispatcher import merge_streams, merge_streams_from_urls
from merge_streams.download import create_session, is_http_url, open_url
from merge_streams.engines import merge_arrow, merge_csv, merge_json
from merge_streams.errors import (
    CodecError,
    FetchError,
    FormatError,
    MergeCancelledError,
    MergeError,
    SinkClosedError,
    ValidationError,
)
from merge_streams.progress import ProgressSnapshot, ProgressTracker
from merge_streams.streams import (
    AsyncStreamFactory,
    BufferSink,
    FileSink,
    InputSource,
    OpenStream,
    StreamFactory,
    resolve_input,
)
from merge_streams.types import ByteStream, ErrorCategory, MergeFormat, OutputSink

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "merge_streams",
    "merge_streams_from_urls",
    "merge_csv",
    "merge_json",
    "merge_arrow",
    # Types
    "MergeFormat",
    "ByteStream",
    "OutputSink",
    "ErrorCategory",
    # Inputs and sinks
    "InputSource",
    "OpenStream",
    "StreamFactory",
    "AsyncStreamFactory",
    "resolve_input",
    "BufferSink",
    "FileSink",
    # URL helpers
    "open_url",
    "is_http_url",
    "create_session",
    # Cancellation and progress
    "CancelToken",
    "ProgressSnapshot",
    "ProgressTracker",
    # Configuration
    "MergeSettings",
    "load_settings",
    "get_settings",
    "set_settings",
    "reset_settings",
    # Errors
    "MergeError",
    "ValidationError",
    "FetchError",
    "FormatError",
    "MergeCancelledError",
    "CodecError",
    "SinkClosedError",
    "__version__",
]
