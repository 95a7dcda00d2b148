"""
Stream plumbing shared by every merge engine.

Provides:
    - inputs: lazy InputSource variants and their resolver
    - sinks: BufferSink and FileSink output sinks
    - utils: backpressure-aware write/finalize, UTF-8 line splitting, byte counting
"""

from merge_streams.streams.inputs import (
    AsyncStreamFactory,
    InputLike,
    InputSource,
    OpenStream,
    StreamFactory,
    as_input_source,
    as_input_sources,
    resolve_input,
)
from merge_streams.streams.sinks import BufferSink, FileSink
from merge_streams.streams.utils import (
    aclose_stream,
    count_bytes,
    finalize_sink,
    iter_text,
    read_lines,
    write_to_sink,
)

__all__ = [
    # Inputs
    "InputSource",
    "OpenStream",
    "StreamFactory",
    "AsyncStreamFactory",
    "InputLike",
    "as_input_source",
    "as_input_sources",
    "resolve_input",
    # Sinks
    "BufferSink",
    "FileSink",
    # Utilities
    "write_to_sink",
    "finalize_sink",
    "iter_text",
    "read_lines",
    "count_bytes",
    "aclose_stream",
]
