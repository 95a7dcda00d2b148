"""
Backpressure-aware sink primitives and text helpers for byte streams.

All helpers work on pull-based ByteStreams (async iterables of bytes) and on
any OutputSink shaped like ``asyncio.StreamWriter``.
"""

import codecs
from collections.abc import AsyncIterator, Callable
from typing import Union

from merge_streams.errors import SinkClosedError
from merge_streams.types import ByteStream, OutputSink


async def write_to_sink(sink: OutputSink, data: Union[bytes, str]) -> int:
    """
    Write one chunk and wait for the sink to accept more.

    ``drain()`` only suspends while the sink's buffer is above its high-water
    mark, so memory stays bounded no matter how fast the producer is.

    Returns:
        Number of bytes written

    Raises:
        SinkClosedError: The sink is already closing, closed or errored
    """
    if sink.is_closing():
        raise SinkClosedError("[merge_streams] output is closed")
    if isinstance(data, str):
        data = data.encode("utf-8")
    sink.write(data)
    await sink.drain()
    return len(data)


async def finalize_sink(sink: OutputSink) -> None:
    """
    Close the sink and wait for its final flush.

    No-op when the sink is already closing. A flush-time error is raised from
    ``wait_closed()`` instead of being dropped.
    """
    if sink.is_closing():
        return
    sink.close()
    await sink.wait_closed()


async def iter_text(stream: ByteStream) -> AsyncIterator[str]:
    """
    Decode a byte stream as UTF-8, tolerating code points split across chunks.

    Invalid sequences decode to U+FFFD instead of failing the merge.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    async for chunk in stream:
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


async def read_lines(stream: ByteStream) -> AsyncIterator[str]:
    """
    Split a byte stream into UTF-8 lines.

    Lines are split on ``\\n`` with one trailing ``\\r`` trimmed, so ``\\n`` and
    ``\\r\\n`` terminators are both accepted. A non-terminated final line is
    yielded at stream end.
    """
    carry = ""
    async for text in iter_text(stream):
        carry += text
        start = 0
        while True:
            lf = carry.find("\n", start)
            if lf == -1:
                break
            line = carry[start:lf]
            if line.endswith("\r"):
                line = line[:-1]
            yield line
            start = lf + 1
        carry = carry[start:]

    if carry:
        if carry.endswith("\r"):
            carry = carry[:-1]
        yield carry


async def count_bytes(
    stream: ByteStream, on_bytes: Callable[[int], None]
) -> AsyncIterator[bytes]:
    """
    Pass chunks through unchanged, reporting each chunk's size.

    Closing this iterator closes the wrapped stream as well, releasing any
    HTTP connection behind it.
    """
    try:
        async for chunk in stream:
            on_bytes(len(chunk))
            yield chunk
    finally:
        await aclose_stream(stream)


async def aclose_stream(stream: object) -> None:
    """Close an async generator/iterator if it supports it."""
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


__all__ = [
    "aclose_stream",
    "count_bytes",
    "finalize_sink",
    "iter_text",
    "read_lines",
    "write_to_sink",
]
