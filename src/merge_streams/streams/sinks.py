"""
Concrete output sinks.

Both sinks follow the ``asyncio.StreamWriter`` writing contract
(write / drain / close / wait_closed / is_closing), so engines treat them
exactly like a socket writer.
"""

import asyncio
import logging
from pathlib import Path
from typing import BinaryIO, Optional

from merge_streams.config import get_settings
from merge_streams.errors import SinkClosedError

logger = logging.getLogger(__name__)


class BufferSink:
    """
    In-memory sink collecting everything written.

    Useful for small merges and tests. ``drain()`` never blocks since the
    buffer is unbounded; ``getvalue()`` returns the bytes written so far.
    """

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self._closing = False
        self._closed = asyncio.Event()

    def write(self, data: bytes) -> None:
        if self._closing:
            raise SinkClosedError("[BufferSink] write after close")
        self._chunks.append(bytes(data))

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self._closing = True
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def is_closing(self) -> bool:
        return self._closing

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)


class FileSink:
    """
    File sink flushing to disk off the event loop.

    Writes are buffered in memory; once the buffer passes ``high_water`` bytes
    (default: ``MergeSettings.sink_high_water_bytes``),
    ``drain()`` hands it to a worker thread (``asyncio.to_thread``) and
    suspends until the disk write finishes. A failed disk write marks the sink
    errored: later writes raise SinkClosedError and ``wait_closed()`` re-raises
    the original OSError.

    Example:
        async with FileSink(Path("merged.csv")) as sink:
            await merge_streams("CSV", inputs, sink)
    """

    def __init__(self, path: Path, high_water: Optional[int] = None):
        self.path = Path(path)
        self.high_water = high_water or get_settings().sink_high_water_bytes
        self.bytes_flushed = 0
        self._file: Optional[BinaryIO] = None
        self._buffer = bytearray()
        self._closing = False
        self._closed = False
        self._error: Optional[BaseException] = None
        self._lock = asyncio.Lock()

    def _open(self) -> BinaryIO:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "wb")
        return self._file

    def _write_block(self, block: bytes) -> None:
        f = self._open()
        f.write(block)
        f.flush()

    async def _flush(self) -> None:
        async with self._lock:
            if not self._buffer:
                return
            block = bytes(self._buffer)
            self._buffer.clear()
            try:
                await asyncio.to_thread(self._write_block, block)
            except OSError as e:
                self._error = e
                raise
            self.bytes_flushed += len(block)

    def write(self, data: bytes) -> None:
        if self.is_closing():
            raise SinkClosedError(f"[FileSink] write after close: {self.path}")
        self._buffer.extend(data)

    async def drain(self) -> None:
        if self._error is not None:
            raise SinkClosedError(
                f"[FileSink] sink errored: {self.path}", cause=self._error
            )
        if len(self._buffer) >= self.high_water:
            await self._flush()

    def close(self) -> None:
        self._closing = True

    def is_closing(self) -> bool:
        return self._closing or self._error is not None

    async def wait_closed(self) -> None:
        if self._closed:
            if self._error is not None:
                raise self._error
            return
        try:
            if self._error is None:
                await self._flush()
                # Empty merges still produce an (empty) file
                await asyncio.to_thread(self._open)
        finally:
            await self._release()
        if self._error is not None:
            raise self._error

    async def _release(self) -> None:
        self._closed = True
        self._closing = True
        if self._file is not None:
            f, self._file = self._file, None
            await asyncio.to_thread(f.close)

    async def __aenter__(self) -> "FileSink":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if not self._closed:
            if exc_type is None:
                self.close()
                await self.wait_closed()
            else:
                # Failed merge: keep whatever was flushed, drop the handle
                logger.debug(
                    "Releasing partially written file sink",
                    extra={"operation": "file_sink_release"},
                )
                self._buffer.clear()
                await self._release()
        return False


__all__ = ["BufferSink", "FileSink"]
