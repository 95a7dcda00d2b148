"""
Arrow IPC stream merge engine.

Byte-concatenating Arrow IPC streams produces one end-of-stream marker per
chunk, and most readers stop at the first one. This engine instead decodes
every input into record batches and re-encodes all of them into a single
encode session, so the output carries one schema message and exactly one
end-of-stream marker.

Two tasks run concurrently, coupled by a bounded queue:

    decode/forward: input bytes -> pyarrow.ipc.open_stream -> batches -> queue
    encode/pipe:    queue -> pyarrow.ipc.new_stream -> encoded bytes -> sink

pyarrow's reader is blocking, so decode calls run in a worker thread and
pull input bytes back from the event loop through _StreamBridge.
"""

import asyncio
import concurrent.futures
import io
import threading
from collections.abc import Callable, Iterable
from typing import Any, Optional, Union

import pyarrow as pa
import pyarrow.ipc

from merge_streams.cancel import CancelToken
from merge_streams.config import MergeSettings
from merge_streams.engines.base import MergeContext
from merge_streams.errors import CodecError
from merge_streams.progress import ProgressCallback
from merge_streams.streams.inputs import InputLike
from merge_streams.types import ByteStream, OutputSink

LABEL = "merge_arrow"

# Queue item: a schema opens an input, a batch is forwarded, None ends the merge
_QueueItem = Union[pa.Schema, pa.RecordBatch, None]


class _StreamBridge(io.RawIOBase):
    """
    Blocking, readable file over an async byte stream.

    ``read`` runs in a worker thread and schedules the next chunk pull on the
    event loop. A read returns ``size`` bytes unless the stream ends, since the
    IPC reader treats a short read as a truncated message. Memory follows the
    bytes actually received, not the size requested.
    """

    def __init__(
        self,
        stream: ByteStream,
        loop: asyncio.AbstractEventLoop,
        cancel_token: Optional[CancelToken] = None,
        label: str = LABEL,
    ):
        super().__init__()
        self.label = label
        self.error: Optional[BaseException] = None
        self._iterator = stream.__aiter__()
        self._loop = loop
        self._cancel_token = cancel_token
        self._pending = b""
        self._offset = 0
        self._eof = False
        self._position = 0
        self._aborted = False
        self._lock = threading.Lock()
        self._future: Optional[concurrent.futures.Future] = None
        self._reader_task: Optional[asyncio.Task] = None

    def readable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._position

    def read(self, size: int = -1) -> bytes:
        parts: list[bytes] = []
        remaining = size
        while size < 0 or remaining > 0:
            if self._offset >= len(self._pending):
                if self._eof:
                    break
                chunk = self._pull()
                if chunk is None:
                    self._eof = True
                    break
                self._pending, self._offset = chunk, 0
            if size < 0:
                end = len(self._pending)
            else:
                end = min(len(self._pending), self._offset + remaining)
                remaining -= end - self._offset
            parts.append(self._pending[self._offset : end])
            self._offset = end
        data = b"".join(parts)
        self._position += len(data)
        return data

    def readall(self) -> bytes:
        return self.read(-1)

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        data = self.read(len(view))
        view[: len(data)] = data
        return len(data)

    def _pull(self) -> Optional[bytes]:
        with self._lock:
            if self._aborted:
                raise OSError(f"[{self.label}] input read aborted")
            future = asyncio.run_coroutine_threadsafe(self._next_chunk(), self._loop)
            self._future = future
        try:
            return future.result()
        except concurrent.futures.CancelledError as exc:
            raise OSError(f"[{self.label}] input read aborted") from exc
        except Exception as exc:
            self.error = exc
            raise OSError(f"[{self.label}] input read failed: {exc}") from exc
        finally:
            with self._lock:
                self._future = None

    async def _next_chunk(self) -> Optional[bytes]:
        self._reader_task = asyncio.current_task()
        while True:
            try:
                if self._cancel_token is not None:
                    chunk = await self._cancel_token.guard(
                        self._iterator.__anext__(), self.label
                    )
                else:
                    chunk = await self._iterator.__anext__()
            except StopAsyncIteration:
                return None
            if chunk:
                return bytes(chunk)

    def abort(self) -> None:
        """Fail the current and every later read. Called from the event loop."""
        with self._lock:
            self._aborted = True
            if self._future is not None:
                self._future.cancel()

    async def release(self) -> None:
        """Wait for an in-flight chunk pull to unwind on the loop."""
        task = self._reader_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Run a blocking pyarrow call in a worker thread.

        If the calling task is cancelled, the bridge is aborted and the
        worker thread is awaited before the cancellation propagates.

        Raises:
            CodecError: pyarrow rejected the input bytes
        """
        work = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            return await asyncio.shield(work)
        except asyncio.CancelledError:
            self.abort()
            await asyncio.wait({work})
            if not work.cancelled():
                # The aborted read surfaces here as an OSError from pyarrow
                work.exception()
            await self.release()
            raise
        except (pa.ArrowException, OSError) as exc:
            if self.error is not None:
                raise self.error from None
            raise CodecError(f"[{self.label}] {exc}", cause=exc) from exc


class _ByteCollector:
    """Write target for the IPC encoder; encoded bytes are taken after each call."""

    def __init__(self) -> None:
        self.closed = False
        self._chunks: list[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    def take(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data

    def discard(self) -> None:
        self._chunks.clear()


def _read_next_batch(reader: pa.ipc.RecordBatchStreamReader) -> Optional[pa.RecordBatch]:
    try:
        return reader.read_next_batch()
    except StopIteration:
        return None


async def _decode_inputs(ctx: MergeContext, queue: "asyncio.Queue[_QueueItem]") -> None:
    """Decode inputs in order and forward their schemas and batches."""
    loop = asyncio.get_running_loop()
    for index in range(len(ctx.sources)):
        async with ctx.open_input(index) as stream:
            bridge = _StreamBridge(stream, loop, ctx.cancel_token, ctx.label)
            reader = await bridge.call(pa.ipc.open_stream, bridge)
            await queue.put(reader.schema)
            while True:
                ctx.check_cancelled()
                batch = await bridge.call(_read_next_batch, reader)
                if batch is None:
                    break
                await queue.put(batch)
    await queue.put(None)


async def _encode_batches(
    ctx: MergeContext, queue: "asyncio.Queue[_QueueItem]"
) -> tuple[int, int]:
    """
    Encode forwarded batches into one IPC stream and pipe it to the sink.

    The session opens on the first schema and is closed once after the
    sentinel. On failure it is abandoned without writing the end-of-stream
    marker and any encoded bytes not yet piped are dropped.

    Returns:
        (batches, rows) forwarded
    """
    collector = _ByteCollector()
    writer: Optional[pa.ipc.RecordBatchStreamWriter] = None
    batches = 0
    rows = 0

    async def pipe() -> None:
        data = collector.take()
        if data:
            await ctx.write(data)

    try:
        while True:
            item = await queue.get()
            if item is None:
                break
            try:
                if isinstance(item, pa.Schema):
                    if writer is None:
                        writer = pa.ipc.new_stream(pa.PythonFile(collector, mode="w"), item)
                else:
                    writer.write_batch(item)
                    batches += 1
                    rows += item.num_rows
            except pa.ArrowException as exc:
                raise CodecError(f"[{ctx.label}] {exc}", cause=exc) from exc
            await pipe()

        if writer is not None:
            writer.close()
            await pipe()
        await ctx.finalize()
    except BaseException:
        collector.discard()
        raise

    return batches, rows


async def merge_arrow(
    inputs: Iterable[InputLike],
    output: OutputSink,
    *,
    cancel_token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    throttle_ms: Optional[int] = None,
    settings: Optional[MergeSettings] = None,
) -> None:
    """
    Merge Arrow IPC stream inputs into one IPC stream.

    Batches are forwarded unmodified. All inputs must share the first
    input's schema; an input with a different schema fails the merge when
    its first batch reaches the encoder.

    Args:
        inputs: Non-empty list of input sources (streams or stream factories)
        output: Output sink
        cancel_token: Checked before each input, each batch and each chunk read
        on_progress: Progress callback
        throttle_ms: Minimum spacing between progress callbacks (0 = every update)
        settings: Merge settings (``arrow_queue_size`` bounds the batch queue)

    Raises:
        ValidationError: Empty or malformed inputs
        CodecError: Undecodable input, schema mismatch or other pyarrow error
        MergeCancelledError: cancel_token fired
    """
    ctx = MergeContext.create(
        LABEL,
        inputs,
        output,
        cancel_token=cancel_token,
        on_progress=on_progress,
        throttle_ms=throttle_ms,
        settings=settings,
    )
    queue: asyncio.Queue[_QueueItem] = asyncio.Queue(maxsize=ctx.settings.arrow_queue_size)

    producer = asyncio.create_task(_decode_inputs(ctx, queue), name=f"{LABEL}-decode")
    consumer = asyncio.create_task(_encode_batches(ctx, queue), name=f"{LABEL}-encode")
    tasks = {producer, consumer}
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.wait(tasks)
        ctx.tracker.finish()

    errors = [
        task.exception() for task in (producer, consumer) if not task.cancelled()
    ]
    errors = [err for err in errors if err is not None]
    if errors:
        raise errors[0]

    batches, rows = consumer.result()
    ctx.log_completed(batches_forwarded=batches, rows_forwarded=rows)


__all__ = ["merge_arrow"]
