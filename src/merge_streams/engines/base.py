"""
State shared by every format engine for one merge call.

A MergeContext owns the output sink, the cancellation token, the progress
tracker and the settings. Engines go through it to open inputs and to write,
so byte counting and cancellation checkpoints live in one place.
"""

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from merge_streams.cancel import CancelToken, raise_if_cancelled
from merge_streams.config import MergeSettings, get_settings
from merge_streams.logging.context import set_log_context
from merge_streams.progress import ProgressCallback, ProgressTracker
from merge_streams.streams.inputs import InputLike, InputSource, as_input_sources, resolve_input
from merge_streams.streams.utils import aclose_stream, count_bytes, finalize_sink, write_to_sink
from merge_streams.types import ByteStream, OutputSink

logger = logging.getLogger(__name__)


@dataclass
class MergeContext:
    """Per-call resources handed to an engine."""

    label: str
    sources: list[InputSource]
    output: OutputSink
    tracker: ProgressTracker
    settings: MergeSettings
    cancel_token: Optional[CancelToken] = None

    @classmethod
    def create(
        cls,
        label: str,
        inputs: Iterable[InputLike],
        output: OutputSink,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressCallback] = None,
        throttle_ms: Optional[int] = None,
        settings: Optional[MergeSettings] = None,
    ) -> "MergeContext":
        """
        Validate arguments and build the context. Performs no I/O.

        Raises:
            ValidationError: Empty input list or malformed input source
        """
        sources = as_input_sources(inputs, label)
        settings = settings or get_settings()
        if throttle_ms is None:
            throttle_ms = settings.throttle_ms
        tracker = ProgressTracker(
            total_inputs=len(sources),
            on_progress=on_progress,
            throttle_ms=throttle_ms,
        )
        return cls(
            label=label,
            sources=sources,
            output=output,
            tracker=tracker,
            settings=settings,
            cancel_token=cancel_token,
        )

    def check_cancelled(self) -> None:
        raise_if_cancelled(self.cancel_token, self.label)

    @asynccontextmanager
    async def open_input(self, index: int) -> AsyncIterator[ByteStream]:
        """
        Resolve input ``index`` into a byte-counted stream.

        Inputs are resolved strictly in order; callers open input i+1 only
        after leaving the block for input i. The stream is closed on exit,
        releasing any HTTP connection behind it.
        """
        self.check_cancelled()
        set_log_context(input_index=index)
        self.tracker.start_input(index)
        logger.debug(
            "Opening input %d/%d",
            index + 1,
            len(self.sources),
            extra={"total_inputs": len(self.sources)},
        )
        stream = await resolve_input(self.sources[index])
        counted = count_bytes(stream, self.tracker.add_read)
        try:
            yield counted
        finally:
            await counted.aclose()
            await aclose_stream(stream)

    async def write(self, data: bytes | str) -> None:
        written = await write_to_sink(self.output, data)
        self.tracker.add_written(written)

    async def finalize(self) -> None:
        await finalize_sink(self.output)

    def log_completed(self, **extra) -> None:
        logger.info(
            "Merged %d inputs",
            len(self.sources),
            extra={
                "total_inputs": len(self.sources),
                "inputed_bytes": self.tracker.inputed_bytes,
                "merged_bytes": self.tracker.merged_bytes,
                **extra,
            },
        )


__all__ = ["MergeContext"]
