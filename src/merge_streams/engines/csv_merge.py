"""
CSV merge engine.

Concatenates CSV chunks line by line under a single header:

- The first line of the first input becomes the header
- When the first input is empty there is no header; every later first line
  is written through as a row
- A later input's first line is dropped only if it equals that header exactly
- Every emitted line ends with ``\\n`` whatever the original terminator

Known limitation: headers are compared as plain strings. A chunk whose
header differs in column order or naming is not reconciled; its first line is
written through as an ordinary row.
"""

from collections.abc import Iterable
from contextlib import aclosing
from typing import Optional

from merge_streams.cancel import CancelToken
from merge_streams.config import MergeSettings
from merge_streams.engines.base import MergeContext
from merge_streams.progress import ProgressCallback
from merge_streams.streams.inputs import InputLike
from merge_streams.streams.utils import read_lines
from merge_streams.types import OutputSink

LABEL = "merge_csv"


async def merge_csv(
    inputs: Iterable[InputLike],
    output: OutputSink,
    *,
    cancel_token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    throttle_ms: Optional[int] = None,
    settings: Optional[MergeSettings] = None,
) -> None:
    """
    Merge CSV inputs into one CSV stream with a single header.

    Inputs are read one at a time in order. The output sink is finalized on
    success; on failure it is left as-is for the caller to discard.

    Args:
        inputs: Non-empty list of input sources (streams or stream factories)
        output: Output sink
        cancel_token: Checked before each input and before each line
        on_progress: Progress callback
        throttle_ms: Minimum spacing between progress callbacks (0 = every update)
        settings: Merge settings (default: process-wide settings)

    Raises:
        ValidationError: Empty or malformed inputs
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

    header: Optional[str] = None
    lines_written = 0
    try:
        for index in range(len(ctx.sources)):
            async with ctx.open_input(index) as stream:
                async with aclosing(read_lines(stream)) as lines:
                    first = True
                    async for line in lines:
                        ctx.check_cancelled()
                        if first:
                            first = False
                            if index == 0:
                                header = line
                            elif header is not None and line == header:
                                continue
                        await ctx.write(f"{line}\n")
                        lines_written += 1

        await ctx.finalize()
    finally:
        ctx.tracker.finish()

    ctx.log_completed(lines_written=lines_written)


__all__ = ["merge_csv"]
