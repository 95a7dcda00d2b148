"""
JSON array merge engine.

Each input must be one JSON array. The engine strips every input's outer
brackets and streams the elements into a single output array, inserting a
comma between inputs only when both sides contributed elements:

    ["[]", "[1,2]"]            -> [1,2]
    ['[{"a":1}]', '[{"b":2}]'] -> [{"a":1},{"b":2}]

Array boundaries are found with a small state machine over the decoded text,
so brackets inside string literals (including escaped quotes) never move the
nesting depth. Element contents are not parsed or validated.
"""

import re
from collections.abc import Iterable
from contextlib import aclosing
from typing import Optional

from merge_streams.cancel import CancelToken
from merge_streams.config import MergeSettings
from merge_streams.engines.base import MergeContext
from merge_streams.errors import FormatError
from merge_streams.progress import ProgressCallback
from merge_streams.streams.inputs import InputLike
from merge_streams.streams.utils import iter_text
from merge_streams.types import OutputSink

LABEL = "merge_json"

_WHITESPACE = " \t\n\r"
_NON_WHITESPACE = re.compile(r"[^ \t\n\r]")
_ARRAY_SPECIAL = re.compile(r'["\[\]]')
_STRING_SPECIAL = re.compile(r'["\\]')


class JsonArrayScanner:
    """
    Incremental scanner for one top-level JSON array.

    States:
        before-start: whitespace is skipped; the first other char must be '['
        in-array:     '[' and ']' change depth; '"' enters a string
        in-string:    only an unescaped '"' leaves; '\\' escapes the next char
        finished:     depth went back to 0; only whitespace may follow

    ``feed`` returns the text between the outer brackets found in the chunk.
    Whitespace before the first element is dropped so ``[ ]`` yields nothing.
    """

    def __init__(self, label: str = LABEL):
        self.label = label
        self.started = False
        self.finished = False
        self.depth = 0
        self.in_string = False
        self.escape_next = False
        self.has_content = False

    def _emit(self, out: list[str], piece: str) -> None:
        if not self.has_content:
            piece = piece.lstrip(_WHITESPACE)
            if not piece:
                return
            self.has_content = True
        out.append(piece)

    def feed(self, text: str) -> str:
        """
        Consume one chunk of decoded text.

        Raises:
            FormatError: Missing '[' or data after the closing ']'
        """
        out: list[str] = []
        i = 0
        n = len(text)
        while i < n:
            if not self.started:
                m = _NON_WHITESPACE.search(text, i)
                if m is None:
                    break
                if text[m.start()] != "[":
                    raise FormatError(f"[{self.label}] Expected JSON array input")
                self.started = True
                self.depth = 1
                i = m.start() + 1

            elif self.finished:
                if _NON_WHITESPACE.search(text, i) is not None:
                    raise FormatError(f"[{self.label}] Unexpected data after JSON array end")
                break

            elif self.in_string:
                if self.escape_next:
                    out.append(text[i])
                    self.escape_next = False
                    i += 1
                    continue
                m = _STRING_SPECIAL.search(text, i)
                if m is None:
                    out.append(text[i:])
                    break
                j = m.start()
                out.append(text[i : j + 1])
                if text[j] == "\\":
                    self.escape_next = True
                else:
                    self.in_string = False
                i = j + 1

            else:
                m = _ARRAY_SPECIAL.search(text, i)
                if m is None:
                    self._emit(out, text[i:])
                    break
                j = m.start()
                self._emit(out, text[i:j])
                ch = text[j]
                if ch == '"':
                    self.in_string = True
                    self._emit(out, ch)
                elif ch == "[":
                    self.depth += 1
                    self._emit(out, ch)
                else:
                    self.depth -= 1
                    if self.depth == 0:
                        self.finished = True
                    else:
                        self._emit(out, ch)
                i = j + 1

        return "".join(out)

    def close(self) -> None:
        """
        Check the input ended on a complete array.

        Raises:
            FormatError: Empty input or unbalanced nesting
        """
        if not self.started:
            raise FormatError(f"[{self.label}] Empty input")
        if not self.finished or self.depth != 0:
            raise FormatError(f"[{self.label}] Unterminated JSON array")


class _ArrayContentWriter:
    """Buffers element text and writes it with comma separation across inputs."""

    def __init__(self, ctx: MergeContext, flush_chars: int):
        self.ctx = ctx
        self.flush_chars = flush_chars
        self.output_has_content = False
        self.input_has_content = False
        self._buffer: list[str] = []
        self._size = 0

    def start_input(self) -> None:
        self.input_has_content = False

    async def add(self, piece: str) -> None:
        if not piece:
            return
        self._buffer.append(piece)
        self._size += len(piece)
        if self._size >= self.flush_chars:
            await self.flush()

    async def flush(self) -> None:
        if not self._buffer:
            return
        if not self.input_has_content:
            if self.output_has_content:
                await self.ctx.write(",")
            self.input_has_content = True
            self.output_has_content = True
        data = "".join(self._buffer)
        self._buffer.clear()
        self._size = 0
        await self.ctx.write(data)


async def merge_json(
    inputs: Iterable[InputLike],
    output: OutputSink,
    *,
    cancel_token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    throttle_ms: Optional[int] = None,
    settings: Optional[MergeSettings] = None,
) -> None:
    """
    Merge JSON array inputs into one JSON array stream.

    Inputs are read one at a time in order. Element text is flushed in
    chunks of ``settings.json_flush_chars`` characters so memory stays
    bounded for arbitrarily large arrays.

    Args:
        inputs: Non-empty list of input sources (streams or stream factories)
        output: Output sink
        cancel_token: Checked before each input and for every decoded chunk
        on_progress: Progress callback
        throttle_ms: Minimum spacing between progress callbacks (0 = every update)
        settings: Merge settings (default: process-wide settings)

    Raises:
        ValidationError: Empty or malformed inputs
        FormatError: An input is not a single well-formed JSON array
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
    writer = _ArrayContentWriter(ctx, ctx.settings.json_flush_chars)

    try:
        await ctx.write("[")
        for index in range(len(ctx.sources)):
            scanner = JsonArrayScanner(LABEL)
            writer.start_input()
            async with ctx.open_input(index) as stream:
                async with aclosing(iter_text(stream)) as texts:
                    async for text in texts:
                        ctx.check_cancelled()
                        await writer.add(scanner.feed(text))
            scanner.close()
            await writer.flush()

        await ctx.write("]")
        await ctx.finalize()
    finally:
        ctx.tracker.finish()

    ctx.log_completed()


__all__ = ["JsonArrayScanner", "merge_json"]
