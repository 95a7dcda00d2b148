"""Throttled byte-count progress reporting for one merge call."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Point-in-time merge progress.

    Attributes:
        input_index: Index of the input being (or most recently) processed
        total_inputs: Number of inputs in the merge
        inputed_bytes: Bytes read from all inputs so far
        merged_bytes: Bytes written to the output so far
    """

    input_index: int
    total_inputs: int
    inputed_bytes: int
    merged_bytes: int


ProgressCallback = Callable[[ProgressSnapshot], None]


class ProgressTracker:
    """
    Counts bytes flowing in and out of one merge and reports them.

    The callback fires at most once per ``throttle_ms`` (every update when 0)
    and once more, unconditionally, from ``finish()``. Counters only grow.
    """

    def __init__(
        self,
        total_inputs: int,
        on_progress: Optional[ProgressCallback] = None,
        throttle_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            total_inputs: Number of inputs in the merge
            on_progress: Callback receiving ProgressSnapshot instances
            throttle_ms: Minimum spacing between callbacks in milliseconds
            clock: Monotonic clock in seconds (injectable for tests)
        """
        if throttle_ms < 0:
            raise ValueError(f"throttle_ms must be >= 0, got {throttle_ms}")
        self.total_inputs = total_inputs
        self.on_progress = on_progress
        self.throttle_seconds = throttle_ms / 1000
        self.clock = clock
        self.input_index = 0
        self.inputed_bytes = 0
        self.merged_bytes = 0
        self._last_emit: Optional[float] = None
        self._finished = False

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            input_index=self.input_index,
            total_inputs=self.total_inputs,
            inputed_bytes=self.inputed_bytes,
            merged_bytes=self.merged_bytes,
        )

    def start_input(self, index: int) -> None:
        self.input_index = index
        self._maybe_emit()

    def add_read(self, nbytes: int) -> None:
        if nbytes <= 0:
            return
        self.inputed_bytes += nbytes
        self._maybe_emit()

    def add_written(self, nbytes: int) -> None:
        if nbytes <= 0:
            return
        self.merged_bytes += nbytes
        self._maybe_emit()

    def finish(self) -> None:
        """Emit the final totals regardless of throttling. Idempotent."""
        if self._finished:
            return
        self._finished = True
        self._emit()

    def _maybe_emit(self) -> None:
        if self.on_progress is None or self._finished:
            return
        now = self.clock()
        if (
            self._last_emit is not None
            and self.throttle_seconds > 0
            and now - self._last_emit < self.throttle_seconds
        ):
            return
        self._last_emit = now
        self._emit()

    def _emit(self) -> None:
        """Call the progress callback, swallowing and logging any errors."""
        if self.on_progress is None:
            return
        try:
            self.on_progress(self.snapshot())
        except Exception as cb_err:
            logger.warning(
                "Error in on_progress callback: %s",
                str(cb_err)[:100],
                extra={
                    "operation": "on_progress",
                    "callback_error": str(cb_err)[:100],
                },
            )


__all__ = ["ProgressCallback", "ProgressSnapshot", "ProgressTracker"]
