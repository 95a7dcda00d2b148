"""Context managers for structured logging."""

import secrets
import time
from typing import Any, Dict, Optional

from merge_streams.logging.context import (
    clear_input_index,
    get_log_context,
    set_log_context,
)


def generate_merge_id() -> str:
    """
    Generate a short unique merge identifier.

    Format: m-XXXXXXXX where XXXXXXXX is random hex.
    """
    return f"m-{secrets.token_hex(4)}"


class MergeLogContext:
    """
    Scope log context to one merge call and time it.

    Usage:
        with MergeLogContext("CSV") as ctx:
            await run_engine()
        logger.info("done", extra={"duration_ms": ctx.duration_ms})
    """

    def __init__(self, merge_format: str, merge_id: Optional[str] = None):
        self.merge_format = merge_format
        self.merge_id = merge_id or generate_merge_id()
        self.old_context: Dict[str, Any] = {}
        self.start_time: Optional[float] = None

    def __enter__(self) -> "MergeLogContext":
        self.old_context = get_log_context()
        set_log_context(merge_id=self.merge_id, merge_format=self.merge_format)
        self.start_time = time.perf_counter()
        return self

    @property
    def duration_ms(self) -> float:
        if self.start_time is None:
            return 0.0
        return round((time.perf_counter() - self.start_time) * 1000, 2)

    def __exit__(self, exc_type, exc_val, exc_tb):
        set_log_context(
            merge_id=self.old_context.get("merge_id", ""),
            merge_format=self.old_context.get("merge_format", ""),
        )
        clear_input_index()
        return False
