"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_merge_id: ContextVar[str] = ContextVar("merge_id", default="")
_merge_format: ContextVar[str] = ContextVar("merge_format", default="")
_input_index: ContextVar[Optional[int]] = ContextVar("input_index", default=None)


def set_log_context(
    merge_id: Optional[str] = None,
    merge_format: Optional[str] = None,
    input_index: Optional[int] = None,
) -> None:
    if merge_id is not None:
        _merge_id.set(merge_id)
    if merge_format is not None:
        _merge_format.set(merge_format)
    if input_index is not None:
        _input_index.set(input_index)


def get_log_context() -> Dict[str, object]:
    return {
        "merge_id": _merge_id.get(),
        "merge_format": _merge_format.get(),
        "input_index": _input_index.get(),
    }


def clear_log_context() -> None:
    _merge_id.set("")
    _merge_format.set("")
    _input_index.set(None)


def clear_input_index() -> None:
    _input_index.set(None)
