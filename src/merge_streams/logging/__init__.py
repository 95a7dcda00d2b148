"""
Structured logging module.

Provides JSON and console logging with per-merge context propagation.
"""

from merge_streams.logging.context import (
    clear_input_index,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from merge_streams.logging.context_managers import MergeLogContext, generate_merge_id
from merge_streams.logging.formatters import ConsoleFormatter, JSONFormatter
from merge_streams.logging.setup import get_logger, setup_logging

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "clear_input_index",
    # Context Managers
    "MergeLogContext",
    "generate_merge_id",
]
