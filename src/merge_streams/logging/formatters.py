"""Log formatters for JSON and console output."""

import json
import logging
import re
import sys
from datetime import UTC, date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from merge_streams.logging.context import get_log_context


def json_serializer(obj: Any) -> Any:
    """
    Type-safe JSON serializer for log records.

    - datetime/date -> ISO 8601 string
    - Path -> string
    - Enums -> value
    - Everything else -> string (fallback)
    """
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Sanitizes URLs to remove presigned signatures before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        "duration_ms",
        # HTTP
        "http_status",
        "url",
        "content_type",
        # Errors
        "error_category",
        "error_message",
        "callback_error",
        # Merge progress
        "total_inputs",
        "inputed_bytes",
        "merged_bytes",
        "lines_written",
        "batches_forwarded",
        "rows_forwarded",
        "operation",
    ]

    NUMERIC_FIELDS = {
        "duration_ms": float,
        "http_status": int,
        "total_inputs": int,
        "inputed_bytes": int,
        "merged_bytes": int,
        "lines_written": int,
        "batches_forwarded": int,
        "rows_forwarded": int,
    }

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["url"]

    # Presigned URL query parameters (S3, Azure SAS, GCS) plus generic secrets
    SENSITIVE_PARAMS_PATTERN = re.compile(
        r"([?&])(sig|signature|x-amz-signature|x-amz-credential|x-amz-security-token"
        r"|x-goog-signature|token|key|secret|password|auth)=[^&]*",
        re.IGNORECASE,
    )

    @classmethod
    def sanitize_url(cls, url: str) -> str:
        return cls.SENSITIVE_PARAMS_PATTERN.sub(r"\1\2=[REDACTED]", url)

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return self.sanitize_url(value)
        return value

    def _ensure_type(self, field: str, value: Any) -> Any:
        if field not in self.NUMERIC_FIELDS or value is None:
            return value

        expected_type = self.NUMERIC_FIELDS[field]
        try:
            return expected_type(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _base_log_entry(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _inject_context(log_entry: dict[str, Any], log_context: dict[str, Any]) -> None:
        for field in ("merge_id", "merge_format", "input_index"):
            value = log_context.get(field)
            if value is not None and value != "":
                log_entry[field] = value

    def _inject_extra_fields(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                typed_value = self._ensure_type(field, value)
                log_entry[field] = self._sanitize_value(field, typed_value)

    def _inject_exception(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "stacktrace": self.formatException(record.exc_info),
        }

    def format(self, record: logging.LogRecord) -> str:
        log_entry = self._base_log_entry(record)
        self._inject_context(log_entry, get_log_context())

        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        self._inject_extra_fields(log_entry, record)
        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when output is not a TTY (pipes, files).
    """

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        if not self._use_colors:
            return level_name

        color = self.COLORS.get(record.levelno, "")
        if not color:
            return level_name

        return f"{color}{level_name}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        log_context = get_log_context()
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            self._format_level_name(record),
        ]
        if log_context["merge_format"]:
            parts.append(f"[{log_context['merge_format']}]")
        if log_context["merge_id"]:
            parts.append(f"[{log_context['merge_id']}]")
        prefix = " - ".join(parts)

        input_index = log_context["input_index"]
        if input_index is not None:
            return f"{prefix} - [input:{input_index}] {record.getMessage()}"
        return f"{prefix} - {record.getMessage()}"
