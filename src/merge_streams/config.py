"""Merge settings from YAML file, environment and explicit overrides.

Loads the optional ``merge_streams:`` section of a YAML file:

    merge_streams:
      throttle_ms: 1000
      json_flush_chars: 65536
      read_chunk_size: 65536
      arrow_queue_size: 1
      sink_high_water_bytes: 1048576
      http:
        timeout_seconds: 300
        connect_timeout_seconds: 30
        sock_read_timeout_seconds: 60
        max_connections: 100
        max_connections_per_host: 10

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files,
and ``MERGE_STREAMS_<FIELD>`` variables override individual fields.
"""

import logging
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "MERGE_STREAMS_"

# Default config file, used only if present
DEFAULT_CONFIG_FILE = Path("merge_streams.yaml")


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


@dataclass
class MergeSettings:
    """Tunables for one or more merge calls.

    All sizes in bytes except json_flush_chars (decoded characters).
    """

    # =========================================================================
    # PROGRESS
    # =========================================================================
    throttle_ms: int = 1000  # 0 = emit on every update

    # =========================================================================
    # ENGINE BUFFERS
    # =========================================================================
    json_flush_chars: int = 64 * 1024
    read_chunk_size: int = 64 * 1024
    arrow_queue_size: int = 1
    sink_high_water_bytes: int = 1024 * 1024

    # =========================================================================
    # HTTP (URL mode)
    # =========================================================================
    http_timeout_seconds: int = 300
    http_connect_timeout_seconds: int = 30
    http_sock_read_timeout_seconds: int = 60
    max_connections: int = 100
    max_connections_per_host: int = 10

    @staticmethod
    def _validate_min(value: int, key: str, min_value: int) -> None:
        if value < min_value:
            raise ValueError(f"{key} must be >= {min_value}, got {value}")

    def validate(self) -> None:
        """Validate numeric ranges."""
        self._validate_min(self.throttle_ms, "throttle_ms", 0)
        self._validate_min(self.json_flush_chars, "json_flush_chars", 1)
        self._validate_min(self.read_chunk_size, "read_chunk_size", 1)
        self._validate_min(self.arrow_queue_size, "arrow_queue_size", 1)
        self._validate_min(self.sink_high_water_bytes, "sink_high_water_bytes", 1)
        self._validate_min(self.http_timeout_seconds, "http_timeout_seconds", 1)
        self._validate_min(
            self.http_connect_timeout_seconds, "http_connect_timeout_seconds", 1
        )
        self._validate_min(
            self.http_sock_read_timeout_seconds, "http_sock_read_timeout_seconds", 1
        )
        self._validate_min(self.max_connections, "max_connections", 1)
        self._validate_min(self.max_connections_per_host, "max_connections_per_host", 1)
        if self.max_connections_per_host > self.max_connections:
            raise ValueError(
                f"max_connections_per_host ({self.max_connections_per_host}) must be <= "
                f"max_connections ({self.max_connections})"
            )


def _flatten_section(section: Dict[str, Any]) -> Dict[str, Any]:
    """Map the nested YAML layout onto flat MergeSettings field names."""
    flat = {key: value for key, value in section.items() if key != "http"}
    http = section.get("http", {}) or {}
    for key, value in http.items():
        if key in ("max_connections", "max_connections_per_host"):
            flat[key] = value
        else:
            flat[f"http_{key}"] = value
    return flat


def _env_overrides() -> Dict[str, Any]:
    result = {}
    for f in fields(MergeSettings):
        raw = os.getenv(f"{ENV_PREFIX}{f.name.upper()}")
        if raw is not None and raw != "":
            result[f.name] = raw
    return result


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> MergeSettings:
    """Load merge settings.

    Priority (highest to lowest):
    1. ``overrides`` argument
    2. ``MERGE_STREAMS_*`` environment variables
    3. ``merge_streams:`` section of the YAML file
    4. Dataclass defaults
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE
    elif not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    values: Dict[str, Any] = {}
    if config_path.exists():
        logger.debug(f"Loading merge settings from file: {config_path}")
        yaml_data = _expand_env_vars(load_yaml(config_path))
        section = yaml_data.get("merge_streams", {}) or {}
        values.update(_flatten_section(section))

    values.update(_env_overrides())
    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        values.update(overrides)

    known = {f.name for f in fields(MergeSettings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown merge settings: {unknown}")

    try:
        settings = MergeSettings(**{key: int(value) for key, value in values.items()})
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid merge settings value: {e}") from e

    settings.validate()
    return settings


_settings: Optional[MergeSettings] = None


def get_settings() -> MergeSettings:
    """Get or load the process-wide default settings."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: MergeSettings) -> None:
    """Set the process-wide default settings (useful for testing)."""
    global _settings
    settings.validate()
    _settings = settings


def reset_settings() -> None:
    """Reset the default settings (forces reload on next get_settings() call)."""
    global _settings
    _settings = None


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "MergeSettings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "set_settings",
]
