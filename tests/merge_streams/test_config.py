"""
Tests for merge settings loading.

Test Coverage:
    - Defaults and validation ranges
    - YAML section with nested http block and ${VAR} expansion
    - Precedence: overrides > MERGE_STREAMS_* env > YAML > defaults
    - Process-wide default accessors
"""

from pathlib import Path

import pytest

from merge_streams.config import (
    MergeSettings,
    get_settings,
    load_settings,
    reset_settings,
    set_settings,
)


@pytest.fixture
def config_file(tmp_path) -> Path:
    path = tmp_path / "merge_streams.yaml"
    path.write_text(
        """
merge_streams:
  throttle_ms: 250
  json_flush_chars: ${FLUSH_CHARS:-4096}
  http:
    timeout_seconds: 120
    sock_read_timeout_seconds: 15
    max_connections: 20
    max_connections_per_host: 5
other_tool:
  ignored: true
"""
    )
    return path


class TestMergeSettings:

    def test_defaults(self):
        settings = MergeSettings()
        assert settings.throttle_ms == 1000
        assert settings.json_flush_chars == 65536
        assert settings.read_chunk_size == 65536
        assert settings.arrow_queue_size == 1
        assert settings.sink_high_water_bytes == 1024 * 1024
        assert settings.http_timeout_seconds == 300
        assert settings.http_connect_timeout_seconds == 30
        assert settings.http_sock_read_timeout_seconds == 60
        assert settings.max_connections == 100
        assert settings.max_connections_per_host == 10
        settings.validate()

    @pytest.mark.parametrize(
        "field, value",
        [
            ("throttle_ms", -1),
            ("json_flush_chars", 0),
            ("arrow_queue_size", 0),
            ("read_chunk_size", 0),
            ("http_timeout_seconds", 0),
        ],
    )
    def test_validate_rejects_out_of_range(self, field, value):
        with pytest.raises(ValueError, match=field):
            MergeSettings(**{field: value}).validate()

    def test_per_host_limit_cannot_exceed_total(self):
        with pytest.raises(ValueError, match="max_connections_per_host"):
            MergeSettings(max_connections=5, max_connections_per_host=10).validate()


class TestLoadSettings:

    def test_missing_default_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_settings() == MergeSettings()

    def test_explicit_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml")

    def test_yaml_section_with_http_block(self, config_file):
        settings = load_settings(config_file)
        assert settings.throttle_ms == 250
        assert settings.json_flush_chars == 4096
        assert settings.http_timeout_seconds == 120
        assert settings.http_sock_read_timeout_seconds == 15
        assert settings.max_connections == 20
        assert settings.max_connections_per_host == 5
        assert settings.read_chunk_size == 65536

    def test_yaml_env_expansion(self, config_file, monkeypatch):
        monkeypatch.setenv("FLUSH_CHARS", "1024")
        assert load_settings(config_file).json_flush_chars == 1024

    def test_env_overrides_yaml(self, config_file, monkeypatch):
        monkeypatch.setenv("MERGE_STREAMS_THROTTLE_MS", "0")
        monkeypatch.setenv("MERGE_STREAMS_ARROW_QUEUE_SIZE", "4")
        settings = load_settings(config_file)
        assert settings.throttle_ms == 0
        assert settings.arrow_queue_size == 4

    def test_overrides_win_over_env(self, config_file, monkeypatch):
        monkeypatch.setenv("MERGE_STREAMS_THROTTLE_MS", "0")
        settings = load_settings(config_file, overrides={"throttle_ms": 10})
        assert settings.throttle_ms == 10

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("merge_streams:\n  flush_everything: 1\n")
        with pytest.raises(ValueError, match="flush_everything"):
            load_settings(path)

    def test_non_integer_value_rejected(self, config_file):
        with pytest.raises(ValueError, match="Invalid merge settings value"):
            load_settings(config_file, overrides={"read_chunk_size": "lots"})

    def test_out_of_range_value_rejected(self, config_file):
        with pytest.raises(ValueError, match="arrow_queue_size"):
            load_settings(config_file, overrides={"arrow_queue_size": 0})


class TestProcessSettings:

    def test_get_settings_is_cached(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert get_settings() is get_settings()

    def test_set_and_reset(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        custom = MergeSettings(throttle_ms=5)
        set_settings(custom)
        assert get_settings() is custom
        reset_settings()
        assert get_settings().throttle_ms == 1000

    def test_set_settings_validates(self):
        with pytest.raises(ValueError):
            set_settings(MergeSettings(json_flush_chars=0))
