"""
pytest configuration for merge_streams tests.

Adds src directory to Python path for imports and provides stream helpers.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from merge_streams.config import reset_settings  # noqa: E402


async def _byte_stream(chunks):
    for chunk in chunks:
        yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


@pytest.fixture
def stream_of():
    """Build a ByteStream yielding the given chunks (str chunks are UTF-8 encoded)."""

    def factory(*chunks):
        return _byte_stream(chunks)

    return factory


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch):
    """Isolate tests from MERGE_STREAMS_* variables and cached settings."""
    for key in list(os.environ):
        if key.startswith("MERGE_STREAMS_"):
            monkeypatch.delenv(key)
    reset_settings()
    yield
    reset_settings()
