"""
URL input support.

Provides:
    - is_http_url: eager http(s) URL check
    - create_session: pooled aiohttp ClientSession built from MergeSettings
    - open_url: GET a chunk URL and expose its body as a lazy ByteStream
"""

from merge_streams.download.http_client import CHUNK_SIZE, create_session, is_http_url, open_url

__all__ = [
    "CHUNK_SIZE",
    "create_session",
    "is_http_url",
    "open_url",
]
