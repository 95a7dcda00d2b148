"""
Tests for the URL adapter against a local aiohttp server.

Test Coverage:
    - http(s) URL check
    - Lazy body streaming, redirects
    - Non-2xx statuses mapped to FetchError categories, URLs redacted
    - Transport failures and cancellation during the GET
    - Session built from MergeSettings
"""

import asyncio

import aiohttp
import pytest

from merge_streams.cancel import CancelToken
from merge_streams.config import MergeSettings
from merge_streams.download.http_client import create_session, is_http_url, open_url
from merge_streams.errors import ErrorCategory, FetchError, MergeCancelledError


async def collect(stream) -> list[bytes]:
    return [chunk async for chunk in stream]


@pytest.fixture
async def session():
    async with aiohttp.ClientSession() as s:
        yield s


class TestIsHttpUrl:

    @pytest.mark.parametrize(
        "value",
        ["http://example.com/a.csv", "https://example.com/a", "HTTPS://EXAMPLE.COM/"],
    )
    def test_accepts_http_schemes(self, value):
        assert is_http_url(value)

    @pytest.mark.parametrize(
        "value",
        ["ftp://example.com/a", "file:///tmp/a.csv", "s3://bucket/key", " http://x", "", None, 42],
    )
    def test_rejects_everything_else(self, value):
        assert not is_http_url(value)


class TestOpenUrl:

    @pytest.mark.asyncio
    async def test_streams_body_in_chunks(self, chunk_server, session):
        chunk_server.files["a.csv"] = b"id\n1\n2\n"
        stream = await open_url(chunk_server.file_url("a.csv"), session, chunk_size=3)
        chunks = await collect(stream)
        assert b"".join(chunks) == b"id\n1\n2\n"
        assert all(len(chunk) <= 3 for chunk in chunks)

    @pytest.mark.asyncio
    async def test_follows_redirects(self, chunk_server, session):
        chunk_server.files["b.json"] = b"[1,2]"
        stream = await open_url(chunk_server.url("/redirect/b.json"), session)
        assert b"".join(await collect(stream)) == b"[1,2]"
        assert chunk_server.requests == ["b.json"]

    @pytest.mark.asyncio
    async def test_not_found(self, chunk_server, session):
        url = chunk_server.file_url("missing.csv")
        with pytest.raises(FetchError) as exc_info:
            await open_url(url, session)

        err = exc_info.value
        assert err.status_code == 404
        assert err.category == ErrorCategory.PERMANENT
        assert str(err) == f"[merge_streams_from_urls] Failed to fetch '{url}': 404 Not Found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code, category",
        [(403, ErrorCategory.AUTH), (429, ErrorCategory.TRANSIENT), (503, ErrorCategory.TRANSIENT)],
    )
    async def test_status_categories(self, chunk_server, session, code, category):
        with pytest.raises(FetchError) as exc_info:
            await open_url(chunk_server.url(f"/status/{code}"), session, label="merge_csv")
        assert exc_info.value.status_code == code
        assert exc_info.value.category == category
        assert str(exc_info.value).startswith("[merge_csv] Failed to fetch")

    @pytest.mark.asyncio
    async def test_signature_redacted_in_error(self, chunk_server, session):
        url = chunk_server.url("/status/403") + "?X-Amz-Signature=topsecret"
        with pytest.raises(FetchError) as exc_info:
            await open_url(url, session)
        assert "topsecret" not in str(exc_info.value)
        assert "[REDACTED]" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_failure_is_transient(self, session):
        with pytest.raises(FetchError) as exc_info:
            await open_url("http://127.0.0.1:1/chunk.csv", session)
        assert exc_info.value.status_code is None
        assert exc_info.value.category == ErrorCategory.TRANSIENT
        assert isinstance(exc_info.value.cause, aiohttp.ClientError)

    @pytest.mark.asyncio
    async def test_cancelled_before_request(self, chunk_server, session):
        token = CancelToken()
        token.cancel()
        with pytest.raises(MergeCancelledError):
            await open_url(chunk_server.file_url("a.csv"), session, cancel_token=token)
        assert chunk_server.requests == []

    @pytest.mark.asyncio
    async def test_cancel_interrupts_pending_request(self, chunk_server, session):
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.1, token.cancel)
        with pytest.raises(MergeCancelledError):
            await asyncio.wait_for(
                open_url(chunk_server.url("/stall"), session, cancel_token=token),
                timeout=5,
            )
        assert chunk_server.requests == ["stall"]

    @pytest.mark.asyncio
    async def test_closing_unread_stream_releases_response(self, chunk_server, session):
        chunk_server.files["c.csv"] = b"x" * 100_000
        stream = await open_url(chunk_server.file_url("c.csv"), session, chunk_size=1024)
        first = await stream.__anext__()
        assert len(first) <= 1024
        await stream.aclose()


class TestCreateSession:

    @pytest.mark.asyncio
    async def test_uses_settings(self):
        settings = MergeSettings(
            http_timeout_seconds=42,
            http_connect_timeout_seconds=7,
            http_sock_read_timeout_seconds=9,
            max_connections=12,
            max_connections_per_host=3,
        )
        session = create_session(settings)
        try:
            assert session.timeout.total == 42
            assert session.timeout.connect == 7
            assert session.timeout.sock_read == 9
            assert session.connector.limit == 12
            assert session.connector.limit_per_host == 3
        finally:
            await session.close()
