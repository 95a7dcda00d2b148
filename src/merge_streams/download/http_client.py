"""
HTTP adapter turning chunk URLs into lazily-fetched byte streams.

Chunked result sets from SQL warehouses are usually handed out as presigned
object-store URLs. ``open_url`` fetches one of them with aiohttp and exposes
the body as a ByteStream, so engines read it at their own pace instead of
buffering whole files.

Does NOT perform:
- Retry logic (caller's responsibility; FetchError carries a category)
- SSRF allow-listing (URLs come from the warehouse, not from end users)
"""

import asyncio
import logging
import re
from collections.abc import AsyncIterator
from typing import Optional

import aiohttp

from merge_streams.cancel import CancelToken, raise_if_cancelled
from merge_streams.config import MergeSettings, get_settings
from merge_streams.errors import FetchError
from merge_streams.logging.formatters import JSONFormatter

logger = logging.getLogger(__name__)

DEFAULT_LABEL = "merge_streams_from_urls"
CHUNK_SIZE = 64 * 1024

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)


def is_http_url(value: object) -> bool:
    """True for strings starting with http:// or https:// (any case)."""
    return isinstance(value, str) and _HTTP_URL.match(value) is not None


def create_session(settings: Optional[MergeSettings] = None) -> aiohttp.ClientSession:
    """
    Create aiohttp ClientSession with connection pooling and timeouts.

    Pool and timeout values come from ``settings`` (default: process-wide
    settings):
    - max_connections / max_connections_per_host: pool limits
    - http_timeout_seconds: total time for one request including its body
    - http_connect_timeout_seconds: time to establish a connection
    - http_sock_read_timeout_seconds: time between reads, so a stalled
      connection fails instead of hanging

    Note:
        Caller is responsible for session lifecycle management.
        Use async context manager for automatic cleanup:

        async with create_session() as session:
            stream = await open_url(url, session)
    """
    settings = settings or get_settings()
    connector = aiohttp.TCPConnector(
        limit=settings.max_connections,
        limit_per_host=settings.max_connections_per_host,
        ttl_dns_cache=300,
    )
    timeout = aiohttp.ClientTimeout(
        total=settings.http_timeout_seconds,
        connect=settings.http_connect_timeout_seconds,
        sock_read=settings.http_sock_read_timeout_seconds,
    )
    return aiohttp.ClientSession(connector=connector, timeout=timeout)


async def open_url(
    url: str,
    session: aiohttp.ClientSession,
    cancel_token: Optional[CancelToken] = None,
    chunk_size: int = CHUNK_SIZE,
    label: str = DEFAULT_LABEL,
) -> AsyncIterator[bytes]:
    """
    GET ``url`` and return its body as a lazily-read byte stream.

    Redirects are followed (presigned URLs commonly redirect). The request is
    raced against ``cancel_token``. The returned iterator MUST be consumed or
    closed (``aclose()``); it releases the response when done.

    Args:
        url: http(s) URL to fetch
        session: aiohttp ClientSession (caller manages lifecycle)
        cancel_token: Optional token aborting the request and body reads
        chunk_size: Size of body chunks in bytes
        label: Operation label used in error messages

    Returns:
        Async iterator over body chunks

    Raises:
        FetchError: Non-2xx status or transport failure
        MergeCancelledError: cancel_token fired
    """
    raise_if_cancelled(cancel_token, label)
    safe_url = JSONFormatter.sanitize_url(url)
    response_ctx = session.get(url, allow_redirects=True)

    async def send() -> aiohttp.ClientResponse:
        return await response_ctx.__aenter__()

    logger.debug("Fetching input", extra={"url": safe_url})
    try:
        if cancel_token is not None:
            response = await cancel_token.guard(send(), label)
        else:
            response = await send()
    except asyncio.TimeoutError as e:
        raise FetchError(
            f"{_prefix(label)}Timed out fetching '{safe_url}'",
            cause=e,
            context={"url": safe_url},
        ) from e
    except aiohttp.ClientError as e:
        raise FetchError(
            f"{_prefix(label)}Failed to fetch '{safe_url}': {e}",
            cause=e,
            context={"url": safe_url},
        ) from e

    if not 200 <= response.status < 300:
        status, reason = response.status, response.reason
        await response_ctx.__aexit__(None, None, None)
        raise FetchError(
            f"{_prefix(label)}Failed to fetch '{safe_url}': {status} {reason}",
            status_code=status,
            context={"url": safe_url},
        )

    logger.debug(
        "Fetched input headers",
        extra={
            "url": safe_url,
            "http_status": response.status,
            "content_type": response.headers.get("Content-Type"),
        },
    )

    async def chunk_iterator() -> AsyncIterator[bytes]:
        try:
            async for chunk in response.content.iter_chunked(chunk_size):
                raise_if_cancelled(cancel_token, label)
                yield chunk
        except asyncio.TimeoutError as e:
            raise FetchError(
                f"{_prefix(label)}Timed out reading '{safe_url}'",
                cause=e,
                context={"url": safe_url},
            ) from e
        except aiohttp.ClientError as e:
            raise FetchError(
                f"{_prefix(label)}Connection error while reading '{safe_url}': {e}",
                cause=e,
                context={"url": safe_url},
            ) from e
        finally:
            await response_ctx.__aexit__(None, None, None)

    return chunk_iterator()


def _prefix(label: str) -> str:
    return f"[{label}] " if label else ""


__all__ = [
    "CHUNK_SIZE",
    "create_session",
    "is_http_url",
    "open_url",
]
