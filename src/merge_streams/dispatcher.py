"""
Top-level merge entry points.

``merge_streams`` routes a format tag to its engine. ``merge_streams_from_urls``
is the URL-mode front end: it validates every URL, then turns each one into a
lazily-fetched input before handing off to ``merge_streams``.

Example:
    async with FileSink(Path("result.arrow")) as sink:
        await merge_streams_from_urls(MergeFormat.ARROW_STREAM, chunk_urls, sink)
"""

import functools
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Optional, assert_never

import aiohttp

from merge_streams.cancel import CancelToken
from merge_streams.config import MergeSettings, get_settings
from merge_streams.download.http_client import create_session, is_http_url, open_url
from merge_streams.engines import merge_arrow, merge_csv, merge_json
from merge_streams.errors import ValidationError
from merge_streams.logging.context_managers import MergeLogContext
from merge_streams.progress import ProgressCallback
from merge_streams.streams.inputs import AsyncStreamFactory, InputLike
from merge_streams.types import FormatLike, MergeFormat, OutputSink

logger = logging.getLogger(__name__)

URLS_LABEL = "merge_streams_from_urls"

Engine = Callable[..., Awaitable[None]]


def as_merge_format(value: FormatLike) -> MergeFormat:
    """
    Coerce a format tag to MergeFormat.

    Raises:
        ValidationError: Unknown format tag
    """
    if isinstance(value, MergeFormat):
        return value
    try:
        return MergeFormat(value)
    except ValueError as e:
        raise ValidationError(
            f"[merge_streams] Unsupported format: {value!r}",
            cause=e,
        ) from e


def engine_for(merge_format: MergeFormat) -> Engine:
    if merge_format is MergeFormat.CSV:
        return merge_csv
    elif merge_format is MergeFormat.JSON_ARRAY:
        return merge_json
    elif merge_format is MergeFormat.ARROW_STREAM:
        return merge_arrow
    else:
        assert_never(merge_format)


async def merge_streams(
    format: FormatLike,
    inputs: Iterable[InputLike],
    output: OutputSink,
    *,
    cancel_token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    throttle_ms: Optional[int] = None,
    settings: Optional[MergeSettings] = None,
) -> None:
    """
    Merge ordered chunks of one logical dataset into a single stream.

    Completes once the output sink is finalized. On failure the sink is left
    as-is: bytes already written stay written.

    Args:
        format: MergeFormat or its string value ("CSV", "JSON_ARRAY", "ARROW_STREAM")
        inputs: Non-empty list of ByteStreams, stream factories or InputSources
        output: Output sink (asyncio.StreamWriter, BufferSink, FileSink, ...)
        cancel_token: Optional cooperative cancellation token
        on_progress: Called with a ProgressSnapshot as bytes flow
        throttle_ms: Minimum spacing between progress callbacks
        settings: Merge settings (default: process-wide settings)

    Raises:
        ValidationError: Unknown format, empty or malformed inputs
        FetchError: A URL-backed input failed to fetch
        FormatError: An input is not well-formed for the format
        CodecError: Arrow decode/encode failure
        MergeCancelledError: cancel_token fired
        SinkClosedError: The output was closed or errored mid-merge
    """
    merge_format = as_merge_format(format)
    engine = engine_for(merge_format)
    with MergeLogContext(merge_format.value) as log_ctx:
        await engine(
            inputs,
            output,
            cancel_token=cancel_token,
            on_progress=on_progress,
            throttle_ms=throttle_ms,
            settings=settings,
        )
        logger.debug(
            "Merge finished",
            extra={"duration_ms": log_ctx.duration_ms},
        )


def _validate_urls(urls: Iterable[str]) -> list[str]:
    if isinstance(urls, str) or not isinstance(urls, Iterable):
        raise ValidationError(f"[{URLS_LABEL}] urls must be a non-empty list")
    url_list = list(urls)
    if not url_list:
        raise ValidationError(f"[{URLS_LABEL}] urls must be a non-empty list")
    for url in url_list:
        if not is_http_url(url):
            raise ValidationError(f"[{URLS_LABEL}] Expected http(s) URL but got: {url}")
    return url_list


async def merge_streams_from_urls(
    format: FormatLike,
    urls: Iterable[str],
    output: OutputSink,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    cancel_token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    throttle_ms: Optional[int] = None,
    settings: Optional[MergeSettings] = None,
) -> None:
    """
    Fetch chunk URLs in order and merge their bodies.

    Every URL is checked before any request is made. Each URL is fetched
    only when the engine reaches it, and its response is released once
    consumed.

    Args:
        format: MergeFormat or its string value
        urls: Non-empty list of http(s) URLs, in chunk order
        output: Output sink
        session: aiohttp session to use; when omitted one is created from
            ``settings`` and closed afterwards
        cancel_token: Optional token, also raced against each HTTP GET
        on_progress: Progress callback
        throttle_ms: Minimum spacing between progress callbacks
        settings: Merge settings (default: process-wide settings)

    Raises:
        ValidationError: Unknown format, empty list or non-http(s) URL
        FetchError: Non-2xx response or transport failure
        (plus everything merge_streams raises)
    """
    merge_format = as_merge_format(format)
    url_list = _validate_urls(urls)
    settings = settings or get_settings()

    owns_session = session is None
    if owns_session:
        session = create_session(settings)
    try:
        inputs = [
            AsyncStreamFactory(
                functools.partial(
                    open_url,
                    url,
                    session,
                    cancel_token=cancel_token,
                    chunk_size=settings.read_chunk_size,
                    label=URLS_LABEL,
                )
            )
            for url in url_list
        ]
        await merge_streams(
            merge_format,
            inputs,
            output,
            cancel_token=cancel_token,
            on_progress=on_progress,
            throttle_ms=throttle_ms,
            settings=settings,
        )
    finally:
        if owns_session:
            await session.close()


__all__ = [
    "as_merge_format",
    "engine_for",
    "merge_streams",
    "merge_streams_from_urls",
]
