"""
Lazy input sources.

An input is one of three shapes, each resolved through the same
``await source.open()`` accessor:

    OpenStream(stream)          an already-open ByteStream
    StreamFactory(fn)           fn() returns a ByteStream
    AsyncStreamFactory(fn)      await fn() returns a ByteStream

Raw values are coerced once at the API edge by ``as_input_source``.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Union

from merge_streams.errors import ValidationError
from merge_streams.types import ByteStream


def _is_byte_stream(value: object) -> bool:
    return hasattr(value, "__aiter__")


class InputSource(ABC):
    """One chunk of the logical dataset, opened at most once."""

    def __init__(self) -> None:
        self._opened = False

    async def open(self) -> ByteStream:
        """Resolve to a ready byte stream. A source can only be opened once."""
        if self._opened:
            raise ValidationError(
                "[merge_streams] Input source already consumed",
                context={"source": repr(self)},
            )
        self._opened = True
        stream = await self._resolve()
        if not _is_byte_stream(stream):
            raise ValidationError(
                f"[merge_streams] Input source produced {type(stream).__name__}, "
                "expected an async iterable of bytes",
            )
        return stream

    @abstractmethod
    async def _resolve(self) -> ByteStream:
        ...


class OpenStream(InputSource):
    """An already-open single-use stream."""

    def __init__(self, stream: ByteStream):
        super().__init__()
        self.stream = stream

    async def _resolve(self) -> ByteStream:
        return self.stream

    def __repr__(self) -> str:
        return f"OpenStream({type(self.stream).__name__})"


class StreamFactory(InputSource):
    """Zero-argument producer returning a stream."""

    def __init__(self, factory: Callable[[], ByteStream]):
        super().__init__()
        self.factory = factory

    async def _resolve(self) -> ByteStream:
        result = self.factory()
        # Plain callables that hand back a coroutine (e.g. a lambda wrapping
        # an async call) are accepted too
        if inspect.isawaitable(result):
            return await result
        return result

    def __repr__(self) -> str:
        return f"StreamFactory({getattr(self.factory, '__name__', self.factory)!r})"


class AsyncStreamFactory(InputSource):
    """Zero-argument coroutine function returning a stream."""

    def __init__(self, factory: Callable[[], Awaitable[ByteStream]]):
        super().__init__()
        self.factory = factory

    async def _resolve(self) -> ByteStream:
        return await self.factory()

    def __repr__(self) -> str:
        return f"AsyncStreamFactory({getattr(self.factory, '__name__', self.factory)!r})"


InputLike = Union[
    InputSource,
    ByteStream,
    Callable[[], ByteStream],
    Callable[[], Awaitable[ByteStream]],
]


def as_input_source(value: InputLike) -> InputSource:
    """
    Wrap a raw input value in the matching InputSource variant.

    Raises:
        ValidationError: The value is none of the supported shapes
    """
    if isinstance(value, InputSource):
        return value
    if _is_byte_stream(value):
        return OpenStream(value)
    if inspect.iscoroutinefunction(value):
        return AsyncStreamFactory(value)
    if callable(value):
        return StreamFactory(value)
    raise ValidationError(
        f"[merge_streams] Invalid input source: {type(value).__name__}",
    )


def as_input_sources(inputs: Iterable[InputLike], label: str) -> list[InputSource]:
    """Validate a non-empty input list and coerce every entry."""
    if isinstance(inputs, (str, bytes)) or not isinstance(inputs, Iterable):
        raise ValidationError(f"[{label}] inputs must be a non-empty list")
    sources = [as_input_source(value) for value in inputs]
    if not sources:
        raise ValidationError(f"[{label}] inputs must be a non-empty list")
    return sources


async def resolve_input(source: InputSource) -> ByteStream:
    """Open one source and return its ready byte stream."""
    return await source.open()


__all__ = [
    "AsyncStreamFactory",
    "InputLike",
    "InputSource",
    "OpenStream",
    "StreamFactory",
    "as_input_source",
    "as_input_sources",
    "resolve_input",
]
