"""Cooperative cancellation shared by every stage of one merge call."""

import asyncio
from collections.abc import Awaitable
from typing import Optional, TypeVar

from merge_streams.errors import MergeCancelledError

T = TypeVar("T")


class CancelToken:
    """
    One-shot cancellation flag.

    Engines poll it at fixed checkpoints (before each input, per CSV line,
    per JSON text chunk, per Arrow batch) and race it against the HTTP GET.
    Firing it is idempotent; the first reason wins.

    Usage:
        token = CancelToken()
        task = asyncio.create_task(merge_streams(..., cancel_token=token))
        token.cancel("user closed the download")
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None) -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, label: str) -> None:
        if self._event.is_set():
            raise MergeCancelledError(
                f"[{label}] Aborted",
                context={"reason": self.reason} if self.reason else None,
            )

    async def guard(self, awaitable: Awaitable[T], label: str) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        The losing side is cancelled. Raises MergeCancelledError when the
        token wins.
        """
        if self.is_cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled(label)
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()
                # Let the cancelled work unwind before returning or re-raising
                await asyncio.wait({work})

        if work.cancelled():
            self.raise_if_cancelled(label)
        return work.result()


def raise_if_cancelled(token: Optional[CancelToken], label: str) -> None:
    """Poll an optional token."""
    if token is not None:
        token.raise_if_cancelled(label)


__all__ = ["CancelToken", "raise_if_cancelled"]
