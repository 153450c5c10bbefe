"""Cooperative cancellation controlled by the caller."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from ollama_bridge.errors import Cancelled

__all__ = ["CancellationToken", "guard"]

T = TypeVar("T")


class CancellationToken:
    """
    A signal the caller flips to abandon in-flight work.

    Operations race whatever they are awaiting against the token; when the
    token fires first the pending operation is cancelled and
    :class:`~ollama_bridge.errors.Cancelled` is raised.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()

    async def wait(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token fires first."""
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            await asyncio.wait({task})
            raise Cancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled():
            # the operation finished while being abandoned; its outcome is dropped
            task.exception()
        raise Cancelled()


async def guard(awaitable: Awaitable[T], cancel: Optional[CancellationToken]) -> T:
    """Await *awaitable*, racing it against *cancel* when one is given."""
    if cancel is None:
        return await awaitable
    return await cancel.wait(awaitable)
