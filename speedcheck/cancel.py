"""Cooperative cancellation shared by every task of one run."""
from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .errors import Aborted

T = TypeVar("T")


class CancellationToken:
    """
    One-shot cancellation signal.

    Created when a run starts and signalled by ``reset()`` or an external
    abort.  The probe loop, each transfer worker, the sampler and the
    settling delays all check it; ``sleep`` wakes up early when it fires
    and ``run`` abandons an in-flight request.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Aborted("run cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for *delay* seconds, raising ``Aborted`` if cancelled meanwhile."""
        self.raise_if_cancelled()
        if delay <= 0:
            await asyncio.sleep(0)
        else:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                return
        self.raise_if_cancelled()

    async def run(self, aw: Awaitable[T]) -> T:
        """Await *aw*, abandoning it and raising ``Aborted`` if the token fires first."""
        if self.cancelled:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise Aborted("run cancelled")
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            task.cancel()
            waiter.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)
            raise

        waiter.cancel()
        if task.done():
            return task.result()

        task.cancel()
        await asyncio.gather(task, waiter, return_exceptions=True)
        raise Aborted("run cancelled")
