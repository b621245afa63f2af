"""
Concurrent transfer worker pools.

Each worker loops over one-shot transfers until the phase's stop event or
the run's cancellation token fires:

* download -- GET a payload from a rotating set of size tiers and drain
  it, adding each chunk to the shared ``ByteCounter``;
* upload -- POST a shared pseudorandom payload and add its full size once
  the request completes, unless it took longer than the sanity timeout.

Workers share nothing but the counter.  A failed transfer is logged and
retried after a short backoff; it never stops sibling workers.
"""
from __future__ import annotations

import asyncio
import enum
import itertools
import logging
import os
import threading
import time
from typing import List, Optional

from .cancel import CancellationToken
from .config import EngineConfig
from .errors import Aborted, TransientTransferFailure
from .stats import WorkerStats

logger = logging.getLogger(__name__)


class Direction(str, enum.Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"


# ---------------------------------------------------------------------------
# Byte counter
# ---------------------------------------------------------------------------

class ByteCounter:
    """Byte accumulator shared by a pool; only the sampler drains it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0
        self._total = 0

    def add(self, n: int) -> None:
        with self._lock:
            self._value += n
            self._total += n

    def take(self) -> int:
        """Return the bytes accumulated since the last call and reset to zero."""
        with self._lock:
            value, self._value = self._value, 0
        return value

    @property
    def value(self) -> int:
        return self._value

    @property
    def total(self) -> int:
        """Every byte ever added, unaffected by ``take``."""
        return self._total


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------

class TransferWorkerPool:
    """A fixed number of workers moving data in one direction."""

    def __init__(
        self,
        transport,  # noqa: ANN001 (HttpTransport or a compatible fake)
        direction: Direction,
        config: EngineConfig,
        workers: Optional[int] = None,
    ) -> None:
        self.transport = transport
        self.direction = Direction(direction)
        self.config = config
        if workers is None:
            workers = (
                config.download_workers
                if self.direction is Direction.DOWNLOAD
                else config.upload_workers
            )
        self.workers = workers
        self.stats: List[WorkerStats] = []

    async def run(
        self,
        counter: ByteCounter,
        token: CancellationToken,
        stop: asyncio.Event,
    ) -> None:
        """Run every worker until *stop* or *token* fires."""
        payload = b""
        if self.direction is Direction.UPLOAD:
            payload = os.urandom(self.config.upload_chunk_size)

        self.stats = [
            WorkerStats(id=i, direction=self.direction.value) for i in range(self.workers)
        ]
        tasks = [
            asyncio.create_task(self._worker(stats, counter, token, stop, payload))
            for stats in self.stats
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    # -- Worker -------------------------------------------------------------

    async def _worker(
        self,
        stats: WorkerStats,
        counter: ByteCounter,
        token: CancellationToken,
        stop: asyncio.Event,
        payload: bytes,
    ) -> None:
        sizes = itertools.cycle(self.config.download_sizes)
        if self.direction is Direction.DOWNLOAD:
            retry_delay = self.config.download_retry_delay
        else:
            retry_delay = self.config.upload_retry_delay

        def _on_bytes(n: int) -> None:
            stats.bytes_transferred += n
            counter.add(n)

        while not stop.is_set() and not token.cancelled:
            try:
                if self.direction is Direction.DOWNLOAD:
                    await self.transport.download(
                        self.config.endpoints.download, next(sizes), _on_bytes
                    )
                else:
                    await self._upload_once(stats, payload, _on_bytes)
                stats.transfers += 1
            except TransientTransferFailure as exc:
                stats.failures += 1
                logger.warning(
                    "%s worker %d error: %s", self.direction.value.capitalize(), stats.id, exc
                )
                try:
                    await token.sleep(retry_delay)
                except Aborted:
                    return

    async def _upload_once(self, stats: WorkerStats, payload: bytes, on_bytes) -> None:  # noqa: ANN001
        t0 = time.perf_counter()
        await self.transport.upload(self.config.endpoints.upload, payload)
        duration = time.perf_counter() - t0

        if duration < self.config.upload_sanity_timeout:
            on_bytes(len(payload))
        else:
            stats.excluded += 1
            logger.debug(
                "Upload worker %d: %.1f s transfer excluded from the byte count",
                stats.id, duration,
            )
