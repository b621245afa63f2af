"""
Throughput measurement for one transfer phase.

``ThroughputMeter.measure`` wires three cooperating tasks together:

    TransferWorkerPool --(ByteCounter)--> ThroughputSampler --(queue)--> meter

The sampler wakes every ``sample_interval`` seconds, drains the counter,
turns the delta into a Mbps sample, lets the ``ThroughputEstimator``
decide whether the phase is done, and posts a ``SampleTick`` to the meter.
The meter forwards each tick to ``on_sample`` and tears the pool down once
a tick says stop.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .cancel import CancellationToken
from .config import EngineConfig
from .errors import InsufficientSamples
from .stability import ThroughputEstimator
from .stats import WorkerStats, to_mbps
from .transfer import ByteCounter, Direction, TransferWorkerPool

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


# ---------------------------------------------------------------------------
# Messages and results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SampleTick:
    """What the sampler reports after each interval."""

    mbps: Optional[float]       # None when no bytes arrived this tick
    elapsed: float              # seconds since the phase started
    progress: float             # 0..100, share of the time budget
    stop: bool = False


@dataclass
class ThroughputResult:
    """Outcome of one download or upload phase."""

    direction: str
    speed_mbps: Optional[float] = None
    bytes_total: int = 0
    duration_ms: float = 0.0
    samples: List[float] = field(default_factory=list)
    workers: List[WorkerStats] = field(default_factory=list)
    stop_reason: Optional[str] = None

    @property
    def available(self) -> bool:
        """False when too few samples were collected to publish a figure."""
        return self.speed_mbps is not None

    def to_dict(self) -> dict:
        return {
            "direction": self.direction,
            "speed_mbps": self.speed_mbps,
            "bytes_total": self.bytes_total,
            "duration_ms": round(self.duration_ms, 2),
            "samples": [round(s, 2) for s in self.samples],
            "workers": [w.to_dict() for w in self.workers],
            "stop_reason": self.stop_reason,
        }


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

class ThroughputSampler:
    """Periodic task converting byte-counter deltas into Mbps samples."""

    def __init__(
        self,
        counter: ByteCounter,
        estimator: ThroughputEstimator,
        interval: float,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.counter = counter
        self.estimator = estimator
        self.interval = interval
        self.clock = clock

    async def run(self, token: CancellationToken, outbox: asyncio.Queue) -> None:
        start = last = self.clock()

        while True:
            await token.sleep(self.interval)

            now = self.clock()
            nbytes = self.counter.take()
            mbps: Optional[float] = None
            # An empty tick keeps ``last`` so the next sample spans both intervals.
            if nbytes > 0:
                mbps = to_mbps(nbytes, now - last)
                last = now

            elapsed = now - start
            stop = self.estimator.observe(mbps, elapsed)
            outbox.put_nowait(
                SampleTick(
                    mbps=mbps,
                    elapsed=elapsed,
                    progress=self.estimator.progress(elapsed),
                    stop=stop,
                )
            )
            if stop:
                return


def _forward_failure(queue: asyncio.Queue) -> Callable[[asyncio.Task], None]:
    def _done(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            queue.put_nowait(task.exception())
    return _done


# ---------------------------------------------------------------------------
# Meter
# ---------------------------------------------------------------------------

class ThroughputMeter:
    """Runs one adaptive-duration transfer phase."""

    def __init__(
        self,
        transport,  # noqa: ANN001
        config: EngineConfig,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.transport = transport
        self.config = config
        self.clock = clock
        self.on_sample: Optional[Callable[[SampleTick], None]] = None

    async def measure(self, direction: Direction, token: CancellationToken) -> ThroughputResult:
        direction = Direction(direction)
        counter = ByteCounter()
        stop = asyncio.Event()
        estimator = ThroughputEstimator.from_config(self.config, label=direction.value)
        pool = TransferWorkerPool(self.transport, direction, self.config)
        sampler = ThroughputSampler(counter, estimator, self.config.sample_interval, self.clock)
        inbox: asyncio.Queue = asyncio.Queue()

        logger.info("Testing %s speed with %d workers", direction.value, pool.workers)
        start = self.clock()

        tasks = [
            asyncio.create_task(pool.run(counter, token, stop)),
            asyncio.create_task(sampler.run(token, inbox)),
        ]
        for task in tasks:
            task.add_done_callback(_forward_failure(inbox))

        try:
            while True:
                message = await inbox.get()
                if isinstance(message, BaseException):
                    raise message
                if self.on_sample:
                    self.on_sample(message)
                if message.stop:
                    break
        finally:
            stop.set()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        result = ThroughputResult(
            direction=direction.value,
            bytes_total=counter.total,
            duration_ms=(self.clock() - start) * 1000,
            samples=list(estimator.history),
            workers=pool.stats,
            stop_reason=estimator.stop_reason,
        )
        try:
            result.speed_mbps = estimator.finalize()
        except InsufficientSamples as exc:
            logger.warning("%s result unavailable: %s", direction.value.capitalize(), exc)
        else:
            logger.info(
                "%s: %.1f Mbps (%d samples, %s)",
                direction.value.capitalize(), result.speed_mbps,
                len(result.samples), result.stop_reason,
            )
        return result
