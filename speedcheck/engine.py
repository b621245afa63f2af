"""
Phase orchestrator.

``SpeedTestEngine`` sequences one measurement session::

    idle -> ping -> download -> upload -> complete

and publishes phase, progress, instantaneous speed and results through
``RunState``.  The presentation layer only calls ``start()`` / ``reset()``
and reads ``state`` (or subscribes to it).

Failure policy: cancellation is silent and ends in ``idle``; any other
unexpected error abandons the run and also ends in ``idle``.  A run that
did not finish is never reported as ``complete``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncContextManager, Callable, Optional

from .cancel import CancellationToken
from .config import EngineConfig, validate_config
from .errors import Aborted, InsufficientSamples
from .latency import LatencyProber, LatencyResult
from .state import Observer, Phase, Results, RunState, Snapshot
from .throughput import SampleTick, ThroughputMeter, ThroughputResult
from .transfer import Direction
from .transport import open_transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[EngineConfig], AsyncContextManager]


@dataclass
class RunReport:
    """Detailed measurements of a completed run."""

    results: Results = field(default_factory=Results)
    latency: Optional[LatencyResult] = None
    download: Optional[ThroughputResult] = None
    upload: Optional[ThroughputResult] = None

    def to_dict(self) -> dict:
        return {
            "results": self.results.to_dict(),
            "latency": self.latency.to_dict() if self.latency else None,
            "download": self.download.to_dict() if self.download else None,
            "upload": self.upload.to_dict() if self.upload else None,
        }


class SpeedTestEngine:
    """Runs ping, download and upload phases in order against one endpoint set."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        transport_factory: TransportFactory = open_transport,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.config = config or EngineConfig()
        validate_config(self.config)
        self._transport_factory = transport_factory
        self._clock = clock
        self._state = RunState()
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None
        self.report: Optional[RunReport] = None

    # -- Observation --------------------------------------------------------

    @property
    def state(self) -> Snapshot:
        return self._state.snapshot

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        return self._state.subscribe(observer)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -- Entry points -------------------------------------------------------

    def start(self) -> bool:
        """Begin a run.  Returns False (and does nothing) if one is in progress.

        Must be called from within a running event loop.
        """
        if self.running or self.state.running:
            return False

        self._state.clear()
        self.report = None
        self._token = CancellationToken()
        self._task = asyncio.get_running_loop().create_task(self._run(self._token))
        return True

    async def reset(self) -> None:
        """Cancel any in-flight work and return to ``idle``.

        When this returns, every worker and the sampler have stopped and no
        further state is published for the cancelled run.
        """
        task, token = self._task, self._token
        if token is not None:
            token.cancel()
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        self._task = None
        self._token = None
        self.report = None
        self._state.clear()

    def abort(self) -> None:
        """Signal cancellation without waiting; the run ends in ``idle``."""
        if self._token is not None:
            self._token.cancel()

    async def wait(self) -> Snapshot:
        """Wait for the current run (if any) to finish; returns the final state."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})
        return self.state

    async def run(self) -> Snapshot:
        """Convenience: ``start()`` then ``wait()``."""
        self.start()
        return await self.wait()

    # -- Phases -------------------------------------------------------------

    async def _run(self, token: CancellationToken) -> None:
        report = RunReport()
        logger.info("Speed test started")

        try:
            async with self._transport_factory(self.config) as transport:
                report.latency = await self._measure_latency(transport, token)
                await token.sleep(self.config.settle_delay)

                report.download = await self._measure_throughput(
                    transport, Direction.DOWNLOAD, token
                )
                await token.sleep(self.config.settle_delay)

                report.upload = await self._measure_throughput(
                    transport, Direction.UPLOAD, token
                )
        except Aborted:
            logger.info("Speed test aborted")
            self._state.clear()
            return
        except Exception:
            logger.exception("Speed test failed")
            self._state.clear()
            return

        self._state.complete()
        report.results = self.state.results
        self.report = report

        r = report.results
        logger.info(
            "Speed test complete: ping=%s ms jitter=%s ms download=%s Mbps upload=%s Mbps",
            r.ping, r.jitter, r.download, r.upload,
        )

    async def _measure_latency(
        self,
        transport,  # noqa: ANN001
        token: CancellationToken,
    ) -> Optional[LatencyResult]:
        self._state.enter_phase(Phase.PING)
        logger.info("Testing latency...")

        prober = LatencyProber(transport, self.config.min_successful_probes)
        prober.on_progress = self._state.set_progress

        result: Optional[LatencyResult] = None
        try:
            result = await prober.probe(self.config.ping_count, self.config.endpoints.ping, token)
        except InsufficientSamples as exc:
            logger.warning("Ping result unavailable: %s", exc)
        else:
            self._state.record_latency(result.ping_ms, result.jitter_ms)

        self._state.set_progress(100.0)
        return result

    async def _measure_throughput(
        self,
        transport,  # noqa: ANN001
        direction: Direction,
        token: CancellationToken,
    ) -> ThroughputResult:
        self._state.enter_phase(Phase(direction.value))

        meter = ThroughputMeter(transport, self.config, self._clock)
        meter.on_sample = self._on_sample
        result = await meter.measure(direction, token)

        if result.available:
            self._state.record_throughput(direction.value, result.speed_mbps)
        self._state.set_progress(100.0)
        return result

    def _on_sample(self, tick: SampleTick) -> None:
        if tick.mbps is not None:
            self._state.set_instantaneous_speed(tick.mbps)
        self._state.set_progress(tick.progress)
