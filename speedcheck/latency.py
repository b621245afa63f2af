"""
Latency and jitter measurement.

Probes are strictly sequential, never pooled: a latency sample taken
while other requests are in flight measures queueing, not the path.

For ``count`` probes the prober records every successful round trip,
sorts them, discards the single fastest and slowest, and reports::

    ping   = mean(interior)
    jitter = mean(|x - ping| for x in interior)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .cancel import CancellationToken
from .constants import MIN_SUCCESSFUL_PROBES
from .errors import InsufficientSamples, TransientTransferFailure
from .stats import mean_absolute_deviation, trimmed_interior

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class LatencyResult:
    """Aggregated latency data for one probe run."""

    pings: List[float] = field(default_factory=list)
    attempts: int = 0
    ping_ms: float = 0.0
    jitter_ms: float = 0.0

    @property
    def failures(self) -> int:
        return self.attempts - len(self.pings)

    def calculate(self) -> None:
        """Derive trimmed-mean latency and mean-absolute-deviation jitter."""
        interior = trimmed_interior(self.pings)
        if not interior:
            return
        self.ping_ms = sum(interior) / len(interior)
        self.jitter_ms = mean_absolute_deviation(interior, self.ping_ms)

    def to_dict(self) -> dict:
        return {
            "pings": [round(p, 1) for p in self.pings],
            "attempts": self.attempts,
            "failures": self.failures,
            "ping_ms": round(self.ping_ms, 1),
            "jitter_ms": round(self.jitter_ms, 1),
        }


# ---------------------------------------------------------------------------
# Prober
# ---------------------------------------------------------------------------

class LatencyProber:
    """Sequential round-trip prober against a single endpoint."""

    def __init__(
        self,
        transport,  # noqa: ANN001 (anything with ``async probe(url) -> ms``)
        min_successful: int = MIN_SUCCESSFUL_PROBES,
    ) -> None:
        self.transport = transport
        self.min_successful = max(3, min_successful)
        self.on_progress: Optional[Callable[[float], None]] = None

    async def probe(
        self,
        count: int,
        endpoint: str,
        token: CancellationToken,
    ) -> LatencyResult:
        """
        Issue *count* probes to *endpoint*.

        Raises ``Aborted`` if *token* fires and ``InsufficientSamples`` when
        fewer than ``min_successful`` probes succeeded.
        """
        result = LatencyResult()

        for i in range(count):
            token.raise_if_cancelled()
            result.attempts += 1
            try:
                rtt = await token.run(self.transport.probe(endpoint))
            except TransientTransferFailure as exc:
                logger.warning("Probe %d/%d failed: %s", i + 1, count, exc)
            else:
                result.pings.append(rtt)

            if self.on_progress:
                self.on_progress((i + 1) / count * 100)

        token.raise_if_cancelled()

        if len(result.pings) < self.min_successful:
            raise InsufficientSamples("probes", len(result.pings), self.min_successful)

        result.calculate()
        logger.info(
            "Ping: %.1f ms | Jitter: %.1f ms (%d/%d probes)",
            result.ping_ms, result.jitter_ms, len(result.pings), result.attempts,
        )
        return result
