"""
Measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import List, Sequence


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class WorkerStats:
    """Per-worker counters collected by a transfer pool."""

    id: int = 0
    direction: str = ""
    transfers: int = 0
    failures: int = 0
    excluded: int = 0
    bytes_transferred: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.direction,
            "transfers": self.transfers,
            "failures": self.failures,
            "excluded": self.excluded,
            "bytes": self.bytes_transferred,
        }


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def trimmed_interior(samples: Sequence[float]) -> List[float]:
    """Sort *samples* and drop the single minimum and maximum."""
    ordered = sorted(samples)
    return ordered[1:-1]


def trimmed_mean(samples: Sequence[float]) -> float:
    """Mean of the interior values once the extremes are discarded."""
    interior = trimmed_interior(samples)
    if not interior:
        raise ValueError("trimmed mean needs at least 3 samples")
    return statistics.mean(interior)


def mean_absolute_deviation(samples: Sequence[float], centre: float) -> float:
    """Mean of ``|x - centre|`` over *samples*."""
    if not samples:
        return 0.0
    return statistics.mean(abs(s - centre) for s in samples)


def to_mbps(nbytes: int, elapsed_seconds: float) -> float:
    """Convert a byte count over an interval to megabits per second."""
    if elapsed_seconds <= 0:
        return 0.0
    return (nbytes * 8) / (elapsed_seconds * 1_000_000)


def warmup_trimmed_mean(samples: Sequence[float], warmup_fraction: float) -> float:
    """Average of *samples* after discarding the leading warm-up share."""
    if not samples:
        return 0.0
    skip = math.floor(len(samples) * warmup_fraction)
    return statistics.mean(samples[skip:])


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.1f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
