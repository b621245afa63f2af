"""
Convergence detection for throughput phases.

Both classes here are pure and clock-free: callers feed them samples and
elapsed times, which makes convergence reproducible from fixed sequences.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from . import constants as c
from .errors import InsufficientSamples
from .stats import warmup_trimmed_mean

logger = logging.getLogger(__name__)

CONVERGED = "converged"
CEILING = "ceiling"


class StabilityDetector:
    """
    Declares convergence once the spread of the last ``window`` samples has
    stayed within ``tolerance`` for ``required`` consecutive checks.
    """

    def __init__(
        self,
        window: int = c.STABILITY_WINDOW,
        tolerance: float = c.STABILITY_TOLERANCE,
        required: int = c.STABLE_TICKS_REQUIRED,
    ) -> None:
        self.window = window
        self.tolerance = tolerance
        self.required = required
        self.stable_ticks = 0

    def spread(self, history: Sequence[float]) -> Optional[float]:
        """``max - min`` of the last ``window`` samples, or None if too few."""
        if len(history) < self.window:
            return None
        recent = history[-self.window:]
        return max(recent) - min(recent)

    def is_stable(self, history: Sequence[float]) -> bool:
        spread = self.spread(history)
        return spread is not None and spread <= self.tolerance

    def update(self, history: Sequence[float]) -> bool:
        """Record one check against *history*; True once converged."""
        if self.is_stable(history):
            self.stable_ticks += 1
        else:
            self.stable_ticks = 0
        return self.converged

    @property
    def converged(self) -> bool:
        return self.stable_ticks >= self.required

    def reset(self) -> None:
        self.stable_ticks = 0


class ThroughputEstimator:
    """
    Owns the sample history of one transfer phase and decides when it ends.

    A phase stops when the detector converges (only checked once
    ``min_duration`` has elapsed) or unconditionally at ``max_duration``.
    """

    def __init__(
        self,
        detector: Optional[StabilityDetector] = None,
        min_duration: float = c.MIN_PHASE_DURATION,
        max_duration: float = c.MAX_PHASE_DURATION,
        warmup_fraction: float = c.WARMUP_FRACTION,
        min_samples: int = c.MIN_THROUGHPUT_SAMPLES,
        label: str = "throughput",
    ) -> None:
        self.detector = detector or StabilityDetector()
        self.min_duration = min_duration
        self.max_duration = max_duration
        self.warmup_fraction = warmup_fraction
        self.min_samples = min_samples
        self.label = label
        self.history: List[float] = []
        self.stop_reason: Optional[str] = None

    @classmethod
    def from_config(cls, config, label: str = "throughput") -> ThroughputEstimator:  # noqa: ANN001
        detector = StabilityDetector(
            window=config.stability_window,
            tolerance=config.stability_tolerance,
            required=config.stable_ticks_required,
        )
        return cls(
            detector=detector,
            min_duration=config.min_duration,
            max_duration=config.max_duration,
            warmup_fraction=config.warmup_fraction,
            min_samples=config.min_samples,
            label=label,
        )

    @property
    def stopped(self) -> bool:
        return self.stop_reason is not None

    def observe(self, mbps: Optional[float], elapsed: float) -> bool:
        """
        Feed one tick.  *mbps* is None when the tick carried no bytes.

        Returns True when the phase should stop.
        """
        if self.stopped:
            return True

        if mbps is not None:
            self.history.append(mbps)
            if elapsed >= self.min_duration:
                if self.detector.update(self.history):
                    self.stop_reason = CONVERGED
                    logger.info(
                        "%s stabilised after %.1f s (%d samples)",
                        self.label.capitalize(), elapsed, len(self.history),
                    )
                elif self.detector.stable_ticks:
                    logger.debug(
                        "%s stable for %d samples (need %d)",
                        self.label.capitalize(),
                        self.detector.stable_ticks,
                        self.detector.required,
                    )

        if not self.stopped and elapsed >= self.max_duration:
            self.stop_reason = CEILING
            logger.info("%s reached the %.0f s ceiling", self.label.capitalize(), self.max_duration)

        return self.stopped

    def progress(self, elapsed: float) -> float:
        """Share of the time budget consumed, in percent."""
        if self.max_duration <= 0:
            return 100.0
        return min(max(elapsed, 0.0) / self.max_duration, 1.0) * 100

    def finalize(self) -> float:
        """Warm-up-trimmed average, rounded to one decimal."""
        if len(self.history) < self.min_samples:
            raise InsufficientSamples(f"{self.label} samples", len(self.history), self.min_samples)
        return round(warmup_trimmed_mean(self.history, self.warmup_fraction), 1)
