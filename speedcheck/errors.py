"""Exception hierarchy for the measurement engine."""
from __future__ import annotations


class SpeedtestError(Exception):
    """Base class for every error raised by ``speedcheck``."""


class Aborted(SpeedtestError):
    """The run's cancellation token was signalled.

    Never shown to the user; the engine returns to ``idle`` silently.
    """


class TransientTransferFailure(SpeedtestError):
    """A single probe or transfer failed.  Logged and retried or skipped."""


class InsufficientSamples(SpeedtestError):
    """Too few probes or throughput samples to publish a figure."""

    def __init__(self, what: str, collected: int, required: int) -> None:
        self.what = what
        self.collected = collected
        self.required = required
        super().__init__(
            f"Not enough {what}: collected {collected}, need {required}"
        )


class ConfigError(SpeedtestError, ValueError):
    """A configuration value is out of range."""
