"""
Published run state.

``RunState`` is the only writer of phase, progress, instantaneous speed
and results.  The engine mutates it through transition methods; observers
read immutable ``Snapshot`` objects, either on demand (``snapshot``) or by
subscribing to every change.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass, field, replace
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class Phase(str, enum.Enum):
    IDLE = "idle"
    PING = "ping"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    COMPLETE = "complete"


_ORDER = {
    Phase.IDLE: 0,
    Phase.PING: 1,
    Phase.DOWNLOAD: 2,
    Phase.UPLOAD: 3,
    Phase.COMPLETE: 4,
}


@dataclass(frozen=True)
class Results:
    """Final figures.  ``None`` means not measured (or unavailable)."""

    ping: Optional[float] = None       # ms
    jitter: Optional[float] = None     # ms
    download: Optional[float] = None   # Mbps
    upload: Optional[float] = None     # Mbps

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Snapshot:
    phase: Phase = Phase.IDLE
    progress: float = 0.0
    instantaneous_speed: float = 0.0
    results: Results = field(default_factory=Results)

    @property
    def running(self) -> bool:
        return self.phase not in (Phase.IDLE, Phase.COMPLETE)

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "progress": round(self.progress, 1),
            "instantaneous_speed": self.instantaneous_speed,
            "results": self.results.to_dict(),
        }


Observer = Callable[[Snapshot], None]


class RunState:
    """Holds the current ``Snapshot`` and notifies observers on every change."""

    def __init__(self) -> None:
        self._snapshot = Snapshot()
        self._observers: List[Observer] = []

    # -- Observation --------------------------------------------------------

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; returns a callable that unregisters it."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _publish(self, snapshot: Snapshot) -> None:
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("State observer %r failed", observer)

    # -- Transitions --------------------------------------------------------

    def enter_phase(self, phase: Phase) -> None:
        """Move forward to *phase*, zeroing progress and instantaneous speed."""
        current = self._snapshot.phase
        if phase is Phase.IDLE or _ORDER[phase] <= _ORDER[current]:
            raise ValueError(f"Illegal phase transition {current.value} -> {phase.value}")
        self._publish(
            replace(self._snapshot, phase=phase, progress=0.0, instantaneous_speed=0.0)
        )

    def set_progress(self, percent: float) -> None:
        """Clamp into [0, 100]; progress never moves backwards within a phase."""
        percent = min(max(percent, 0.0), 100.0)
        if percent < self._snapshot.progress:
            return
        self._publish(replace(self._snapshot, progress=percent))

    def set_instantaneous_speed(self, mbps: float) -> None:
        self._publish(replace(self._snapshot, instantaneous_speed=round(max(mbps, 0.0), 1)))

    def record_latency(self, ping: float, jitter: float) -> None:
        results = replace(self._snapshot.results, ping=ping, jitter=jitter)
        self._publish(replace(self._snapshot, results=results))

    def record_throughput(self, direction: str, mbps: float) -> None:
        if direction not in ("download", "upload"):
            raise ValueError(f"Unknown direction {direction!r}")
        results = replace(self._snapshot.results, **{direction: mbps})
        self._publish(replace(self._snapshot, results=results))

    def complete(self) -> None:
        self._publish(
            replace(self._snapshot, phase=Phase.COMPLETE, progress=100.0, instantaneous_speed=0.0)
        )

    def clear(self) -> None:
        """Back to a fresh ``idle`` snapshot."""
        self._publish(Snapshot())
