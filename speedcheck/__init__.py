"""Adaptive speed test engine -- latency, download and upload measurement."""

import logging

from .cancel import CancellationToken
from .config import EngineConfig, Endpoints, load_config, validate_config
from .engine import RunReport, SpeedTestEngine
from .errors import (
    Aborted,
    ConfigError,
    InsufficientSamples,
    SpeedtestError,
    TransientTransferFailure,
)
from .latency import LatencyProber, LatencyResult
from .stability import StabilityDetector, ThroughputEstimator
from .state import Phase, Results, RunState, Snapshot
from .stats import (
    WorkerStats,
    format_latency,
    format_speed,
    mean_absolute_deviation,
    to_mbps,
    trimmed_mean,
    warmup_trimmed_mean,
)
from .throughput import SampleTick, ThroughputMeter, ThroughputResult, ThroughputSampler
from .transfer import ByteCounter, Direction, TransferWorkerPool
from .transport import HttpTransport, open_transport

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Aborted",
    "ByteCounter",
    "CancellationToken",
    "ConfigError",
    "Direction",
    "Endpoints",
    "EngineConfig",
    "HttpTransport",
    "InsufficientSamples",
    "LatencyProber",
    "LatencyResult",
    "Phase",
    "Results",
    "RunReport",
    "RunState",
    "SampleTick",
    "Snapshot",
    "SpeedTestEngine",
    "SpeedtestError",
    "StabilityDetector",
    "ThroughputEstimator",
    "ThroughputMeter",
    "ThroughputResult",
    "ThroughputSampler",
    "TransferWorkerPool",
    "TransientTransferFailure",
    "WorkerStats",
    "format_latency",
    "format_speed",
    "load_config",
    "mean_absolute_deviation",
    "open_transport",
    "to_mbps",
    "trimmed_mean",
    "validate_config",
    "warmup_trimmed_mean",
]
