"""
Engine configuration.

Defaults come from ``speedcheck.constants``.  An optional JSON file at
``~/.speedcheck/config.json`` may override them at startup::

    {
        "ping_count": 10,
        "download_workers": 6,
        "upload_workers": 4,
        "min_duration": 10.0,
        "max_duration": 20.0,
        "endpoints": {"ping": "https://...", "download": "...", "upload": "..."}
    }

The resulting ``EngineConfig`` is frozen; nothing changes it once the
engine has been built.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from . import constants as c
from .errors import ConfigError

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".speedcheck")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Endpoints:
    """The three logical HTTP endpoints of one session."""

    ping: str = c.PING_URL
    download: str = c.DOWNLOAD_URL
    upload: str = c.UPLOAD_URL


@dataclass(frozen=True)
class EngineConfig:
    """All tunables of a measurement run."""

    endpoints: Endpoints = field(default_factory=Endpoints)

    ping_count: int = c.DEFAULT_PING_COUNT
    min_successful_probes: int = c.MIN_SUCCESSFUL_PROBES

    download_workers: int = c.DOWNLOAD_WORKERS
    upload_workers: int = c.UPLOAD_WORKERS
    download_sizes: Tuple[int, ...] = c.DOWNLOAD_SIZES
    upload_chunk_size: int = c.UPLOAD_CHUNK_SIZE
    download_retry_delay: float = c.DOWNLOAD_RETRY_DELAY
    upload_retry_delay: float = c.UPLOAD_RETRY_DELAY
    upload_sanity_timeout: float = c.UPLOAD_SANITY_TIMEOUT

    sample_interval: float = c.SAMPLE_INTERVAL
    stability_window: int = c.STABILITY_WINDOW
    stability_tolerance: float = c.STABILITY_TOLERANCE
    stable_ticks_required: int = c.STABLE_TICKS_REQUIRED
    min_duration: float = c.MIN_PHASE_DURATION
    max_duration: float = c.MAX_PHASE_DURATION
    warmup_fraction: float = c.WARMUP_FRACTION
    min_samples: int = c.MIN_THROUGHPUT_SAMPLES

    settle_delay: float = c.PHASE_SETTLE_DELAY

    def with_overrides(self, **overrides: Any) -> EngineConfig:
        """Return a validated copy with *overrides* applied (``None`` values skipped)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        config = replace(self, **changes)
        validate_config(config)
        return config

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["download_sizes"] = list(self.download_sizes)
        return data


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_config(config: EngineConfig) -> None:
    """Raise ``ConfigError`` if any value is out of range or of the wrong type."""
    try:
        _check_ranges(config)
    except TypeError as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc


def _check_ranges(config: EngineConfig) -> None:
    if not c.MIN_PING_COUNT <= config.ping_count <= c.MAX_PING_COUNT:
        raise ConfigError(
            f"Ping count must be between {c.MIN_PING_COUNT} and {c.MAX_PING_COUNT}"
        )
    if not 3 <= config.min_successful_probes <= config.ping_count:
        raise ConfigError("Minimum successful probes must be between 3 and the ping count")
    for name in ("download_workers", "upload_workers"):
        value = getattr(config, name)
        if not 1 <= value <= c.MAX_WORKERS:
            raise ConfigError(f"{name} must be between 1 and {c.MAX_WORKERS}")
    if not config.download_sizes or any(s <= 0 for s in config.download_sizes):
        raise ConfigError("Download size tiers must be a non-empty list of positive sizes")
    if config.upload_chunk_size <= 0:
        raise ConfigError("Upload chunk size must be positive")
    if config.sample_interval <= 0:
        raise ConfigError("Sample interval must be positive")
    if config.stability_window < 1 or config.stable_ticks_required < 1:
        raise ConfigError("Stability window and required stable ticks must be >= 1")
    if config.stability_tolerance < 0:
        raise ConfigError("Stability tolerance must not be negative")
    if not 0 <= config.min_duration <= config.max_duration <= c.MAX_ALLOWED_DURATION:
        raise ConfigError(
            f"Durations must satisfy 0 <= min <= max <= {c.MAX_ALLOWED_DURATION:.0f} s"
        )
    if config.max_duration <= 0:
        raise ConfigError("Maximum phase duration must be positive")
    if not 0 <= config.warmup_fraction < 1:
        raise ConfigError("Warm-up fraction must be in [0, 1)")
    if config.min_samples < 1:
        raise ConfigError("Minimum sample count must be >= 1")
    for name in ("download_retry_delay", "upload_retry_delay",
                 "upload_sanity_timeout", "settle_delay"):
        if getattr(config, name) < 0:
            raise ConfigError(f"{name} must not be negative")


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

_SCALAR_KEYS = {f.name for f in fields(EngineConfig)} - {"endpoints", "download_sizes"}


def _from_dict(data: Dict[str, Any]) -> EngineConfig:
    kwargs: Dict[str, Any] = {k: v for k, v in data.items() if k in _SCALAR_KEYS}

    if "download_sizes" in data:
        kwargs["download_sizes"] = tuple(int(s) for s in data["download_sizes"])

    endpoints = data.get("endpoints")
    if isinstance(endpoints, dict):
        known = {k: v for k, v in endpoints.items() if k in ("ping", "download", "upload")}
        kwargs["endpoints"] = Endpoints(**known)

    return EngineConfig(**kwargs)


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Load config from *path* (or the default location) over the defaults.

    A missing default file yields the defaults; a missing *path* given
    explicitly raises ``ConfigError``.  A corrupt file is logged and
    ignored.  Out-of-range or mistyped values raise ``ConfigError``.
    """
    if path and not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")

    path = path or _config_path()
    config = EngineConfig()

    if os.path.isfile(path):
        try:
            with open(path, encoding="utf-8") as fh:
                user = json.load(fh)
        except (json.JSONDecodeError, IOError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        else:
            if isinstance(user, dict):
                try:
                    config = _from_dict(user)
                except (TypeError, ValueError) as exc:
                    raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    validate_config(config)
    return config


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
