"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from speedcheck.config import EngineConfig
from speedcheck.engine import RunReport
from speedcheck.state import Results, Snapshot


def _round(value: Optional[float], digits: int = 1) -> Optional[float]:
    return round(value, digits) if value is not None else None


def create_result_json(
    snapshot: Snapshot,
    report: Optional[RunReport] = None,
    config: Optional[EngineConfig] = None,
) -> Dict[str, Any]:
    """Build a JSON-serialisable dict describing one run."""
    results = snapshot.results
    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "phase": snapshot.phase.value,
        "ping": _round(results.ping),
        "jitter": _round(results.jitter),
        "download": results.download,
        "upload": results.upload,
    }

    if report is not None:
        details = report.to_dict()
        result["latency"] = details["latency"]
        result["transfers"] = {
            "download": details["download"],
            "upload": details["upload"],
        }

    if config is not None:
        result["endpoints"] = {
            "ping": config.endpoints.ping,
            "download": config.endpoints.download,
            "upload": config.endpoints.upload,
        }

    return result


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


def format_text_result(results: Results) -> str:
    def _fmt(value: Optional[float], unit: str) -> str:
        return f"{value:.1f} {unit}" if value is not None else "unavailable"

    sep = "=" * 40
    return (
        f"{sep}\n"
        f"Speedtest Results\n"
        f"{sep}\n"
        f"Ping: {_fmt(results.ping, 'ms')}\n"
        f"Jitter: {_fmt(results.jitter, 'ms')}\n"
        f"Download: {_fmt(results.download, 'Mbps')}\n"
        f"Upload: {_fmt(results.upload, 'Mbps')}\n"
        f"{sep}"
    )
