#!/usr/bin/env python3
"""
Adaptive speedtest CLI -- one latency / download / upload session.

Usage::

    python speedtest.py                     # rich dashboard
    python speedtest.py --simple            # plain text
    python speedtest.py --json              # JSON to stdout
    python speedtest.py -o result.json      # save to file
    python speedtest.py --config my.json    # alternate config file
    python speedtest.py --max-duration 30   # longer ceiling per transfer phase
    python speedtest.py -v                  # debug logging to stderr
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from speedcheck.config import EngineConfig, load_config
from speedcheck.constants import MAX_PING_COUNT, MAX_WORKERS, MIN_PING_COUNT
from speedcheck.engine import SpeedTestEngine
from speedcheck.errors import ConfigError
from speedcheck.state import Phase
from ui.dashboard import LiveDashboard, console, print_final_results, print_header, print_report
from ui.output import create_result_json, format_text_result, save_json


# ---------------------------------------------------------------------------
# Setup helpers
# ---------------------------------------------------------------------------

def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _build_config(args: argparse.Namespace) -> EngineConfig:
    """Load the config file, then apply command-line overrides."""
    config = load_config(args.config)
    return config.with_overrides(
        ping_count=args.ping_count,
        download_workers=args.download_workers,
        upload_workers=args.upload_workers,
        min_duration=args.min_duration,
        max_duration=args.max_duration,
    )


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedtest(
    config: EngineConfig,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    details: bool = False,
    engine: Optional[SpeedTestEngine] = None,
) -> Optional[dict]:
    """Run one session and return a JSON-serialisable dict, or None if it failed."""

    show_ui = not json_output and not simple
    engine = engine or SpeedTestEngine(config)

    dashboard: Optional[LiveDashboard] = None
    if show_ui:
        print_header()
        dashboard = LiveDashboard()
        engine.subscribe(dashboard.update)
        dashboard.start()

    try:
        snapshot = await engine.run()
    except asyncio.CancelledError:
        await engine.reset()
        raise
    finally:
        if dashboard:
            dashboard.stop()

    if snapshot.phase is not Phase.COMPLETE:
        if not json_output:
            console.print("[red]Error: speed test did not complete[/red]")
        return None

    if show_ui:
        print_final_results(snapshot.results)
        if details and engine.report:
            print_report(engine.report)
    elif simple:
        print(format_text_result(snapshot.results))

    result_json = create_result_json(snapshot, engine.report, config)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Adaptive speedtest -- latency, download and upload until stable",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--details", "-d", action="store_true", help="Show sample history and per-worker stats")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")

    # Configuration
    parser.add_argument("--config", type=str, metavar="FILE", help="Config file (default: ~/.speedcheck/config.json)")
    parser.add_argument("--ping-count", type=int, metavar="N", help=f"Number of latency probes ({MIN_PING_COUNT}-{MAX_PING_COUNT})")
    parser.add_argument("--download-workers", type=int, metavar="N", help=f"Concurrent download transfers (1-{MAX_WORKERS})")
    parser.add_argument("--upload-workers", type=int, metavar="N", help=f"Concurrent upload transfers (1-{MAX_WORKERS})")
    parser.add_argument("--min-duration", type=float, metavar="SECS", help="Run at least this long before checking stability")
    parser.add_argument("--max-duration", type=float, metavar="SECS", help="Stop a transfer phase after this long")
    return parser


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = _build_config(args)
    except ConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    try:
        result = asyncio.run(
            run_speedtest(
                config,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                details=args.details,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)

    if result is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
