"""
Rich-based terminal dashboard.

Only consumes published engine state (``speedcheck.state.Snapshot``);
all formatting helpers live in ``speedcheck.stats``.
"""
from __future__ import annotations

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from speedcheck.engine import RunReport
from speedcheck.state import Phase, Results, Snapshot
from speedcheck.stats import format_latency, format_speed

console = Console()

PHASE_LABELS = {
    Phase.IDLE: "Ready",
    Phase.PING: "Measuring ping",
    Phase.DOWNLOAD: "Testing download",
    Phase.UPLOAD: "Testing upload",
    Phase.COMPLETE: "Complete",
}

# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        _BARS[min(int((v - lo) / span * (len(_BARS) - 1)), len(_BARS) - 1)] for v in values
    )


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Adaptive Speedtest[/bold cyan]\n"
            "[dim]Latency, download and upload until the speed settles[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def _value(value: Optional[float], fmt) -> str:  # noqa: ANN001
    return fmt(value) if value is not None else "[dim]unavailable[/dim]"


def print_final_results(results: Results) -> None:
    jitter = f"{results.jitter:.1f} ms" if results.jitter is not None else "n/a"
    console.print()
    console.print(
        Panel.fit(
            f"[bold white]   Ping:[/bold white]  [bold yellow]{_value(results.ping, format_latency)}"
            f"[/bold yellow]  [dim](jitter: {jitter})[/dim]\n"
            f"[bold white]   Download:[/bold white]  [bold green]{_value(results.download, format_speed)}"
            f"[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  [bold blue]{_value(results.upload, format_speed)}"
            f"[/bold blue]",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


def print_report(report: RunReport) -> None:
    """Sample history and per-worker details of a completed run."""
    for result, color in ((report.download, "green"), (report.upload, "blue")):
        if result is None:
            continue

        if result.samples:
            console.print(
                Panel(
                    f"[{color}]{create_histogram(result.samples)}[/{color}]\n"
                    f"[dim]Min: {min(result.samples):.1f} Mbps  "
                    f"Max: {max(result.samples):.1f} Mbps  "
                    f"Stop: {result.stop_reason}[/dim]",
                    title=f"{result.direction.capitalize()} Over Time",
                )
            )

        table = Table(title=f"{result.direction.capitalize()} Workers", box=box.SIMPLE)
        table.add_column("ID", style="dim")
        table.add_column("Transfers", justify="right")
        table.add_column("Failures", justify="right")
        table.add_column("Bytes", justify="right")
        for worker in result.workers:
            table.add_row(
                str(worker.id),
                str(worker.transfers),
                str(worker.failures),
                f"{worker.bytes_transferred / 1_000_000:.1f} MB",
            )
        console.print(table)


# ---------------------------------------------------------------------------
# Live display
# ---------------------------------------------------------------------------

class LiveDashboard:
    """
    Observer for engine snapshots that drives a ``rich`` progress bar.

    Register with ``engine.subscribe(dashboard.update)``.
    """

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._tasks: dict = {}
        self._phase: Optional[Phase] = None

    def start(self) -> None:
        self.progress.start()

    def stop(self) -> None:
        self.progress.stop()

    def _task_for(self, phase: Phase) -> TaskID:
        if phase not in self._tasks:
            self._tasks[phase] = self.progress.add_task(PHASE_LABELS[phase], total=100, speed="")
        return self._tasks[phase]

    def update(self, snapshot: Snapshot) -> None:
        if snapshot.phase in (Phase.IDLE, Phase.COMPLETE):
            # finish the bar of the phase that just ended
            if self._phase in self._tasks:
                self.progress.update(self._tasks[self._phase], completed=100)
            self._phase = snapshot.phase
            return

        self._phase = snapshot.phase
        if snapshot.phase is Phase.PING:
            ping = snapshot.results.ping
            speed = format_latency(ping) if ping is not None else "..."
        else:
            speed = (
                format_speed(snapshot.instantaneous_speed)
                if snapshot.instantaneous_speed > 0
                else "..."
            )
        self.progress.update(
            self._task_for(snapshot.phase), completed=snapshot.progress, speed=speed
        )
