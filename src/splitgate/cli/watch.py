# Copyright (c) Syntropy Systems
"""splitgate watch command - live updating results view."""
from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.table import Table

from splitgate.cli import common
from splitgate.cli.results import build_results_display
from splitgate.config import load_config
from splitgate.errors import SplitgateError
from splitgate.poller import ResultsPoller

if TYPE_CHECKING:
    from splitgate.models.results import ResultsSnapshot

console = Console()


def build_display(snapshot: ResultsSnapshot) -> Table:
    """Results layout with a refresh footer."""
    layout = build_results_display(snapshot)
    now = datetime.now(timezone.utc)
    layout.add_row(
        f"[dim]Last updated: {now.strftime('%H:%M:%S')} (Ctrl+C to exit)[/dim]"
    )
    return layout


def watch(
    experiment_id: str = typer.Argument(..., help="Experiment ID"),
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        help="Refresh interval in seconds (default: poll_interval from config)",
    ),
    once: bool = typer.Option(
        False,
        "--once",
        help="Fetch and render a single snapshot, then exit",
    ),
    server: Optional[str] = common.SERVER_OPTION,
) -> None:
    """Watch an experiment's results with live updates.

    Read-only: refreshing never declares or changes anything. Press Ctrl+C to exit.
    """
    if interval is None:
        interval = load_config().poll_interval

    with common.open_client(server) as client:
        try:
            snapshot = client.get_results(experiment_id)
        except SplitgateError as e:
            common.fail(e)

        if once:
            console.print(build_display(snapshot))
            return

        console.print("[dim]Starting watch mode...[/dim]")
        lock = threading.Lock()

        try:
            with Live(build_display(snapshot), console=console, refresh_per_second=1) as live:

                def _update(fresh: ResultsSnapshot) -> None:
                    with lock:
                        live.update(build_display(fresh))

                poller = ResultsPoller(client, experiment_id, _update, interval=interval)
                poller.start()
                try:
                    while poller.running:
                        time.sleep(1.0)
                finally:
                    poller.stop()
        except KeyboardInterrupt:
            console.print("\n[dim]Watch stopped[/dim]")
