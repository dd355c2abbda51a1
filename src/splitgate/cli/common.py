# Copyright (c) Syntropy Systems
"""Helpers shared by splitgate commands."""
from __future__ import annotations

from typing import NoReturn, Optional

import typer
from rich.console import Console

from splitgate.client import ExperimentClient, client_from_config
from splitgate.config import load_config
from splitgate.errors import SplitgateError, ValidationError

console = Console()

STATUS_STYLES = {
    "draft": "dim",
    "running": "green",
    "stopped": "yellow",
    "concluded": "blue",
}

SERVER_OPTION = typer.Option(
    None,
    "--server", "-s",
    envvar="SPLITGATE_SERVER_URL",
    help="Search engine URL (default: from config)",
)


def open_client(server: Optional[str] = None) -> ExperimentClient:
    """Create a client from config, with an optional server override."""
    return client_from_config(load_config(), server_url=server)


def styled_status(status: str) -> str:
    """Status wrapped in its rich style."""
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def fail(error: SplitgateError | str) -> NoReturn:
    """Print an error and exit with status 1."""
    if isinstance(error, ValidationError) and len(error.errors) > 1:
        console.print("[red]Error:[/red]")
        for message in error.errors:
            console.print(f"  - {message}")
    else:
        console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)
