# Copyright (c) Syntropy Systems
"""splitgate init command."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from splitgate.config import CONFIG_DIR_NAME, SplitgateConfig, write_config

console = Console()


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
    server_url: str = typer.Option(
        "http://localhost:7700",
        "--server-url",
        help="Search engine URL to store in the config",
    ),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        help="API key to store in the config",
    ),
    application_id: Optional[str] = typer.Option(
        None,
        "--application-id",
        help="Application ID to store in the config",
    ),
) -> None:
    """Initialize splitgate configuration.

    Creates a .splitgate directory with config.yaml.
    """
    target = path.resolve()
    config_dir = target / CONFIG_DIR_NAME

    if config_dir.exists():
        console.print(f"[yellow]Already initialized:[/yellow] {config_dir}")
        return

    config = SplitgateConfig(
        server_url=server_url,
        api_key=api_key,
        application_id=application_id,
    )
    config_path = write_config(config_dir, config)

    console.print(f"[green]Initialized splitgate:[/green] {config_dir}")
    console.print(f"  [dim]config:[/dim] {config_path}")
    console.print(f"  [dim]server:[/dim] {config.server_url}")
