# Copyright (c) Syntropy Systems
"""Main CLI entry point for splitgate."""

import logging

import typer

from splitgate.cli.create import create
from splitgate.cli.declare import declare
from splitgate.cli.estimate import estimate
from splitgate.cli.experiments import delete, list_experiments, show, start, stop
from splitgate.cli.init_cmd import init
from splitgate.cli.results import results
from splitgate.cli.watch import watch

app = typer.Typer(
    name="splitgate",
    help=(
        "A/B experiments for a search index. Create, watch, and conclude "
        "with statistical gating."
    ),
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Log HTTP calls and decision steps",
    ),
) -> None:
    """Configure logging for the invoked command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register commands
_ = app.command()(init)
_ = app.command()(estimate)
_ = app.command()(create)
_ = app.command(name="list")(list_experiments)
_ = app.command()(show)
_ = app.command()(start)
_ = app.command()(stop)
_ = app.command()(delete)
_ = app.command()(results)
_ = app.command()(watch)
_ = app.command()(declare)


if __name__ == "__main__":
    app()
