from __future__ import annotations

from typing import Annotated

import typer

from shelly_gen2.utils.logging import setup_logging

from .commands import config as config_cmd
from .commands.control import register as register_control
from .commands.mock import register as register_mock
from .commands.scan import register as register_scan
from .commands.watch import register as register_watch

app = typer.Typer(
    help="shelly-gen2 - discover and control Shelly Gen2 relays", no_args_is_help=True
)

app.add_typer(config_cmd.app, name="config")

register_scan(app)
register_watch(app)
register_control(app)
register_mock(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """shelly-gen2 CLI."""
    setup_logging()

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"shelly-gen2 version {get_version('shelly-gen2')}")
        raise typer.Exit()
