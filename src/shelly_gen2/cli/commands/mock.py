from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from shelly_gen2.core import run_mock_device


def mock(
    profile: str = typer.Option(
        "switch", "--profile", help="Device profile: switch or cover"
    ),
    port: int = typer.Option(8080, "--port", "-p", help="Port to listen on"),
    channels: int = typer.Option(2, "--channels", "-c", help="Number of relays"),
    device_id: str = typer.Option(
        "shellypro2pm-a8032ab1c2d3", "--id", help="Device id to report"
    ),
) -> None:
    """Run a mock Shelly Gen2 device for development."""
    if profile not in ("switch", "cover"):
        typer.echo(f"Unknown profile: {profile}", err=True)
        raise typer.Exit(1)

    console = Console()
    console.print(f"Starting mock {profile} device '{device_id}' on port {port}...")
    console.print("Press Ctrl+C to stop.\n")

    try:
        asyncio.run(
            run_mock_device(
                profile=profile, port=port, channels=channels, device_id=device_id
            )
        )
    except KeyboardInterrupt:
        console.print("\n[green]Mock device stopped.[/green]")


def register(app: typer.Typer) -> None:
    app.command()(mock)
