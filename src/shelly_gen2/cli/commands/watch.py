from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from shelly_gen2.cli.helpers import load_settings_or_exit, rpc_config_with_port
from shelly_gen2.cli.host import ConsoleHost
from shelly_gen2.config import RpcConfig
from shelly_gen2.core import ShellyError, open_session


async def _watch(
    address: str,
    profile: str,
    channel: int,
    config: RpcConfig,
    console: Console,
) -> None:
    host = ConsoleHost(f"Shelly {profile} {channel + 1} ({address})", console)
    session = await open_session(
        host,
        address=address,
        profile=profile,
        data_id=f"{config.client_id}_{profile}:{channel}",
        config=config,
    )
    try:
        await asyncio.Event().wait()
    finally:
        await session.destroy()


def watch(
    address: str = typer.Argument(..., help="Device IP address"),
    profile: str = typer.Option("switch", "--profile", help="switch or cover"),
    channel: int = typer.Option(0, "--channel", "-c", help="Channel index"),
    port: int | None = typer.Option(None, "--port", "-p", help="RPC port"),
) -> None:
    """Follow a device's capability state as notifications arrive."""
    console = Console()
    settings = load_settings_or_exit()
    config = rpc_config_with_port(settings, port)

    console.print(f"Connecting to {address}:{config.port}...")
    console.print("Press Ctrl+C to stop.\n")

    try:
        asyncio.run(_watch(address, profile, channel, config, console))
    except KeyboardInterrupt:
        console.print("\n[green]Disconnected.[/green]")
    except ShellyError as exc:
        console.print(f"[red]Error:[/red] {exc} ({exc.kind.value})")
        raise typer.Exit(1) from None


def register(app: typer.Typer) -> None:
    app.command()(watch)
