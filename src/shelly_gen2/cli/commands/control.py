from __future__ import annotations

import asyncio
from typing import Any

import typer
from rich.console import Console

from shelly_gen2.cli.helpers import load_settings_or_exit, rpc_config_with_port
from shelly_gen2.cli.host import ConsoleHost
from shelly_gen2.config import RpcConfig
from shelly_gen2.core import ShellyError, open_session
from shelly_gen2.core.capabilities import (
    ONOFF,
    WINDOWCOVERINGS_SET,
    WINDOWCOVERINGS_STATE,
)

COVER_ACTIONS = {"up": "up", "open": "up", "down": "down", "close": "down"}


async def _send(
    address: str,
    profile: str,
    channel: int,
    capability: str,
    value: Any,
    config: RpcConfig,
    console: Console,
) -> None:
    host = ConsoleHost(address, console, quiet=True)
    session = await open_session(
        host,
        address=address,
        profile=profile,
        data_id=f"{config.client_id}_{profile}:{channel}",
        config=config,
    )
    try:
        await host.trigger(capability, value)
    finally:
        await session.destroy()


def _run(coro: Any, console: Console) -> None:
    try:
        asyncio.run(coro)
    except ShellyError as exc:
        console.print(f"[red]Error:[/red] {exc} ({exc.kind.value})")
        raise typer.Exit(1) from None


def parse_cover_action(action: str) -> tuple[str, Any]:
    """Map ``up``/``down``/``stop`` or a 0-100 percentage onto a capability write."""
    normalized = action.strip().lower()
    if normalized in COVER_ACTIONS:
        return WINDOWCOVERINGS_STATE, COVER_ACTIONS[normalized]
    if normalized == "stop":
        return WINDOWCOVERINGS_STATE, "idle"
    percent = int(normalized)
    if not 0 <= percent <= 100:
        raise ValueError(f"Position out of range: {percent}")
    return WINDOWCOVERINGS_SET, percent / 100


def switch(
    address: str = typer.Argument(..., help="Device IP address"),
    state: str = typer.Argument(..., help="on or off"),
    channel: int = typer.Option(0, "--channel", "-c", help="Channel index"),
    port: int | None = typer.Option(None, "--port", "-p", help="RPC port"),
) -> None:
    """Turn a switch channel on or off."""
    console = Console()
    normalized = state.strip().lower()
    if normalized not in ("on", "off"):
        console.print(f"[red]Invalid state:[/red] {state} (use on or off)")
        raise typer.Exit(1)

    config = rpc_config_with_port(load_settings_or_exit(), port)
    _run(
        _send(address, "switch", channel, ONOFF, normalized == "on", config, console),
        console,
    )
    console.print(f"[green]✓[/green] Switch {channel} turned {normalized}")


def cover(
    address: str = typer.Argument(..., help="Device IP address"),
    action: str = typer.Argument(..., help="up, down, stop or a position 0-100"),
    channel: int = typer.Option(0, "--channel", "-c", help="Channel index"),
    port: int | None = typer.Option(None, "--port", "-p", help="RPC port"),
) -> None:
    """Move a cover, stop it, or send it to a position."""
    console = Console()
    try:
        capability, value = parse_cover_action(action)
    except ValueError:
        console.print(f"[red]Invalid action:[/red] {action}")
        raise typer.Exit(1) from None

    config = rpc_config_with_port(load_settings_or_exit(), port)
    _run(_send(address, "cover", channel, capability, value, config, console), console)
    console.print(f"[green]✓[/green] Cover {channel}: {action}")


def register(app: typer.Typer) -> None:
    app.command()(switch)
    app.command()(cover)
