from __future__ import annotations

import asyncio
import logging

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from shelly_gen2.cli.helpers import load_settings_or_exit
from shelly_gen2.config import ScanningConfig
from shelly_gen2.core import NetworkScanner, ScanProgress, build_pairing_entry
from shelly_gen2.utils.redaction import Redactor

logger = logging.getLogger(__name__)


def scan(
    local_address: str | None = typer.Argument(
        None,
        help=(
            "Local IPv4 address whose /24 is scanned (e.g., 192.168.1.20). "
            "Uses config or autodetection if omitted."
        ),
    ),
    budget: float | None = typer.Option(
        None, "--budget", help="Overall scan budget in seconds"
    ),
    batch_size: int | None = typer.Option(
        None, "--batch-size", help="Addresses probed concurrently"
    ),
    redact: bool = typer.Option(
        False,
        "--redact",
        help="Redact sensitive values in output",
    ),
) -> None:
    """Scan the local network for Shelly Gen2 devices."""
    console = Console()
    settings = load_settings_or_exit()

    overrides: dict[str, object] = {}
    if budget is not None:
        overrides["budget"] = budget
    if batch_size is not None:
        overrides["batch_size"] = batch_size
    try:
        scanning = ScanningConfig.model_validate(
            {**settings.scanning.model_dump(), **overrides}
        )
    except ValidationError as exc:
        typer.echo(f"Invalid scan options:\n{exc}", err=True)
        raise typer.Exit(1) from exc

    logger.info(
        "Scan settings: budget=%.1fs, batch_size=%d, probe_timeout=%.1fs",
        scanning.budget,
        scanning.batch_size,
        scanning.probe_timeout,
    )
    scanner = NetworkScanner(scanning, settings.rpc)

    with Progress(
        TextColumn("Scanning for Shelly devices..."),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("found {task.fields[found]}"),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("scan", total=254, found=0)

        def _on_progress(update: ScanProgress) -> None:
            progress.update(
                task_id,
                completed=update.scanned,
                total=update.total,
                found=update.found,
            )

        devices = asyncio.run(scanner.discover(local_address, _on_progress))

    if not devices:
        console.print("No Shelly devices found.")
        return

    redactor = Redactor(enabled=redact)
    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("IP")
    table.add_column("Profile", style="yellow")
    table.add_column("Capabilities")

    for device in devices:
        entry = build_pairing_entry(device)
        name = entry.name
        if redact:
            name = name.replace(device.address, redactor.redact_ip(device.address))
        table.add_row(
            redactor.redact_key(entry.data.id),
            name,
            redactor.redact_ip(entry.data.ip),
            entry.settings.profile,
            ", ".join(entry.capabilities),
        )

    console.print(table)
    console.print(f"\n[green]Found {len(devices)} device(s)[/green]")


def register(app: typer.Typer) -> None:
    app.command()(scan)
