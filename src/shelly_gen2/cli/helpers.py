from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from shelly_gen2.config import RpcConfig, Settings, get_settings, resolve_config_path


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def rpc_config_with_port(settings: Settings, port: int | None) -> RpcConfig:
    if port is None:
        return settings.rpc
    try:
        return RpcConfig.model_validate({**settings.rpc.model_dump(), "port": port})
    except ValidationError as exc:
        typer.echo(f"Invalid port {port}: must be 1-65535", err=True)
        raise typer.Exit(1) from exc
