from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .paths import default_config_path, expand_path

CONFIG_ENV_VAR = "SHELLY_GEN2_CONFIG"


class RpcConfig(BaseModel):
    """Settings for the per-device WebSocket RPC channel."""

    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=80, ge=1, le=65535)
    request_timeout: float = Field(default=5.0, gt=0)
    connect_timeout: float = Field(default=5.0, gt=0)
    retry_delay: float = Field(default=1.0, ge=0)
    retries: int = Field(default=1, ge=0, le=10)
    client_id: str = Field(default="shelly_gen2", min_length=1)
    debug: bool = False


class ScanningConfig(BaseModel):
    """Settings for the batched /24 discovery scan."""

    model_config = {"frozen": True, "extra": "forbid"}

    local_address: str | None = None
    budget: float = Field(default=30.0, gt=0)
    batch_size: int = Field(default=20, ge=1, le=254)
    probe_timeout: float = Field(default=1.5, gt=0)
    batch_delay: float = Field(default=0.1, ge=0)
    debug: bool = False


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    rpc: RpcConfig = Field(default_factory=RpcConfig)
    scanning: ScanningConfig = Field(default_factory=ScanningConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def _toml_string(value: str) -> str:
    return json.dumps(value)


def _toml_bool(value: bool) -> str:
    return "true" if value else "false"


def render_settings_toml(settings: Settings) -> str:
    rpc = settings.rpc
    scanning = settings.scanning
    lines = [
        "# shelly-gen2 configuration",
        "",
        "[rpc]",
        f"port = {rpc.port}",
        f"request_timeout = {rpc.request_timeout}",
        f"connect_timeout = {rpc.connect_timeout}",
        f"retry_delay = {rpc.retry_delay}",
        f"retries = {rpc.retries}",
        f"client_id = {_toml_string(rpc.client_id)}",
        f"debug = {_toml_bool(rpc.debug)}",
        "",
        "[scanning]",
    ]
    # TOML has no null; an unset address means "detect at scan time"
    if scanning.local_address is not None:
        lines.append(f"local_address = {_toml_string(scanning.local_address)}")
    lines += [
        f"budget = {scanning.budget}",
        f"batch_size = {scanning.batch_size}",
        f"probe_timeout = {scanning.probe_timeout}",
        f"batch_delay = {scanning.batch_delay}",
        f"debug = {_toml_bool(scanning.debug)}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
