"""Discover Shelly Gen2 relays and keep their state in sync over WebSocket RPC."""

from __future__ import annotations

from importlib.metadata import version

from .config import RpcConfig, ScanningConfig, Settings, get_settings
from .core import (
    CoverSession,
    DeviceHost,
    DeviceSession,
    NetworkScanner,
    RpcChannel,
    SwitchSession,
    open_session,
    probe_device,
)
from .models import DeviceDescriptor, NotificationEnvelope, PairingEntry

__all__ = [
    "CoverSession",
    "DeviceDescriptor",
    "DeviceHost",
    "DeviceSession",
    "NetworkScanner",
    "NotificationEnvelope",
    "PairingEntry",
    "RpcChannel",
    "RpcConfig",
    "ScanningConfig",
    "Settings",
    "SwitchSession",
    "__version__",
    "get_settings",
    "open_session",
    "probe_device",
]

__version__ = version("shelly-gen2")
