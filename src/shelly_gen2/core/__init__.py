from __future__ import annotations

from .capabilities import capabilities_for_profile
from .errors import (
    ChannelClosedError,
    ConnectionFailedError,
    DeviceNotFoundError,
    ErrorKind,
    NotShellyDeviceError,
    RequestTimeoutError,
    RpcError,
    ShellyError,
)
from .mock_device import MockShellyDevice, run_mock_device
from .pairing import (
    build_manual_pairing_entry,
    build_pairing_entry,
    list_pairable_devices,
)
from .probe import build_descriptors, parse_components, probe_device
from .rpc import RpcChannel
from .scanner import NetworkScanner, ScanProgress, detect_local_address
from .session import (
    CoverSession,
    DeviceHost,
    DeviceSession,
    SwitchSession,
    create_session,
    open_session,
)

__all__ = [
    "ChannelClosedError",
    "ConnectionFailedError",
    "CoverSession",
    "DeviceHost",
    "DeviceNotFoundError",
    "DeviceSession",
    "ErrorKind",
    "MockShellyDevice",
    "NetworkScanner",
    "NotShellyDeviceError",
    "RequestTimeoutError",
    "RpcChannel",
    "RpcError",
    "ScanProgress",
    "ShellyError",
    "SwitchSession",
    "build_descriptors",
    "build_manual_pairing_entry",
    "build_pairing_entry",
    "capabilities_for_profile",
    "create_session",
    "detect_local_address",
    "list_pairable_devices",
    "open_session",
    "parse_components",
    "probe_device",
    "run_mock_device",
]
