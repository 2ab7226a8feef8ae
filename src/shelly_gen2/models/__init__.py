"""Data models for shelly-gen2."""

from shelly_gen2.models.devices import (
    ComponentKind,
    DeviceDescriptor,
    ManualPairingEntry,
    PairingAddress,
    PairingData,
    PairingEntry,
    PairingSettings,
)
from shelly_gen2.models.notifications import (
    NOTIFICATION_METHODS,
    NOTIFY_EVENT,
    NOTIFY_STATUS,
    NotificationEnvelope,
    parse_notification,
    split_component_key,
)

__all__ = [
    "NOTIFICATION_METHODS",
    "NOTIFY_EVENT",
    "NOTIFY_STATUS",
    "ComponentKind",
    "DeviceDescriptor",
    "ManualPairingEntry",
    "NotificationEnvelope",
    "PairingAddress",
    "PairingData",
    "PairingEntry",
    "PairingSettings",
    "parse_notification",
    "split_component_key",
]
