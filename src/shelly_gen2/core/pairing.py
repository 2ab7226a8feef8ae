from __future__ import annotations

import ipaddress
import logging

from shelly_gen2.models import (
    DeviceDescriptor,
    ManualPairingEntry,
    PairingAddress,
    PairingData,
    PairingEntry,
    PairingSettings,
)

from .capabilities import capabilities_for_profile
from .scanner import NetworkScanner

logger = logging.getLogger(__name__)


def build_pairing_entry(descriptor: DeviceDescriptor) -> PairingEntry:
    return PairingEntry(
        name=descriptor.name,
        data=PairingData(id=descriptor.id, ip=descriptor.address),
        settings=PairingSettings(ip=descriptor.address, profile=descriptor.profile),
        icon=descriptor.icon,
        capabilities=capabilities_for_profile(descriptor.profile),
    )


def build_manual_pairing_entry(ip: str) -> ManualPairingEntry:
    """Entry for a device the user adds by IPv4 address; raises ``ValueError``."""
    address = str(ipaddress.IPv4Address(ip.strip()))
    return ManualPairingEntry(
        name=f"Shelly Gen2 ({address})",
        data=PairingAddress(ip=address),
        settings=PairingAddress(ip=address),
    )


async def list_pairable_devices(
    scanner: NetworkScanner, local_address: str | None = None
) -> list[PairingEntry]:
    """Run discovery and shape the result for a pairing dialog; never raises."""
    try:
        descriptors = await scanner.discover(local_address)
    except Exception:
        logger.exception("Device discovery failed")
        return []

    entries = [build_pairing_entry(descriptor) for descriptor in descriptors]
    for entry in entries:
        logger.debug(
            "Device %s has profile %s with capabilities %s",
            entry.name,
            entry.settings.profile,
            entry.capabilities,
        )
    return entries
