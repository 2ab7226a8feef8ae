from __future__ import annotations

import logging
from typing import Any

import aiohttp

from shelly_gen2.config import RpcConfig
from shelly_gen2.models import DeviceDescriptor, split_component_key

from .errors import ShellyError
from .rpc import RpcChannel

logger = logging.getLogger(__name__)

COVER_PROFILE = "cover"
SWITCH_PROFILE = "switch"
DEFAULT_ICON = "/images/icon.svg"
PRO3_ICON = "/images/icon_pro3.svg"
PROBE_CLIENT_ID = "shelly_gen2_discovery"


def parse_components(status: dict[str, Any], profile: str) -> dict[str, list[int]]:
    """Pick the channels a device exposes under its declared profile.

    Devices in cover mode still report their relays as ``switch:<n>``; only
    the profile-selected component kind is surfaced.
    """
    wanted = COVER_PROFILE if profile == COVER_PROFILE else SWITCH_PROFILE
    channels: list[int] = []
    for key in status:
        parsed = split_component_key(key)
        if parsed is None:
            continue
        component, index = parsed
        if component == wanted:
            channels.append(index)
    return {wanted: sorted(channels)}


def format_device_name(app: str, component: str, channel: int, address: str) -> str:
    base_name = f"Shelly {app} ({address})"
    if component == COVER_PROFILE:
        return base_name
    return f"{base_name} {component} {channel + 1}"


def icon_for_app(app: str) -> str:
    return PRO3_ICON if app == "Pro3" else DEFAULT_ICON


def build_descriptors(
    info: dict[str, Any], status: dict[str, Any], address: str
) -> list[DeviceDescriptor]:
    profile = info.get("profile") or SWITCH_PROFILE
    app = str(info.get("app", ""))
    device_id = str(info["id"])

    descriptors: list[DeviceDescriptor] = []
    for component, channels in parse_components(status, profile).items():
        for channel in channels:
            descriptors.append(
                DeviceDescriptor(
                    device_id=device_id,
                    component=component,  # type: ignore[arg-type]
                    channel=channel,
                    name=format_device_name(app, component, channel, address),
                    address=address,
                    profile=profile,
                    icon=icon_for_app(app),
                    app=app,
                )
            )
    return descriptors


async def probe_device(
    address: str,
    config: RpcConfig | None = None,
    *,
    session: aiohttp.ClientSession | None = None,
) -> list[DeviceDescriptor] | None:
    """Classify one address; ``None`` means "not a device"."""
    config = config or RpcConfig()
    channel = RpcChannel(
        address,
        PROBE_CLIENT_ID,
        config=config,
        session=session,
        prime_status=False,
    )
    try:
        info = await channel.get_device_info()
        status = await channel.get_status()
        descriptors = build_descriptors(info, status, address)
    except ShellyError as exc:
        if config.debug:
            logger.debug("Skipping %s (%s)", address, exc.kind.value)
        return None
    except (
        aiohttp.ClientError,
        OSError,
        AttributeError,
        KeyError,
        TypeError,
        ValueError,
    ) as exc:
        if config.debug:
            logger.debug("Skipping %s (%s)", address, exc)
        return None
    finally:
        await channel.disconnect()

    logger.info(
        "Found Shelly %s at %s: %s",
        info.get("app", "device"),
        address,
        ", ".join(descriptor.id for descriptor in descriptors) or "no channels",
    )
    return descriptors
