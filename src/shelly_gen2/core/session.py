"""Capability state machines binding one device channel to a host device record.

A session goes uninitialized -> connecting -> ready, then handles push
notifications and user commands until it is destroyed. The host side is
reached only through the :class:`DeviceHost` protocol.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar, Protocol

from shelly_gen2.config import RpcConfig
from shelly_gen2.models import NotificationEnvelope
from shelly_gen2.utils.logging import host_logger

from .capabilities import (
    MEASURE_CURRENT,
    MEASURE_POWER,
    ONOFF,
    WINDOWCOVERINGS_SET,
    WINDOWCOVERINGS_STATE,
)
from .errors import DeviceNotFoundError, ShellyError
from .rpc import RpcChannel

logger = logging.getLogger(__name__)

CapabilityListener = Callable[[Any], Awaitable[Any]]

COVER_STATES = {"opening": "up", "closing": "down", "stopped": "idle"}
MOTION_METHODS = {"up": "Cover.Open", "down": "Cover.Close", "idle": "Cover.Stop"}


class DeviceHost(Protocol):
    """What a session needs from the platform's device record."""

    name: str

    async def set_available(self) -> None: ...

    async def set_capability_value(self, capability: str, value: Any) -> None:
        """Store a value; raise :class:`DeviceNotFoundError` if the record is gone."""

    def register_capability_listener(
        self, capability: str, listener: CapabilityListener
    ) -> None: ...


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def map_cover_state(state: Any) -> str:
    return COVER_STATES.get(state, "idle")


def position_to_percent(fraction: float) -> int:
    """Round half up, so 0.725 gives 73 rather than banker's 72."""
    return int(math.floor(fraction * 100 + 0.5))


def parse_channel_index(data_id: str) -> int:
    """``"shellypro2pm-abc_switch:1"`` -> ``1``; malformed ids map to 0."""
    _, sep, index = data_id.rpartition(":")
    if sep and index.isdigit():
        return int(index)
    return 0


class DeviceSession(ABC):
    kind: ClassVar[str]

    def __init__(
        self,
        host: DeviceHost,
        channel: RpcChannel,
        channel_index: int = 0,
        *,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.host = host
        self.channel = channel
        self.channel_index = channel_index
        self.values: dict[str, Any] = {}
        self._log = host_logger(channel.host, logger, __name__)
        self._destroyed = False

    async def initialize(self) -> None:
        self._log.info("Initializing %s for %s", type(self).__name__, self.host.name)
        try:
            await self.channel.connect()
            self.channel.set_notification_handler(self.handle_notification)
            await self.host.set_available()
            await self.initialize_capabilities()
        except ShellyError as exc:
            self._log.error("Error during initialization: %s", exc)
            raise

    @abstractmethod
    async def initialize_capabilities(self) -> None:
        """Set defaults, apply the current hardware state and register listeners."""

    @abstractmethod
    async def handle_notification(self, envelope: NotificationEnvelope) -> None: ...

    async def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self.channel.remove_notification_handler(self.handle_notification)
        await self.channel.disconnect()

    async def set_capability_value(self, capability: str, value: Any) -> None:
        """Record a value locally and push it to the host.

        A host that no longer knows the device gets its channel torn down.
        """
        self.values[capability] = value
        try:
            await self.host.set_capability_value(capability, value)
        except DeviceNotFoundError:
            self._log.error("Device not found on host, disconnecting channel")
            await self.channel.disconnect()
        except Exception:
            self._log.exception("Failed to set capability %s", capability)

    async def _apply_measurements(self, fields: dict[str, Any]) -> None:
        if _is_number(fields.get("apower")):
            await self.set_capability_value(MEASURE_POWER, fields["apower"])
        if _is_number(fields.get("current")):
            await self.set_capability_value(MEASURE_CURRENT, fields["current"])


class SwitchSession(DeviceSession):
    kind = "switch"

    async def initialize_capabilities(self) -> None:
        await self.set_capability_value(ONOFF, False)

        try:
            status = await self.channel.get_switch_status(self.channel_index)
        except ShellyError as exc:
            self._log.error("Failed to get initial switch status: %s", exc)
        else:
            if isinstance(status, dict):
                await self._apply(status)

        self.host.register_capability_listener(ONOFF, self._on_onoff)

    async def _on_onoff(self, value: Any) -> bool:
        await self.set_on(bool(value))
        return True

    async def set_on(self, on: bool) -> None:
        try:
            await self.channel.switch_set(on, self.channel_index)
        except ShellyError as exc:
            self._log.error("Failed to set switch state: %s", exc)
            raise
        self.values[ONOFF] = on

    async def handle_notification(self, envelope: NotificationEnvelope) -> None:
        fields = envelope.component("switch", self.channel_index)
        if fields is not None:
            await self._apply(fields)

    async def _apply(self, fields: dict[str, Any]) -> None:
        if isinstance(fields.get("output"), bool):
            await self.set_capability_value(ONOFF, fields["output"])
        await self._apply_measurements(fields)


class CoverSession(DeviceSession):
    kind = "cover"

    async def initialize_capabilities(self) -> None:
        await self.set_capability_value(WINDOWCOVERINGS_STATE, "idle")

        try:
            status = await self.channel.get_cover_status(self.channel_index)
        except ShellyError as exc:
            self._log.error("Failed to get initial cover status: %s", exc)
        else:
            if isinstance(status, dict):
                await self._apply(status)

        self.host.register_capability_listener(
            WINDOWCOVERINGS_SET, self._on_position
        )
        self.host.register_capability_listener(WINDOWCOVERINGS_STATE, self._on_motion)

    async def _on_position(self, value: Any) -> bool:
        await self.set_position(float(value))
        return True

    async def _on_motion(self, value: Any) -> bool:
        await self.set_motion(str(value))
        return True

    async def set_position(self, fraction: float) -> None:
        """Move to ``fraction`` of fully open (0 closed, 1 open)."""
        if not 0.0 <= fraction <= 1.0:
            raise ValueError(f"Cover position must be within 0..1, got {fraction}")
        try:
            await self.channel.cover_go_to_position(
                position_to_percent(fraction), self.channel_index
            )
        except ShellyError as exc:
            self._log.error("Failed to set cover position: %s", exc)
            raise

    async def set_motion(self, state: str) -> None:
        method = MOTION_METHODS.get(state)
        if method is None:
            raise ValueError(f"Unknown cover motion {state!r}")
        try:
            await self.channel.call(method, {"id": self.channel_index})
        except ShellyError as exc:
            self._log.error("Failed to control cover: %s", exc)
            raise

    async def handle_notification(self, envelope: NotificationEnvelope) -> None:
        fields = envelope.component("cover", self.channel_index)
        if fields is not None:
            await self._apply(fields)

        for event in envelope.events_for("cover", self.channel_index):
            if event.get("event") == "start":
                state = "up" if event.get("direction") == "open" else "down"
            elif event.get("event") == "stop":
                state = "idle"
            else:
                continue
            await self.set_capability_value(WINDOWCOVERINGS_STATE, state)

    async def _apply(self, fields: dict[str, Any]) -> None:
        if fields.get("state"):
            await self.set_capability_value(
                WINDOWCOVERINGS_STATE, map_cover_state(fields["state"])
            )
        if _is_number(fields.get("current_pos")):
            await self.set_capability_value(
                WINDOWCOVERINGS_SET, fields["current_pos"] / 100
            )
        await self._apply_measurements(fields)


SESSION_TYPES: dict[str, type[DeviceSession]] = {
    SwitchSession.kind: SwitchSession,
    CoverSession.kind: CoverSession,
}


def create_session(
    host: DeviceHost,
    channel: RpcChannel,
    profile: str | None,
    channel_index: int = 0,
    *,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> DeviceSession:
    session_type = SESSION_TYPES.get(profile or "switch")
    if session_type is None:
        host_logger(channel.host, logger, __name__).error(
            "Unknown profile: %s, using switch as fallback", profile
        )
        session_type = SwitchSession
    return session_type(host, channel, channel_index, logger=logger)


async def open_session(
    host: DeviceHost,
    *,
    address: str,
    profile: str | None,
    data_id: str,
    config: RpcConfig | None = None,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> DeviceSession:
    """Build the channel and session for a paired device and bring it up."""
    channel = RpcChannel(address, data_id, config=config, logger=logger)
    session = create_session(
        host, channel, profile, parse_channel_index(data_id), logger=logger
    )
    try:
        await session.initialize()
    except BaseException:
        await session.destroy()
        raise
    return session
