"""Tests for the switch and cover capability state machines."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from shelly_gen2.core import (
    CoverSession,
    DeviceNotFoundError,
    RequestTimeoutError,
    SwitchSession,
    create_session,
    open_session,
)
from shelly_gen2.core.capabilities import (
    MEASURE_POWER,
    ONOFF,
    WINDOWCOVERINGS_SET,
    WINDOWCOVERINGS_STATE,
)
from shelly_gen2.core.session import (
    map_cover_state,
    parse_channel_index,
    position_to_percent,
)
from shelly_gen2.models import parse_notification


class FakeChannel:
    def __init__(self, statuses: dict[str, Any] | None = None, fail: bool = False):
        self.host = "10.0.0.5"
        self.statuses = statuses or {}
        self.fail = fail
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.handler = None
        self.disconnects = 0

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        self.disconnects += 1

    def set_notification_handler(self, handler) -> None:
        self.handler = handler

    def remove_notification_handler(self, handler) -> None:
        if self.handler == handler:
            self.handler = None

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        self.calls.append((method, params or {}))
        if self.fail:
            raise RequestTimeoutError(f"REQUEST_TIMEOUT: {method}")
        return self.statuses.get(method, {})

    async def get_switch_status(self, channel: int = 0) -> dict[str, Any]:
        return await self.call("Switch.GetStatus", {"id": channel})

    async def switch_set(self, on: bool, channel: int = 0) -> dict[str, Any]:
        return await self.call("Switch.Set", {"id": channel, "on": on})

    async def get_cover_status(self, channel: int = 0) -> dict[str, Any]:
        return await self.call("Cover.GetStatus", {"id": channel})

    async def cover_go_to_position(self, pos: int, channel: int = 0) -> dict[str, Any]:
        return await self.call("Cover.GoToPosition", {"id": channel, "pos": pos})


class FakeHost:
    def __init__(self, missing: bool = False):
        self.name = "Test device"
        self.available = False
        self.missing = missing
        self.values: dict[str, Any] = {}
        self.writes: list[tuple[str, Any]] = []
        self.listeners: dict[str, Any] = {}

    async def set_available(self) -> None:
        self.available = True

    async def set_capability_value(self, capability: str, value: Any) -> None:
        if self.missing:
            raise DeviceNotFoundError(self.name)
        self.values[capability] = value
        self.writes.append((capability, value))

    def register_capability_listener(self, capability: str, listener) -> None:
        self.listeners[capability] = listener


def _status_update(key: str, fields: dict[str, Any]):
    return parse_notification(
        {"method": "NotifyStatus", "params": {"ts": 1.0, key: fields}}
    )


def _event(component: str, event: str, **extra: Any):
    return parse_notification(
        {
            "method": "NotifyEvent",
            "params": {
                "ts": 1.0,
                "events": [{"component": component, "event": event, **extra}],
            },
        }
    )


def test_position_rounds_half_up():
    assert position_to_percent(0.73) == 73
    assert position_to_percent(0.725) == 73
    assert position_to_percent(1.0) == 100
    assert position_to_percent(0.0) == 0


def test_cover_state_mapping():
    assert map_cover_state("opening") == "up"
    assert map_cover_state("closing") == "down"
    assert map_cover_state("stopped") == "idle"
    assert map_cover_state("calibrating") == "idle"


def test_parse_channel_index():
    assert parse_channel_index("shellypro2pm-a8032ab1c2d3_switch:1") == 1
    assert parse_channel_index("shellypro2pm-a8032ab1c2d3_cover:0") == 0
    assert parse_channel_index("garbage") == 0


def test_switch_initialize_applies_status_and_registers_listener():
    channel = FakeChannel(
        {"Switch.GetStatus": {"id": 1, "output": True, "apower": 12.5, "current": 0.1}}
    )
    host = FakeHost()
    session = SwitchSession(host, channel, 1)

    asyncio.run(session.initialize())

    assert host.available is True
    assert host.writes[0] == (ONOFF, False)
    assert host.values == {ONOFF: True, MEASURE_POWER: 12.5, "measure_current": 0.1}
    assert channel.calls == [("Switch.GetStatus", {"id": 1})]
    assert set(host.listeners) == {ONOFF}
    assert channel.handler == session.handle_notification


def test_switch_initialize_survives_status_failure():
    channel = FakeChannel(fail=True)
    host = FakeHost()
    session = SwitchSession(host, channel, 0)

    asyncio.run(session.initialize())

    assert host.values == {ONOFF: False}
    assert ONOFF in host.listeners


def test_switch_command_then_notification_converge():
    channel = FakeChannel()
    host = FakeHost()
    session = SwitchSession(host, channel, 0)

    async def scenario():
        await session.initialize()
        assert await host.listeners[ONOFF](True) is True
        await session.handle_notification(
            _status_update("switch:0", {"id": 0, "output": True})
        )

    asyncio.run(scenario())

    assert ("Switch.Set", {"id": 0, "on": True}) in channel.calls
    assert session.values[ONOFF] is True
    assert host.values[ONOFF] is True


def test_failed_switch_command_leaves_state_unchanged():
    channel = FakeChannel()
    host = FakeHost()
    session = SwitchSession(host, channel, 0)

    async def scenario():
        await session.initialize()
        channel.fail = True
        with pytest.raises(RequestTimeoutError):
            await host.listeners[ONOFF](True)

    asyncio.run(scenario())

    assert session.values[ONOFF] is False
    assert host.values[ONOFF] is False


def test_switch_ignores_other_channels():
    channel = FakeChannel()
    host = FakeHost()
    session = SwitchSession(host, channel, 2)

    async def scenario():
        await session.initialize()
        await session.handle_notification(
            _status_update("switch:0", {"id": 0, "output": True, "apower": 40.0})
        )

    asyncio.run(scenario())

    assert host.values == {ONOFF: False}


def test_cover_initialize_applies_full_status():
    channel = FakeChannel(
        {
            "Cover.GetStatus": {
                "id": 0,
                "state": "closing",
                "current_pos": 40,
                "apower": 110.0,
            }
        }
    )
    host = FakeHost()
    session = CoverSession(host, channel, 0)

    asyncio.run(session.initialize())

    assert host.writes[0] == (WINDOWCOVERINGS_STATE, "idle")
    assert host.values[WINDOWCOVERINGS_STATE] == "down"
    assert host.values[WINDOWCOVERINGS_SET] == pytest.approx(0.4)
    assert host.values[MEASURE_POWER] == 110.0
    assert set(host.listeners) == {WINDOWCOVERINGS_SET, WINDOWCOVERINGS_STATE}


@pytest.mark.parametrize(
    ("fraction", "pos"), [(0.73, 73), (1.0, 100), (0.0, 0), (0.5, 50)]
)
def test_cover_position_command(fraction, pos):
    channel = FakeChannel()
    session = CoverSession(FakeHost(), channel, 1)

    asyncio.run(session.set_position(fraction))

    assert channel.calls == [("Cover.GoToPosition", {"id": 1, "pos": pos})]


def test_cover_position_out_of_range():
    session = CoverSession(FakeHost(), FakeChannel(), 0)
    with pytest.raises(ValueError):
        asyncio.run(session.set_position(1.5))


def test_cover_motion_commands():
    channel = FakeChannel()
    host = FakeHost()
    session = CoverSession(host, channel, 0)

    async def scenario():
        await session.initialize()
        channel.calls.clear()
        for state in ("up", "down", "idle"):
            await host.listeners[WINDOWCOVERINGS_STATE](state)

    asyncio.run(scenario())

    assert channel.calls == [
        ("Cover.Open", {"id": 0}),
        ("Cover.Close", {"id": 0}),
        ("Cover.Stop", {"id": 0}),
    ]


def test_cover_unknown_motion():
    session = CoverSession(FakeHost(), FakeChannel(), 0)
    with pytest.raises(ValueError):
        asyncio.run(session.set_motion("sideways"))


def test_cover_status_notification():
    host = FakeHost()
    session = CoverSession(host, FakeChannel(), 0)

    async def scenario():
        await session.handle_notification(
            _status_update("cover:0", {"id": 0, "state": "opening", "current_pos": 42})
        )
        await session.handle_notification(
            _status_update("cover:1", {"id": 1, "state": "closing", "current_pos": 5})
        )

    asyncio.run(scenario())

    assert host.values[WINDOWCOVERINGS_STATE] == "up"
    assert host.values[WINDOWCOVERINGS_SET] == pytest.approx(0.42)


def test_cover_events_drive_motion_state():
    host = FakeHost()
    session = CoverSession(host, FakeChannel(), 0)
    seen = []

    async def scenario():
        for envelope in (
            _event("cover:0", "start", direction="open"),
            _event("cover:0", "start", direction="close"),
            _event("cover:1", "start", direction="open"),
            _event("cover:0", "stop"),
        ):
            await session.handle_notification(envelope)
            seen.append(host.values[WINDOWCOVERINGS_STATE])

    asyncio.run(scenario())

    assert seen == ["up", "down", "down", "idle"]


def test_missing_host_record_disconnects_channel():
    channel = FakeChannel()
    session = SwitchSession(FakeHost(missing=True), channel, 0)

    asyncio.run(
        session.handle_notification(
            _status_update("switch:0", {"id": 0, "output": True})
        )
    )

    assert channel.disconnects == 1


def test_destroy_is_idempotent():
    channel = FakeChannel()
    session = SwitchSession(FakeHost(), channel, 0)

    async def scenario():
        await session.initialize()
        await session.destroy()
        await session.destroy()

    asyncio.run(scenario())

    assert channel.disconnects == 1
    assert channel.handler is None


def test_create_session_by_profile():
    channel = FakeChannel()
    assert isinstance(create_session(FakeHost(), channel, "cover"), CoverSession)
    assert isinstance(create_session(FakeHost(), channel, "switch"), SwitchSession)
    assert isinstance(create_session(FakeHost(), channel, None), SwitchSession)
    assert isinstance(create_session(FakeHost(), channel, "dimmer"), SwitchSession)


def test_switch_session_against_mock_device(with_mock_device, rpc_config_for):
    async def scenario(device):
        host = FakeHost()
        session = await open_session(
            host,
            address="127.0.0.1",
            profile="switch",
            data_id="shellypro2pm-a8032ab1c2d3_switch:1",
            config=rpc_config_for(device.bound_port),
        )
        try:
            await host.listeners[ONOFF](True)
            await asyncio.sleep(0.05)
            await device.set_switch(1, False)
            await asyncio.sleep(0.05)
        finally:
            await session.destroy()
        return host, device

    host, device = with_mock_device(scenario)

    assert ("Switch.Set", {"id": 1, "on": True}) in device.calls
    assert (ONOFF, True) in host.writes
    assert host.values[ONOFF] is False


def test_cover_session_against_mock_device(with_mock_device, rpc_config_for):
    async def scenario(device):
        host = FakeHost()
        session = await open_session(
            host,
            address="127.0.0.1",
            profile="cover",
            data_id="shellypro2pm-a8032ab1c2d3_cover:0",
            config=rpc_config_for(device.bound_port),
        )
        try:
            await host.listeners[WINDOWCOVERINGS_SET](0.73)
            await asyncio.sleep(0.3)
        finally:
            await session.destroy()
        return host, device

    host, device = with_mock_device(scenario, profile="cover")

    assert ("Cover.GoToPosition", {"id": 0, "pos": 73}) in device.calls
    assert (WINDOWCOVERINGS_STATE, "up") in host.writes
    assert host.values[WINDOWCOVERINGS_STATE] == "idle"
    assert host.values[WINDOWCOVERINGS_SET] == pytest.approx(0.73)
