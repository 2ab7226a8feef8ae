"""Mock Shelly Gen2 device server for development and testing."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from aiohttp import WSMsgType, web

logger = logging.getLogger(__name__)

ERROR_NO_HANDLER = 404
ERROR_INVALID_ARGUMENT = -103


@dataclass
class MockSwitch:
    output: bool = False
    apower: float = 0.0
    current: float = 0.0

    def status(self, index: int) -> dict[str, Any]:
        return {
            "id": index,
            "source": "init",
            "output": self.output,
            "apower": self.apower,
            "voltage": 230.0,
            "current": self.current,
        }


@dataclass
class MockCover:
    state: str = "stopped"
    current_pos: int = 0
    apower: float = 0.0
    current: float = 0.0

    def status(self, index: int) -> dict[str, Any]:
        return {
            "id": index,
            "source": "init",
            "state": self.state,
            "current_pos": self.current_pos,
            "apower": self.apower,
            "current": self.current,
            "pos_control": True,
        }


@dataclass(eq=False)
class _Client:
    ws: web.WebSocketResponse
    src: str | None = None


class RpcFailure(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class MockShellyDevice:
    """Mock device answering the Gen2 RPC methods on ``/rpc``.

    In cover profile the device also reports its relays as switches, like
    real hardware does.
    """

    device_id: str = "shellypro2pm-a8032ab1c2d3"
    app: str = "Pro2PM"
    profile: str = "switch"
    channels: int = 2
    host: str = "0.0.0.0"
    port: int = 80
    travel_time: float = 0.5

    switches: dict[int, MockSwitch] = field(default_factory=dict)
    covers: dict[int, MockCover] = field(default_factory=dict)
    requests: list[dict[str, Any]] = field(default_factory=list, repr=False)

    _runner: web.AppRunner | None = field(default=None, repr=False)
    _clients: set[_Client] = field(default_factory=set, repr=False)
    _motion_tasks: dict[int, asyncio.Task[None]] = field(
        default_factory=dict, repr=False
    )

    def __post_init__(self) -> None:
        if not self.switches:
            self.switches = {index: MockSwitch() for index in range(self.channels)}
        if self.profile == "cover" and not self.covers:
            self.covers = {0: MockCover()}

    @property
    def calls(self) -> list[tuple[str, dict[str, Any]]]:
        return [
            (request.get("method", ""), request.get("params") or {})
            for request in self.requests
        ]

    @property
    def bound_port(self) -> int:
        if self._runner is None or not self._runner.addresses:
            return self.port
        return int(self._runner.addresses[0][1])

    async def start(self) -> None:
        """Start the mock device server."""
        app = web.Application()
        app.router.add_get("/rpc", self._handle_client)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(
            "Mock device '%s' (%s) listening on port %d",
            self.device_id,
            self.profile,
            self.bound_port,
        )

    async def stop(self) -> None:
        """Stop the mock device server."""
        for task in self._motion_tasks.values():
            task.cancel()
        for client in list(self._clients):
            await client.ws.close()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Mock device '%s' stopped", self.device_id)

    async def run_forever(self) -> None:
        """Run the server until interrupted."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    async def _handle_client(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        client = _Client(ws)
        self._clients.add(client)
        logger.info("Client connected: %s", request.remote)

        try:
            async for msg in ws:
                if msg.type != WSMsgType.TEXT:
                    continue
                try:
                    message = json.loads(msg.data)
                except ValueError:
                    logger.debug("Ignoring malformed frame from %s", request.remote)
                    continue
                await self._handle_message(client, message)
        except (ConnectionResetError, BrokenPipeError):
            logger.debug("Client disconnected: %s", request.remote)
        finally:
            self._clients.discard(client)
        return ws

    async def _handle_message(self, client: _Client, message: dict[str, Any]) -> None:
        method = message.get("method", "")
        params = message.get("params") or {}
        client.src = message.get("src") or client.src
        self.requests.append(message)
        logger.debug("Received %s %s", method, params)

        reply: dict[str, Any] = {"id": message.get("id"), "src": self.device_id}
        if client.src:
            reply["dst"] = client.src
        try:
            reply["result"] = await self._dispatch(method, params)
        except RpcFailure as exc:
            reply["error"] = {"code": exc.code, "message": exc.message}
        await client.ws.send_str(json.dumps(reply))

    async def _dispatch(self, method: str, params: dict[str, Any]) -> Any:
        if method == "Shelly.GetDeviceInfo":
            return self.device_info()
        if method == "Shelly.GetStatus":
            return self.status()
        if method == "Switch.GetStatus":
            index = self._index(params, self.switches)
            return self.switches[index].status(index)
        if method == "Switch.Set":
            index = self._index(params, self.switches)
            was_on = self.switches[index].output
            await self.set_switch(index, bool(params.get("on")))
            return {"was_on": was_on}
        if method == "Cover.GetStatus":
            index = self._index(params, self.covers)
            return self.covers[index].status(index)
        if method == "Cover.GoToPosition":
            index = self._index(params, self.covers)
            pos = params.get("pos")
            if not isinstance(pos, int) or not 0 <= pos <= 100:
                raise RpcFailure(ERROR_INVALID_ARGUMENT, "Invalid argument 'pos'")
            self._start_motion(index, pos)
            return None
        if method == "Cover.Open":
            self._start_motion(self._index(params, self.covers), 100)
            return None
        if method == "Cover.Close":
            self._start_motion(self._index(params, self.covers), 0)
            return None
        if method == "Cover.Stop":
            index = self._index(params, self.covers)
            task = self._motion_tasks.pop(index, None)
            if task is not None:
                task.cancel()
            await self._finish_motion(index)
            return None
        raise RpcFailure(ERROR_NO_HANDLER, f"No handler for {method}")

    def _index(self, params: dict[str, Any], components: dict[int, Any]) -> int:
        index = params.get("id", 0)
        if index not in components:
            raise RpcFailure(ERROR_INVALID_ARGUMENT, f"Invalid id {index!r}")
        return index

    def device_info(self) -> dict[str, Any]:
        info = {
            "name": None,
            "id": self.device_id,
            "mac": self.device_id.rsplit("-", 1)[-1].upper(),
            "model": "SPSW-202XE16EU",
            "gen": 2,
            "fw_id": "20240625-122901/1.3.3-gbdfd9b3",
            "ver": "1.3.3",
            "app": self.app,
            "auth_en": False,
            "auth_domain": None,
        }
        if self.profile:
            info["profile"] = self.profile
        return info

    def status(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "sys": {"mac": self.device_id.rsplit("-", 1)[-1].upper()},
            "wifi": {"status": "got ip"},
        }
        for index, switch in self.switches.items():
            status[f"switch:{index}"] = switch.status(index)
        for index, cover in self.covers.items():
            status[f"cover:{index}"] = cover.status(index)
        return status

    async def set_switch(self, index: int, on: bool) -> None:
        """Change a relay and notify subscribers, as a physical toggle would."""
        switch = self.switches[index]
        switch.output = on
        switch.apower = 42.5 if on else 0.0
        switch.current = 0.19 if on else 0.0
        logger.info("Switch %d changed to: %s", index, on)
        await self.notify_status(
            f"switch:{index}",
            {
                "id": index,
                "output": on,
                "apower": switch.apower,
                "current": switch.current,
            },
        )

    def _start_motion(self, index: int, target: int) -> None:
        previous = self._motion_tasks.pop(index, None)
        if previous is not None:
            previous.cancel()
        self._motion_tasks[index] = asyncio.create_task(self._move(index, target))

    async def _move(self, index: int, target: int) -> None:
        cover = self.covers[index]
        if target == cover.current_pos:
            return
        direction = "open" if target > cover.current_pos else "close"
        cover.state = "opening" if direction == "open" else "closing"
        cover.apower = 120.0
        await self.notify_event(
            {
                "component": f"cover:{index}",
                "id": index,
                "event": "start",
                "direction": direction,
            }
        )
        await self.notify_status(
            f"cover:{index}",
            {"id": index, "state": cover.state, "apower": cover.apower},
        )
        await asyncio.sleep(self.travel_time)
        cover.current_pos = target
        self._motion_tasks.pop(index, None)
        await self._finish_motion(index)

    async def _finish_motion(self, index: int) -> None:
        cover = self.covers[index]
        cover.state = "stopped"
        cover.apower = 0.0
        await self.notify_event(
            {"component": f"cover:{index}", "id": index, "event": "stop"}
        )
        await self.notify_status(
            f"cover:{index}",
            {
                "id": index,
                "state": cover.state,
                "current_pos": cover.current_pos,
                "apower": cover.apower,
            },
        )

    async def notify_status(self, key: str, fields: dict[str, Any]) -> None:
        await self._broadcast(
            "NotifyStatus", {"ts": round(time.time(), 2), key: fields}
        )

    async def notify_event(self, event: dict[str, Any]) -> None:
        ts = round(time.time(), 2)
        await self._broadcast("NotifyEvent", {"ts": ts, "events": [event | {"ts": ts}]})

    async def _broadcast(self, method: str, params: dict[str, Any]) -> None:
        for client in list(self._clients):
            if client.src is None:
                continue
            message = {
                "src": self.device_id,
                "dst": client.src,
                "method": method,
                "params": params,
            }
            try:
                await client.ws.send_str(json.dumps(message))
            except (ConnectionResetError, BrokenPipeError):
                self._clients.discard(client)


async def run_mock_device(
    profile: str = "switch",
    port: int = 80,
    channels: int = 2,
    device_id: str = "shellypro2pm-a8032ab1c2d3",
) -> None:
    """Run a mock Shelly device server."""
    device = MockShellyDevice(
        device_id=device_id,
        profile=profile,
        channels=channels,
        port=port,
    )
    await device.run_forever()
