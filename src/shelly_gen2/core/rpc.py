"""JSON-RPC client multiplexed over one persistent WebSocket to a Shelly Gen2 device."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import aiohttp

from shelly_gen2.config import RpcConfig
from shelly_gen2.models import (
    NOTIFICATION_METHODS,
    NotificationEnvelope,
    parse_notification,
)
from shelly_gen2.utils.logging import host_logger

from .errors import (
    ChannelClosedError,
    ErrorKind,
    RequestTimeoutError,
    RpcError,
    ShellyError,
    connection_error_from,
)

RPC_PATH = "/rpc"
CLOSE_TIMEOUT = 0.5

NotificationHandler = Callable[[NotificationEnvelope], Awaitable[None] | None]


@dataclass
class _PendingRequest:
    method: str
    future: asyncio.Future[Any]
    generation: int


class RpcChannel:
    """One persistent RPC connection to one device.

    Requests are correlated by a monotonically increasing id. Every pending
    entry is tagged with the connection generation it was sent on, so a
    response arriving on a later connection can never resolve it.

    The notification handler runs on the reader task; it must not await
    calls on the same channel.
    """

    def __init__(
        self,
        host: str,
        client_id: str | None = None,
        *,
        config: RpcConfig | None = None,
        session: aiohttp.ClientSession | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        prime_status: bool = True,
    ) -> None:
        self.host = host
        self._config = config or RpcConfig()
        self.client_id = client_id or self._config.client_id
        self.url = f"ws://{host}:{self._config.port}{RPC_PATH}"
        self._session = session
        self._owns_session = session is None
        self._prime_status = prime_status
        self._log = host_logger(host, logger, __name__)
        self._debug = self._config.debug

        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._connect_lock = asyncio.Lock()
        self._generation = 0
        self._next_id = 1
        self._pending: dict[int, _PendingRequest] = {}
        self._handler: NotificationHandler | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_ids(self) -> list[int]:
        return list(self._pending)

    # Connection lifecycle

    async def connect(self) -> None:
        """Open the socket once; concurrent callers wait for the same attempt."""
        if self.connected:
            return
        async with self._connect_lock:
            if self.connected:
                return
            await self._open()

    async def _open(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        self._log.debug("Connecting to %s", self.url)
        started = self._generation
        try:
            ws = await asyncio.wait_for(
                self._session.ws_connect(self.url),
                timeout=self._config.connect_timeout,
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            error = connection_error_from(exc)
            if self._debug:
                self._log.debug("%s (%s)", error, error.kind.value)
            raise error from exc

        if self._generation != started:
            # disconnect() ran while the handshake was in flight
            await self._close_socket(ws)
            raise ChannelClosedError("Channel closed while connecting")

        self._generation += 1
        generation = self._generation
        self._ws = ws
        self._reader_task = asyncio.create_task(
            self._read_loop(ws, generation), name=f"shelly-rpc-{self.host}"
        )
        self._log.debug("Connected (generation %d)", generation)

        if self._prime_status:
            # The device only pushes notifications to a src it has seen
            try:
                await self.call("Shelly.GetStatus", retries=0)
            except ShellyError as exc:
                self._log.error("Failed to send initial status request: %s", exc)

    async def disconnect(self) -> None:
        """Tear down the socket and reject every pending call."""
        ws, self._ws = self._ws, None
        reader, self._reader_task = self._reader_task, None
        self._generation += 1
        self._fail_pending("Channel closed")

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        if ws is not None:
            await self._close_socket(ws)

        if self._owns_session and self._session is not None:
            session, self._session = self._session, None
            await session.close()

        if ws is not None:
            self._log.debug("Disconnected")

    async def _close_socket(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        if ws.closed:
            return
        try:
            await asyncio.wait_for(ws.close(), timeout=CLOSE_TIMEOUT)
        except (aiohttp.ClientError, ConnectionError, asyncio.TimeoutError) as exc:
            self._log.debug("Error while closing socket: %s", exc)

    def _connection_lost(self, generation: int) -> None:
        self._log.info("Connection closed by device")
        self._ws = None
        self._reader_task = None
        self._fail_pending("Connection closed by device", generation)

    def _fail_pending(self, reason: str, generation: int | None = None) -> None:
        for request_id, pending in list(self._pending.items()):
            if generation is not None and pending.generation != generation:
                continue
            del self._pending[request_id]
            if not pending.future.done():
                pending.future.set_exception(
                    ChannelClosedError(f"{reason}: {pending.method} (id {request_id})")
                )

    # Requests

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        retries: int | None = None,
    ) -> Any:
        """Send one request and wait for its result.

        Retryable transport failures are attempted again after a fixed delay,
        at most ``retries`` times. Timeouts and device errors are not retried.
        """
        retries_left = self._config.retries if retries is None else retries
        while True:
            try:
                return await self._call_once(method, params or {})
            except ShellyError as exc:
                if not exc.retryable or retries_left <= 0:
                    raise
                retries_left -= 1
                self._log.debug(
                    "%s failed (%s), retrying in %.1fs",
                    method,
                    exc.kind.value,
                    self._config.retry_delay,
                )
                await asyncio.sleep(self._config.retry_delay)

    async def _call_once(self, method: str, params: dict[str, Any]) -> Any:
        if not self.connected:
            await self.connect()
        ws = self._ws
        if ws is None:
            raise ShellyError("Channel is not connected", ErrorKind.NOT_CONNECTED)

        request_id = self._next_id
        self._next_id += 1
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _PendingRequest(method, future, self._generation)

        message = {
            "jsonrpc": "2.0",
            "id": request_id,
            "src": self.client_id,
            "method": method,
            "params": params,
        }
        try:
            payload = json.dumps(message)
            if self._debug:
                self._log.debug("Sending message: %s", payload)
            await ws.send_str(payload)
        except (aiohttp.ClientError, ConnectionError, OSError) as exc:
            self._pending.pop(request_id, None)
            raise connection_error_from(exc) from exc

        try:
            return await asyncio.wait_for(future, timeout=self._config.request_timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(
                f"REQUEST_TIMEOUT: {method} (id {request_id})"
            ) from None
        finally:
            self._pending.pop(request_id, None)

    # Inbound

    async def _read_loop(
        self, ws: aiohttp.ClientWebSocketResponse, generation: int
    ) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._dispatch(msg.data, generation)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._log.debug("Socket error: %s", ws.exception())
                    break
        finally:
            if generation == self._generation:
                self._connection_lost(generation)
                await self._close_socket(ws)

    async def _dispatch(self, data: str, generation: int) -> None:
        try:
            message = json.loads(data)
        except ValueError:
            self._log.warning("Dropping malformed message: %.200s", data)
            return
        if not isinstance(message, dict):
            return
        if self._debug:
            self._log.debug("Received message: %s", data)

        try:
            if message.get("method") in NOTIFICATION_METHODS:
                await self._handle_notification(message)
            elif message.get("id") is not None:
                self._handle_response(message, generation)
        except (AttributeError, TypeError, KeyError, ValueError) as exc:
            self._log.warning("Dropping malformed message (%s): %.200s", exc, data)

    def _handle_response(self, message: dict[str, Any], generation: int) -> None:
        request_id = message["id"]
        pending = self._pending.get(request_id)
        if pending is None or pending.generation != generation:
            self._log.debug("Ignoring response for unknown request id %s", request_id)
            return
        del self._pending[request_id]
        if pending.future.done():
            return

        error = message.get("error")
        if error is not None:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            pending.future.set_exception(
                RpcError(error.get("code", -1), error.get("message", ""))
            )
        else:
            pending.future.set_result(message.get("result", {}))

    async def _handle_notification(self, message: dict[str, Any]) -> None:
        dst = message.get("dst")
        if dst and dst != self.client_id:
            return

        handler = self._handler
        if handler is None:
            return
        envelope = parse_notification(message)
        try:
            result = handler(envelope)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self._log.exception("Error in notification handler")

    # Notification handler registration

    def set_notification_handler(self, handler: NotificationHandler) -> None:
        self._handler = handler

    def remove_notification_handler(self, handler: NotificationHandler) -> None:
        if self._handler == handler:
            self._handler = None

    # Device methods

    async def get_device_info(self) -> dict[str, Any]:
        return await self.call("Shelly.GetDeviceInfo")

    async def get_status(self) -> dict[str, Any]:
        return await self.call("Shelly.GetStatus")

    async def get_switch_status(self, channel: int = 0) -> dict[str, Any]:
        return await self.call("Switch.GetStatus", {"id": channel})

    async def switch_set(self, on: bool, channel: int = 0) -> dict[str, Any]:
        return await self.call("Switch.Set", {"id": channel, "on": on})

    async def get_cover_status(self, channel: int = 0) -> dict[str, Any]:
        return await self.call("Cover.GetStatus", {"id": channel})

    async def cover_go_to_position(self, pos: int, channel: int = 0) -> dict[str, Any]:
        return await self.call("Cover.GoToPosition", {"id": channel, "pos": pos})

    async def cover_open(self, channel: int = 0) -> dict[str, Any]:
        return await self.call("Cover.Open", {"id": channel})

    async def cover_close(self, channel: int = 0) -> dict[str, Any]:
        return await self.call("Cover.Close", {"id": channel})

    async def cover_stop(self, channel: int = 0) -> dict[str, Any]:
        return await self.call("Cover.Stop", {"id": channel})
