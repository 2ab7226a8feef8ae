"""Error taxonomy shared by the RPC channel, the scanner and device sessions."""

from __future__ import annotations

import asyncio
import errno
from enum import Enum

import aiohttp


class ErrorKind(str, Enum):
    CONNECTION_FAILED = "CONNECTION_FAILED"
    HOST_UNREACHABLE = "EHOSTUNREACH"
    CONNECTION_TIMEOUT = "ETIMEDOUT"
    CONNECTION_REFUSED = "ECONNREFUSED"
    NOT_SHELLY_DEVICE = "NOT_SHELLY_DEVICE"
    NOT_CONNECTED = "NOT_CONNECTED"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    CHANNEL_CLOSED = "CHANNEL_CLOSED"
    RPC_ERROR = "RPC_ERROR"


RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.HOST_UNREACHABLE,
        ErrorKind.CONNECTION_TIMEOUT,
        ErrorKind.CONNECTION_REFUSED,
    }
)

_ERRNO_KINDS = {
    errno.EHOSTUNREACH: ErrorKind.HOST_UNREACHABLE,
    errno.ETIMEDOUT: ErrorKind.CONNECTION_TIMEOUT,
    errno.ECONNREFUSED: ErrorKind.CONNECTION_REFUSED,
}


class ShellyError(Exception):
    """Base error; ``kind`` is the normalized error code."""

    kind: ErrorKind = ErrorKind.CONNECTION_FAILED

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class ConnectionFailedError(ShellyError):
    """The transport could not be opened or broke while sending."""


class NotShellyDeviceError(ShellyError):
    kind = ErrorKind.NOT_SHELLY_DEVICE


class RequestTimeoutError(ShellyError):
    kind = ErrorKind.REQUEST_TIMEOUT


class ChannelClosedError(ShellyError):
    kind = ErrorKind.CHANNEL_CLOSED


class RpcError(ShellyError):
    """Error response reported by the device itself."""

    kind = ErrorKind.RPC_ERROR

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC Error {code}: {message}")
        self.code = code
        self.message = message


class DeviceNotFoundError(Exception):
    """Raised by a host when the device record behind a session no longer exists."""


def connection_error_from(exc: BaseException) -> ShellyError:
    """Map a transport exception onto the normalized taxonomy."""
    if isinstance(exc, ShellyError):
        return exc
    if isinstance(exc, aiohttp.WSServerHandshakeError):
        return NotShellyDeviceError(
            f"Device discovery: not a Shelly device ({exc.status})"
        )
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ConnectionFailedError(
            "Device discovery: connection timed out", ErrorKind.CONNECTION_TIMEOUT
        )

    os_error: BaseException | None = exc
    if isinstance(exc, aiohttp.ClientConnectorError):
        os_error = exc.os_error
    if isinstance(os_error, ConnectionRefusedError):
        return ConnectionFailedError(
            "Device discovery: connection failed", ErrorKind.CONNECTION_REFUSED
        )
    if isinstance(os_error, OSError) and os_error.errno in _ERRNO_KINDS:
        return ConnectionFailedError(
            "Device discovery: connection failed", _ERRNO_KINDS[os_error.errno]
        )
    return ConnectionFailedError(
        f"Device discovery: connection failed ({exc})", ErrorKind.CONNECTION_FAILED
    )
