"""Batched, time-bounded discovery of Shelly Gen2 devices on the local /24."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass

import aiohttp

from shelly_gen2.config import RpcConfig, ScanningConfig
from shelly_gen2.models import DeviceDescriptor

from .probe import probe_device

logger = logging.getLogger(__name__)

ProbeFunc = Callable[..., Awaitable[list[DeviceDescriptor] | None]]


@dataclass(frozen=True)
class ScanProgress:
    batch: int
    batches: int
    scanned: int
    total: int
    found: int


def network_prefix(local_address: str) -> str:
    """Return the first three octets of an IPv4 address (``192.168.1``)."""
    address = ipaddress.IPv4Address(local_address.strip())
    network = ipaddress.IPv4Network(f"{address}/24", strict=False)
    return str(network.network_address).rsplit(".", 1)[0]


def host_addresses(prefix: str) -> list[str]:
    return [f"{prefix}.{host}" for host in range(1, 255)]


def batched(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def detect_local_address() -> str:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            local_ip = sock.getsockname()[0]
        logger.debug("Detected local address: %s", local_ip)
        return local_ip
    except OSError as exc:
        raise RuntimeError("Could not detect local address") from exc


class NetworkScanner:
    """Probe every host of the local /24 in fixed-size concurrent batches.

    A batch is fully settled before the next one starts. The overall budget
    is checked between batches; once spent, whatever has been found so far
    is returned.
    """

    def __init__(
        self,
        config: ScanningConfig | None = None,
        rpc_config: RpcConfig | None = None,
        probe: ProbeFunc = probe_device,
    ) -> None:
        self._config = config or ScanningConfig()
        self._rpc_config = rpc_config or RpcConfig()
        self._probe = probe
        self._stragglers: set[asyncio.Task[list[DeviceDescriptor] | None]] = set()

    async def discover(
        self,
        local_address: str | None = None,
        on_progress: Callable[[ScanProgress], None] | None = None,
    ) -> list[DeviceDescriptor]:
        try:
            address = local_address or self._config.local_address
            if address is None:
                address = detect_local_address()
            prefix = network_prefix(address)
        except (RuntimeError, ValueError) as exc:
            logger.error("Discovery failed: %s", exc)
            return []

        addresses = host_addresses(prefix)
        logger.info("Starting network scan on %s.0/24", prefix)

        async with aiohttp.ClientSession() as session:
            devices, complete = await self._scan(
                addresses, session, on_progress=on_progress
            )

        if complete:
            logger.info("Network scan complete, found %d devices", len(devices))
        else:
            logger.info(
                "Network scan partially complete, found %d devices", len(devices)
            )
        return devices

    async def _scan(
        self,
        addresses: list[str],
        session: aiohttp.ClientSession,
        on_progress: Callable[[ScanProgress], None] | None = None,
    ) -> tuple[list[DeviceDescriptor], bool]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.budget
        batch_size = self._config.batch_size
        batches = -(-len(addresses) // batch_size)
        devices: list[DeviceDescriptor] = []

        for index, batch in enumerate(batched(addresses, batch_size)):
            if loop.time() >= deadline:
                logger.info(
                    "Discovery budget spent, processed %d addresses",
                    index * batch_size,
                )
                return devices, False

            results = await asyncio.gather(
                *(self._try_device(address, session) for address in batch),
                return_exceptions=True,
            )
            for address, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.debug("Probe of %s failed: %r", address, result)
                elif result:
                    devices.extend(result)

            scanned = index * batch_size + len(batch)
            logger.debug(
                "Scanned %d/%d addresses, found %d devices",
                scanned,
                len(addresses),
                len(devices),
            )
            if on_progress is not None:
                on_progress(
                    ScanProgress(
                        batch=index + 1,
                        batches=batches,
                        scanned=scanned,
                        total=len(addresses),
                        found=len(devices),
                    )
                )

            await asyncio.sleep(self._config.batch_delay)

        return devices, True

    async def _try_device(
        self, address: str, session: aiohttp.ClientSession
    ) -> list[DeviceDescriptor] | None:
        task = asyncio.create_task(
            self._probe(address, self._rpc_config, session=session)
        )
        done, _ = await asyncio.wait({task}, timeout=self._config.probe_timeout)
        if not done:
            # Cancelled but not awaited, so a slow teardown cannot hold the batch
            task.cancel()
            self._stragglers.add(task)
            task.add_done_callback(self._forget)
            if self._config.debug:
                logger.debug("Device discovery: timeout for %s", address)
            return None
        return task.result()

    def _forget(self, task: asyncio.Task[list[DeviceDescriptor] | None]) -> None:
        self._stragglers.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Late probe failure: %r", task.exception())
