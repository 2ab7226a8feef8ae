"""Tests for the batched network scanner; probes are faked."""

from __future__ import annotations

import asyncio
import time

import pytest

from shelly_gen2.config import ScanningConfig
from shelly_gen2.core import NetworkScanner
from shelly_gen2.core.scanner import batched, host_addresses, network_prefix
from shelly_gen2.models import DeviceDescriptor


def _descriptor(address: str) -> DeviceDescriptor:
    return DeviceDescriptor(
        device_id="shellyplus1-aabbccddeeff",
        component="switch",
        channel=0,
        name=f"Shelly Plus1 ({address}) switch 1",
        address=address,
        profile="switch",
        icon="/images/icon.svg",
    )


def _config(**overrides) -> ScanningConfig:
    values = {"budget": 30.0, "batch_size": 20, "probe_timeout": 1.0, "batch_delay": 0}
    values.update(overrides)
    return ScanningConfig(**values)


def test_network_prefix():
    assert network_prefix("192.168.1.20") == "192.168.1"
    assert network_prefix(" 10.0.0.1 ") == "10.0.0"
    with pytest.raises(ValueError):
        network_prefix("not-an-address")


def test_host_addresses_skip_network_and_broadcast():
    addresses = host_addresses("192.168.1")
    assert len(addresses) == 254
    assert addresses[0] == "192.168.1.1"
    assert addresses[-1] == "192.168.1.254"


def test_batched_sizes():
    sizes = [len(batch) for batch in batched(host_addresses("10.0.0"), 20)]
    assert sizes == [20] * 12 + [14]


def test_discover_probes_every_host_in_thirteen_batches():
    probed = []
    updates = []

    async def fake_probe(address, config, *, session):
        probed.append(address)
        if address == "192.168.1.42":
            return [_descriptor(address)]
        return None

    scanner = NetworkScanner(_config(), probe=fake_probe)
    devices = asyncio.run(scanner.discover("192.168.1.20", updates.append))

    assert len(probed) == 254
    assert [d.address for d in devices] == ["192.168.1.42"]
    assert len(updates) == 13
    assert updates[-1].batch == 13
    assert updates[-1].batches == 13
    assert updates[-1].scanned == 254
    assert updates[-1].found == 1


def test_batches_do_not_overlap():
    events = []

    async def fake_probe(address, config, *, session):
        host = int(address.rsplit(".", 1)[1])
        events.append(("start", host))
        await asyncio.sleep(0.001 * (host % 5))
        events.append(("end", host))
        return None

    scanner = NetworkScanner(_config(batch_size=50), probe=fake_probe)
    asyncio.run(scanner.discover("10.0.0.1"))

    batch_of = {host: (host - 1) // 50 for host in range(1, 255)}
    settled: set[int] = set()
    for kind, host in events:
        batch = batch_of[host]
        if kind == "start":
            previous = {h for h, b in batch_of.items() if b == batch - 1}
            assert previous <= settled
        else:
            settled.add(host)


def test_hanging_probe_is_abandoned_after_probe_timeout():
    async def fake_probe(address, config, *, session):
        if address.endswith(".7"):
            await asyncio.sleep(30)
        return [_descriptor(address)] if address.endswith(".9") else None

    scanner = NetworkScanner(
        _config(batch_size=127, probe_timeout=0.1), probe=fake_probe
    )
    started = time.monotonic()
    devices = asyncio.run(scanner.discover("10.0.0.1"))
    elapsed = time.monotonic() - started

    assert [d.address for d in devices] == ["10.0.0.9"]
    assert elapsed < 5


def test_budget_returns_partial_results():
    updates = []

    async def fake_probe(address, config, *, session):
        await asyncio.sleep(0.05)
        return [_descriptor(address)] if address.endswith(".1") else None

    scanner = NetworkScanner(_config(budget=0.12), probe=fake_probe)
    devices = asyncio.run(scanner.discover("10.0.0.1", updates.append))

    assert 1 <= len(updates) < 13
    assert [d.address for d in devices] == ["10.0.0.1"]


def test_failing_probe_does_not_abort_batch():
    async def fake_probe(address, config, *, session):
        if address.endswith(".3"):
            raise RuntimeError("boom")
        return [_descriptor(address)] if address.endswith(".4") else None

    scanner = NetworkScanner(_config(), probe=fake_probe)
    devices = asyncio.run(scanner.discover("10.0.0.1"))

    assert [d.address for d in devices] == ["10.0.0.4"]


def test_invalid_local_address_yields_empty_result():
    async def fake_probe(address, config, *, session):
        raise AssertionError("no probe expected")

    scanner = NetworkScanner(_config(), probe=fake_probe)
    assert asyncio.run(scanner.discover("300.1.2.3")) == []


def test_configured_local_address_is_used():
    probed = []

    async def fake_probe(address, config, *, session):
        probed.append(address)
        return None

    scanner = NetworkScanner(_config(local_address="172.16.5.9"), probe=fake_probe)
    asyncio.run(scanner.discover())

    assert probed[0] == "172.16.5.1"
