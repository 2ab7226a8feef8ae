from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from shelly_gen2.config import RpcConfig, get_settings
from shelly_gen2.core import MockShellyDevice


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("SHELLY_GEN2_CONFIG", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def rpc_config_for() -> Callable[..., RpcConfig]:
    """Short timeouts so failure paths finish quickly."""

    def _config(port: int, **overrides: Any) -> RpcConfig:
        values: dict[str, Any] = {
            "port": port,
            "request_timeout": 1.0,
            "connect_timeout": 1.0,
            "retry_delay": 0.01,
        }
        values.update(overrides)
        return RpcConfig(**values)

    return _config


@pytest.fixture
def with_mock_device() -> Callable[..., Any]:
    """Run ``scenario(device)`` against a mock device on an ephemeral port."""

    def _run(
        scenario: Callable[[MockShellyDevice], Awaitable[Any]], **device_kwargs: Any
    ) -> Any:
        async def _main() -> Any:
            device_kwargs.setdefault("travel_time", 0.05)
            device = MockShellyDevice(host="127.0.0.1", port=0, **device_kwargs)
            await device.start()
            try:
                return await scenario(device)
            finally:
                await device.stop()

        return asyncio.run(_main())

    return _run
