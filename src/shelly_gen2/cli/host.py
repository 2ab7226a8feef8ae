from __future__ import annotations

from datetime import datetime
from typing import Any

from rich.console import Console

from shelly_gen2.core.session import CapabilityListener


class ConsoleHost:
    """Device record that prints capability changes instead of storing them."""

    def __init__(self, name: str, console: Console, quiet: bool = False) -> None:
        self.name = name
        self.values: dict[str, Any] = {}
        self.listeners: dict[str, CapabilityListener] = {}
        self._console = console
        self._quiet = quiet

    async def set_available(self) -> None:
        if not self._quiet:
            self._console.print(f"[green]{self.name} available[/green]")

    async def set_capability_value(self, capability: str, value: Any) -> None:
        changed = self.values.get(capability, object()) != value
        self.values[capability] = value
        if changed and not self._quiet:
            timestamp = datetime.now().strftime("%H:%M:%S")
            self._console.print(
                f"[dim]{timestamp}[/dim] [cyan]{capability}[/cyan] = {value}"
            )

    def register_capability_listener(
        self, capability: str, listener: CapabilityListener
    ) -> None:
        self.listeners[capability] = listener

    async def trigger(self, capability: str, value: Any) -> Any:
        """Act like the platform UI changing a capability."""
        return await self.listeners[capability](value)
