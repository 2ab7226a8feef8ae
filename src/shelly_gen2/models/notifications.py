from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

NOTIFY_STATUS = "NotifyStatus"
NOTIFY_EVENT = "NotifyEvent"
NOTIFICATION_METHODS = frozenset({NOTIFY_STATUS, NOTIFY_EVENT})


@dataclass(frozen=True)
class NotificationEnvelope:
    """A device push reshaped into ``{component: {index: fields}}``."""

    method: str
    timestamp: float | None
    updates: dict[str, dict[int, dict[str, Any]]] = field(default_factory=dict)
    events: list[dict[str, Any]] = field(default_factory=list)

    def component(self, kind: str, index: int) -> dict[str, Any] | None:
        return self.updates.get(kind, {}).get(index)

    def events_for(self, kind: str, index: int) -> list[dict[str, Any]]:
        key = f"{kind}:{index}"
        return [event for event in self.events if event.get("component") == key]


def split_component_key(key: str) -> tuple[str, int] | None:
    """Split ``"switch:1"`` into ``("switch", 1)``; other keys give ``None``."""
    component, sep, index = key.partition(":")
    if not sep or not index.isdigit():
        return None
    return component, int(index)


def parse_notification(message: dict[str, Any]) -> NotificationEnvelope:
    """Reshape a push; raises ``ValueError`` when ``params`` is not an object."""
    params = message.get("params") or {}
    if not isinstance(params, dict):
        raise ValueError(f"Notification params is not an object: {params!r:.40}")
    timestamp = params.get("ts")
    updates: dict[str, dict[int, dict[str, Any]]] = {}
    for key, value in params.items():
        if key == "ts" or not isinstance(value, dict):
            continue
        parsed = split_component_key(key)
        if parsed is None:
            continue
        component, index = parsed
        updates.setdefault(component, {})[index] = value

    events = params.get("events")
    if not isinstance(events, list):
        events = []

    return NotificationEnvelope(
        method=message.get("method", ""),
        timestamp=timestamp if isinstance(timestamp, (int, float)) else None,
        updates=updates,
        events=[event for event in events if isinstance(event, dict)],
    )
