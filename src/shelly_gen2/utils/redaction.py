from __future__ import annotations

import string
from dataclasses import dataclass, field


@dataclass
class Redactor:
    enabled: bool = True
    _id_map: dict[str, int] = field(default_factory=dict)
    _id_counter: int = 0

    def redact_ip(self, ip: str) -> str:
        if not self.enabled:
            return ip
        parts = ip.split(".")
        if len(parts) == 4 and all(part.isdigit() for part in parts):
            return f"x.x.x.{parts[3]}"
        return ip

    def redact_device_id(self, device_id: str) -> str:
        """Mask the MAC suffix of ids like ``shellypro2pm-a8032ab1c2d3``."""
        if not self.enabled:
            return device_id
        model, sep, mac = device_id.rpartition("-")
        if not sep or len(mac) != 12 or not all(ch in string.hexdigits for ch in mac):
            return device_id
        counter = self._id_map.get(device_id)
        if counter is None:
            self._id_counter += 1
            counter = self._id_counter
            self._id_map[device_id] = counter
        return f"{model}-{mac[:6]}xxxx{counter:02d}"

    def redact_key(self, key: str) -> str:
        """Redact the device part of ``{device_id}_{component}:{channel}``."""
        device_id, sep, rest = key.rpartition("_")
        if not sep:
            return self.redact_device_id(key)
        return f"{self.redact_device_id(device_id)}_{rest}"
