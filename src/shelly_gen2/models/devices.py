from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ComponentKind = Literal["switch", "cover"]


class DeviceDescriptor(BaseModel):
    """One pairable component channel found during discovery."""

    model_config = {"frozen": True, "extra": "forbid"}

    device_id: str
    component: ComponentKind
    channel: int = Field(ge=0)
    name: str
    address: str
    profile: str
    icon: str
    app: str = ""

    @property
    def id(self) -> str:
        return f"{self.device_id}_{self.component}:{self.channel}"


class PairingData(BaseModel):
    model_config = {"extra": "forbid"}

    id: str
    ip: str


class PairingSettings(BaseModel):
    model_config = {"extra": "forbid"}

    ip: str
    profile: str


class PairingEntry(BaseModel):
    """Shape handed back to the host when listing devices to pair."""

    model_config = {"extra": "forbid"}

    name: str
    data: PairingData
    settings: PairingSettings
    icon: str
    capabilities: list[str]


class PairingAddress(BaseModel):
    model_config = {"extra": "forbid"}

    ip: str


class ManualPairingEntry(BaseModel):
    """Device added by address alone; its profile is read on first connect."""

    model_config = {"extra": "forbid"}

    name: str
    data: PairingAddress
    settings: PairingAddress
