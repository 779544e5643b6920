"""Shared types passed between the bus session, discovery and the band client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Union


@dataclass(eq=False)
class DiscoveredDevice:
    """A BlueZ device object, identified by its D-Bus path."""

    path: str
    address: str
    services: FrozenSet[str] = field(default_factory=frozenset)
    rssi: Optional[int] = None
    connected: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DiscoveredDevice):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def advertises(self, service_uuid: str) -> bool:
        return service_uuid.lower() in self.services

    def apply(self, event: "PropertyEvent") -> None:
        """Update in place from a property-change event."""
        if isinstance(event, RssiChanged):
            self.rssi = event.rssi
        elif isinstance(event, ConnectedChanged):
            self.connected = event.connected


@dataclass(frozen=True)
class DeviceAdded:
    device: DiscoveredDevice


@dataclass(frozen=True)
class DeviceRemoved:
    path: str


@dataclass(frozen=True)
class RssiChanged:
    rssi: int


@dataclass(frozen=True)
class ConnectedChanged:
    connected: bool


DeviceEvent = Union[DeviceAdded, DeviceRemoved]
PropertyEvent = Union[RssiChanged, ConnectedChanged]

__all__ = [
    "DiscoveredDevice",
    "DeviceAdded",
    "DeviceRemoved",
    "RssiChanged",
    "ConnectedChanged",
    "DeviceEvent",
    "PropertyEvent",
]
