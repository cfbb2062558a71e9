# healthtrack/model/peripheral.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

UNKNOWN_DEVICE_LABEL = "Unknown Device"


@dataclass(frozen=True)
class PeripheralDescriptor:
    """
    A peripheral seen by discovery (or reported as already connected).

    `id` is the radio's stable identifier (MAC address on Linux/Windows,
    a CoreBluetooth UUID on macOS).
    """
    id: str
    name: Optional[str] = None
    rssi: Optional[int] = None
    connectable: bool = True

    @property
    def display_name(self) -> str:
        return self.name or UNKNOWN_DEVICE_LABEL

    def with_rssi(self, rssi: Optional[int]) -> "PeripheralDescriptor":
        return replace(self, rssi=rssi)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rssi": self.rssi,
            "connectable": self.connectable,
        }


@dataclass(frozen=True)
class GattService:
    """A discovered service and the UUIDs of its characteristics."""
    uuid: str
    characteristics: Tuple[str, ...] = ()


def matches_target(descriptor: PeripheralDescriptor, token: str) -> bool:
    """Case-insensitive substring match of `token` against the advertised name."""
    if not token:
        return False
    return token.lower() in descriptor.display_name.lower()
