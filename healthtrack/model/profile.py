# healthtrack/model/profile.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Metric(str, Enum):
    """Characteristic streams exposed by the health service."""

    HEART_RATE = "heart_rate"
    SPO2 = "spo2"
    STATUS = "status"

    @property
    def is_numeric(self) -> bool:
        return self is not Metric.STATUS


def normalize_uuid(uuid: str) -> str:
    return str(uuid).strip().lower()


@dataclass(frozen=True)
class GattProfile:
    """
    Static model of the peripheral's GATT layout.

    Contains only identifiers, no runtime state.

    Attributes:
        target_name: Case-insensitive substring matched against advertised names.
        service_uuid: Full 128-bit UUID of the health service.
        service_uuid_prefix: Fallback match when a stack reports the service
            under a different base UUID.
        characteristics: Metric -> characteristic UUID.
    """

    target_name: str
    service_uuid: str
    service_uuid_prefix: str
    characteristics: Dict[Metric, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "service_uuid", normalize_uuid(self.service_uuid))
        object.__setattr__(self, "service_uuid_prefix", normalize_uuid(self.service_uuid_prefix))
        object.__setattr__(
            self,
            "characteristics",
            {Metric(k): normalize_uuid(v) for k, v in self.characteristics.items()},
        )

    def characteristic_uuid(self, metric: Metric) -> Optional[str]:
        return self.characteristics.get(metric)

    def matches_service(self, uuid: str, *, allow_prefix: bool = True) -> bool:
        u = normalize_uuid(uuid)
        if u == self.service_uuid:
            return True
        return bool(allow_prefix and self.service_uuid_prefix and u.startswith(self.service_uuid_prefix))

    def as_dict(self) -> dict:
        return {
            "target_name": self.target_name,
            "service": {
                "uuid": self.service_uuid,
                "uuid_prefix": self.service_uuid_prefix,
            },
            "characteristics": {m.value: u for m, u in self.characteristics.items()},
        }


DEFAULT_PROFILE = GattProfile(
    target_name="HealthTR",
    service_uuid="12345678-1234-1234-1234-123456789abc",
    service_uuid_prefix="12345678",
    characteristics={
        Metric.HEART_RATE: "87654321-4321-4321-4321-cba987654321",
        Metric.SPO2: "11111111-2222-3333-4444-555555555555",
        Metric.STATUS: "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee",
    },
)
