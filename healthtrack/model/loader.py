# healthtrack/model/loader.py
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from healthtrack.core.errors import ProfileConfigError
from .profile import GattProfile, Metric

PROFILE_FILENAME = "profile.yml"

_UUID128 = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


def package_metadata_dir() -> Path:
    # <package>/metadata, based on this file's location
    return Path(__file__).resolve().parents[1] / "metadata"


def default_profile_path() -> Path:
    return package_metadata_dir() / PROFILE_FILENAME


class ProfileLoader:
    """
    Loads the GATT profile from YAML into a GattProfile.

    Expected layout:

        target_name: HealthTR
        service:
          uuid: 12345678-1234-1234-1234-123456789abc
          uuid_prefix: "12345678"
        characteristics:
          heart_rate: ...
          spo2: ...
          status: ...
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else default_profile_path()
        self.profile: Optional[GattProfile] = None

    # ---------------------------------------------------------------------
    # YAML utility
    # ---------------------------------------------------------------------
    def _load_yaml(self) -> dict:
        if not self.path.exists():
            raise ProfileConfigError(
                f"Missing profile file: {self.path}",
                hint="Pass --profile or install the package metadata.",
                details={"path": str(self.path)},
            )
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ProfileConfigError(
                "Profile file is not valid YAML.",
                hint=str(e),
                details={"path": str(self.path)},
            ) from None

        if not isinstance(data, dict):
            raise ProfileConfigError(
                "Profile root must be a mapping.",
                details={"path": str(self.path)},
            )
        return data

    # ---------------------------------------------------------------------
    # Public entry point
    # ---------------------------------------------------------------------
    def load(self) -> GattProfile:
        data = self._load_yaml()
        self.profile = self.from_mapping(data, source=str(self.path))
        return self.profile

    @classmethod
    def from_mapping(cls, data: Dict[str, Any], *, source: str = "<mapping>") -> GattProfile:
        target_name = data.get("target_name")
        if not target_name or not isinstance(target_name, str):
            raise ProfileConfigError(f"{source}: missing 'target_name'")

        service = data.get("service")
        if not isinstance(service, dict):
            raise ProfileConfigError(f"{source}: missing 'service' mapping")

        service_uuid = cls._uuid(service.get("uuid"), f"{source}: service.uuid")
        prefix = str(service.get("uuid_prefix") or service_uuid.split("-")[0]).lower()
        if not service_uuid.startswith(prefix):
            raise ProfileConfigError(
                f"{source}: service.uuid_prefix '{prefix}' is not a prefix of service.uuid",
            )

        chars = data.get("characteristics")
        if not isinstance(chars, dict):
            raise ProfileConfigError(f"{source}: missing 'characteristics' mapping")

        characteristics: Dict[Metric, str] = {}
        for metric in Metric:
            raw = chars.get(metric.value)
            characteristics[metric] = cls._uuid(raw, f"{source}: characteristics.{metric.value}")

        unknown = sorted(set(chars) - {m.value for m in Metric})
        if unknown:
            raise ProfileConfigError(
                f"{source}: unknown characteristics {unknown}",
                hint=f"Valid keys: {[m.value for m in Metric]}",
            )

        return GattProfile(
            target_name=target_name,
            service_uuid=service_uuid,
            service_uuid_prefix=prefix,
            characteristics=characteristics,
        )

    @staticmethod
    def _uuid(value: Any, where: str) -> str:
        if not isinstance(value, str):
            raise ProfileConfigError(f"{where} is missing")
        u = value.strip().lower()
        if not _UUID128.match(u):
            raise ProfileConfigError(f"{where} is not a 128-bit UUID: {value!r}")
        return u
