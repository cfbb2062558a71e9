# healthtrack/app/config.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class HealthTrackConfig:
    profile_path: Optional[str] = None
    scan_timeout_s: float = 10.0
    connect_timeout_s: float = 10.0
    max_notification_errors: int = 5  # 0 = log and ignore forever
    adapter: Optional[str] = None     # e.g. "hci0" (BlueZ only)
