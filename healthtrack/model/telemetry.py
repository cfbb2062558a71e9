# healthtrack/model/telemetry.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

# Opaque token from the status characteristic (e.g. "NO_FINGER", "OK").
StatusCode = str

# Numeric metrics decode to int; text that has no leading integer is kept as is.
MetricValue = Union[int, str]


@dataclass(frozen=True)
class TelemetrySample:
    """
    One decoded measurement.

    A sample carries only the metric that changed; the other field is None.
    The value is normally an int, or the raw text when the peripheral sent
    something that is not a number.
    timestamp: host capture time, epoch seconds.
    """
    timestamp: float
    heart_rate: Optional[MetricValue] = None
    spo2: Optional[MetricValue] = None

    def as_dict(self) -> dict:
        d: dict = {}
        if self.heart_rate is not None:
            d["heart_rate"] = self.heart_rate
        if self.spo2 is not None:
            d["spo2"] = self.spo2
        d["timestamp"] = self.timestamp
        return d
