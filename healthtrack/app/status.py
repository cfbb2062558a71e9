# healthtrack/app/status.py
"""
Consumer-side interpretation of device status tokens and vitals.

The session passes status tokens through untouched; these helpers are what
a display layer uses to turn them into operator text.
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from healthtrack.model.telemetry import StatusCode

STATUS_MESSAGES: Dict[str, str] = {
    "NO_FINGER": "Place finger on sensor",
    "STABILIZING": "Stabilizing reading...",
    "CALCULATING": "Calculating values...",
    "OK": "Monitoring active",
    "WEAK_SIGNAL": "Weak signal - press firmly",
    "POOR_SIGNAL": "Poor signal - check placement",
}

DEVICE_ERROR_MESSAGE = "Device error"
_ERROR_MARKERS = ("error", "failed")

# Normal ranges
HR_MIN = 60
HR_MAX = 100
SPO2_MIN = 95


def describe_status(token: Optional[StatusCode]) -> Optional[str]:
    """Message for a known token; "Device error" for error/failure markers (any case); else None."""
    if not token:
        return None
    msg = STATUS_MESSAGES.get(token)
    if msg is not None:
        return msg
    lowered = token.lower()
    if any(marker in lowered for marker in _ERROR_MARKERS):
        return DEVICE_ERROR_MESSAGE
    return None


def _as_int(value: Union[int, str, None]) -> int:
    # text samples count as absent
    return value if isinstance(value, int) else 0


def assess_vitals(heart_rate: Union[int, str, None], spo2: Union[int, str, None]) -> str:
    hr = _as_int(heart_rate)
    ox = _as_int(spo2)
    if hr == 0 and ox == 0:
        return "Monitoring"

    normal_hr = HR_MIN <= hr <= HR_MAX
    normal_spo2 = ox >= SPO2_MIN

    if normal_hr and normal_spo2:
        return "Normal"
    if not normal_spo2:
        return "Low SpO2"
    return "High HR" if hr > HR_MAX else "Low HR"
