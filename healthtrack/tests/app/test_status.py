from __future__ import annotations

import pytest

from healthtrack.app.status import assess_vitals, describe_status


@pytest.mark.parametrize(
    "token,expected",
    [
        ("NO_FINGER", "Place finger on sensor"),
        ("OK", "Monitoring active"),
        ("SENSOR_ERROR", "Device error"),
        ("sensor_error", "Device error"),
        ("Init Failed", "Device error"),
        ("init_failed", "Device error"),
        ("SOMETHING_NEW", None),
        ("", None),
        (None, None),
    ],
)
def test_describe_status(token, expected):
    assert describe_status(token) == expected


@pytest.mark.parametrize(
    "hr,spo2,expected",
    [
        (None, None, "Monitoring"),
        (72, 98, "Normal"),
        (72, 91, "Low SpO2"),
        (130, 98, "High HR"),
        (45, 98, "Low HR"),
        (130, 90, "Low SpO2"),
        ("--", None, "Monitoring"),
    ],
)
def test_assess_vitals(hr, spo2, expected):
    assert assess_vitals(hr, spo2) == expected
