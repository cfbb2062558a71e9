# healthtrack/radio/errors.py
from __future__ import annotations

class RadioError(Exception):
    """Base class for radio-layer failures."""

class RadioScanError(RadioError):
    pass

class RadioConnectError(RadioError):
    pass

class RadioIOError(RadioError):
    pass
