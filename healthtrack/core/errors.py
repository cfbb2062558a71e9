# healthtrack/core/errors.py
from __future__ import annotations


class HealthTrackError(Exception):
    """
    Base class for all expected operational errors in HealthTrack.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, diagnostics, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration / setup errors (no radio access yet)
# ---------------------------------------------------------------------------

class ProfileConfigError(HealthTrackError):
    """
    GATT profile metadata is missing or malformed.

    Examples:
      - profile.yml not found
      - missing service / characteristic UUID
      - UUID that is not a 128-bit UUID string
    """
    code = "profile_config_error"


class InvalidTransitionError(HealthTrackError):
    """
    A session state transition was requested that the state machine forbids.
    """
    code = "invalid_transition"


# ---------------------------------------------------------------------------
# Discovery errors
# ---------------------------------------------------------------------------

class PermissionDeniedError(HealthTrackError):
    """
    OS-level radio/location access was not granted. Scanning never starts.
    """
    code = "permission_denied"


class ScanTimeoutError(HealthTrackError):
    """
    No peripheral matching the target name was seen before the scan deadline.
    Not fatal, the caller may retry.
    """
    code = "scan_timeout"


# ---------------------------------------------------------------------------
# Connection lifecycle errors
# ---------------------------------------------------------------------------

class DeviceConnectError(HealthTrackError):
    """
    Radio-level failure while connecting or discovering services.

    Examples:
      - peripheral out of range
      - connection attempt timed out
      - adapter powered off
    """
    code = "device_connect_error"


class ServiceNotFoundError(HealthTrackError):
    """
    The connected peripheral does not expose the health service.
    """
    code = "service_not_found"


class CharacteristicMissingError(HealthTrackError):
    """
    One characteristic of the health service is absent.
    Non-fatal: that stream is simply not subscribed.
    """
    code = "characteristic_missing"


# ---------------------------------------------------------------------------
# Data path errors
# ---------------------------------------------------------------------------

class NotificationError(HealthTrackError):
    """
    An error surfaced on a live characteristic subscription.
    Logged and counted; the stream is left in place.
    """
    code = "notification_error"


class PayloadDecodeError(HealthTrackError):
    """
    A notification payload could not be decoded (e.g. invalid base64).
    """
    code = "payload_decode_error"


class TeardownError(HealthTrackError):
    """
    Releasing a subscription or cancelling a connection failed.
    Recorded in a TeardownReport, never raised out of a teardown path.
    """
    code = "teardown_error"
