from .profile import GattProfile, Metric, DEFAULT_PROFILE
from .peripheral import PeripheralDescriptor, GattService, matches_target
from .telemetry import TelemetrySample, StatusCode
from .loader import ProfileLoader

__all__ = ["GattProfile",
           "Metric",
           "DEFAULT_PROFILE",
           "PeripheralDescriptor",
           "GattService",
           "matches_target",
           "TelemetrySample",
           "StatusCode",
           "ProfileLoader"]
