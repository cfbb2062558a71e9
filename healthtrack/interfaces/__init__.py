from .permission_gate import PermissionGate
from .telemetry_sink import TelemetrySink

__all__ = ["PermissionGate", "TelemetrySink"]
