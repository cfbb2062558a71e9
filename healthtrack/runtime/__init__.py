from .state import SessionState, SessionSnapshot
from .teardown import TeardownReport, TeardownOutcome
from .session import ConnectionSession
from .scanner import DeviceScanner
from .reconnect import ReconnectPolicy
from .dispatcher import TelemetryDispatcher, TelemetryStream

__all__ = ["SessionState",
           "SessionSnapshot",
           "TeardownReport",
           "TeardownOutcome",
           "ConnectionSession",
           "DeviceScanner",
           "ReconnectPolicy",
           "TelemetryDispatcher",
           "TelemetryStream"]
