from .base import Radio, RadioPeripheral, RadioSubscription
from .errors import RadioError, RadioScanError, RadioConnectError, RadioIOError

__all__ = ["Radio",
           "RadioPeripheral",
           "RadioSubscription",
           "RadioError",
           "RadioScanError",
           "RadioConnectError",
           "RadioIOError"]
