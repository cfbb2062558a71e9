# healthtrack/radio/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

from healthtrack.model.peripheral import GattService, PeripheralDescriptor

# (error, descriptor): exactly one of the two is set.
ScanEventCallback = Callable[[Optional[Exception], Optional[PeripheralDescriptor]], None]
# (error, payload): payload is raw bytes or the base64 wire string.
NotifyCallback = Callable[[Optional[Exception], Optional[object]], None]


class RadioSubscription(ABC):
    """A live notification registration on one characteristic."""

    @abstractmethod
    async def remove(self) -> None: ...


class RadioPeripheral(ABC):
    """
    A connected peripheral as seen by the radio layer.

    Contract:
      - discover_services() performs (or returns the cached result of) full
        service + characteristic discovery.
      - monitor() enables notifications; callback runs on the event loop for
        each notification or per-subscription error.
    """

    id: str
    name: Optional[str]

    @abstractmethod
    async def discover_services(self) -> List[GattService]: ...

    @abstractmethod
    async def monitor(self, char_uuid: str, callback: NotifyCallback) -> RadioSubscription: ...


class Radio(ABC):
    """
    Abstract BLE adapter handle. Process-wide; outlives any one session.

    Contract:
      - start_scan() reports each advertisement (or a scan error) via on_event.
      - stop_scan() is safe with no scan running.
      - connect() returns a RadioPeripheral; it may reuse an existing link.
      - connected_peripherals() lists links already up that expose any of
        the given service UUIDs.
    """

    @abstractmethod
    async def start_scan(self, on_event: ScanEventCallback) -> None: ...

    @abstractmethod
    async def stop_scan(self) -> None: ...

    @abstractmethod
    async def connect(self, peripheral_id: str, *, timeout_s: float = 10.0) -> RadioPeripheral: ...

    @abstractmethod
    async def cancel_connection(self, peripheral_id: str) -> None: ...

    @abstractmethod
    async def is_connected(self, peripheral_id: str) -> bool: ...

    @abstractmethod
    async def connected_peripherals(self, service_uuids: Sequence[str]) -> List[PeripheralDescriptor]: ...
