from __future__ import annotations

import base64
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence

import pytest

from healthtrack.model.peripheral import GattService, PeripheralDescriptor
from healthtrack.model.profile import DEFAULT_PROFILE, Metric
from healthtrack.radio.base import Radio, RadioPeripheral, RadioSubscription
from healthtrack.radio.errors import RadioConnectError, RadioIOError


def b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def health_service(*metrics: Metric, uuid: Optional[str] = None) -> GattService:
    metrics = metrics or tuple(Metric)
    return GattService(
        uuid=uuid or DEFAULT_PROFILE.service_uuid,
        characteristics=tuple(DEFAULT_PROFILE.characteristics[m] for m in metrics),
    )


class FakeSubscription(RadioSubscription):
    def __init__(self, uuid: str, callback):
        self.uuid = uuid
        self.callback = callback
        self.removed = False
        self.remove_calls = 0
        self.raise_on_remove: Optional[Exception] = None

    async def remove(self) -> None:
        self.remove_calls += 1
        if self.raise_on_remove is not None:
            raise self.raise_on_remove
        self.removed = True


class FakePeripheral(RadioPeripheral):
    def __init__(self, id: str, name: Optional[str] = None, services: Sequence[GattService] = ()):
        self.id = id
        self.name = name
        self.services = list(services)
        self.monitors: Dict[str, FakeSubscription] = {}
        self.all_subscriptions: List[FakeSubscription] = []
        self.raise_on_discover: Optional[Exception] = None
        self.raise_on_monitor: Dict[str, Exception] = {}

    async def discover_services(self) -> List[GattService]:
        if self.raise_on_discover is not None:
            raise self.raise_on_discover
        return list(self.services)

    async def monitor(self, char_uuid: str, callback) -> RadioSubscription:
        if char_uuid in self.raise_on_monitor:
            raise self.raise_on_monitor[char_uuid]
        sub = FakeSubscription(char_uuid, callback)
        self.monitors[char_uuid] = sub
        self.all_subscriptions.append(sub)
        return sub

    def notify(self, metric: Metric, payload=None, *, error: Optional[Exception] = None) -> None:
        """Deliver one notification, even if the subscription was released."""
        sub = self.monitors[DEFAULT_PROFILE.characteristics[metric]]
        sub.callback(error, payload)


class FakeRadio(Radio):
    def __init__(self):
        self.peripherals: Dict[str, FakePeripheral] = {}
        self.scan_events: list = []
        self.on_event = None
        self.scanning = False
        self.start_calls = 0
        self.stop_calls = 0
        self.connect_calls: List[str] = []
        self.cancel_calls: List[str] = []
        self.connected: set = set()
        self.already_connected: List[PeripheralDescriptor] = []

        self.raise_on_start: Optional[Exception] = None
        self.raise_on_stop: Optional[Exception] = None
        self.raise_on_connect: Optional[Exception] = None
        self.raise_on_cancel: Optional[Exception] = None
        self.raise_on_is_connected: Optional[Exception] = None
        self.raise_on_connected_peripherals: Optional[Exception] = None

    def add(self, peripheral: FakePeripheral) -> FakePeripheral:
        self.peripherals[peripheral.id] = peripheral
        return peripheral

    def emit(self, descriptor: Optional[PeripheralDescriptor] = None, error: Optional[Exception] = None) -> None:
        assert self.on_event is not None
        self.on_event(error, descriptor)

    async def start_scan(self, on_event) -> None:
        self.start_calls += 1
        if self.raise_on_start is not None:
            raise self.raise_on_start
        self.on_event = on_event
        self.scanning = True
        for error, descriptor in list(self.scan_events):
            on_event(error, descriptor)

    async def stop_scan(self) -> None:
        self.stop_calls += 1
        self.scanning = False
        if self.raise_on_stop is not None:
            raise self.raise_on_stop

    async def connect(self, peripheral_id: str, *, timeout_s: float = 10.0) -> RadioPeripheral:
        self.connect_calls.append(peripheral_id)
        if self.raise_on_connect is not None:
            raise self.raise_on_connect
        p = self.peripherals.get(peripheral_id)
        if p is None:
            raise RadioConnectError(f"no peripheral {peripheral_id}")
        self.connected.add(peripheral_id)
        return p

    async def cancel_connection(self, peripheral_id: str) -> None:
        self.cancel_calls.append(peripheral_id)
        if self.raise_on_cancel is not None:
            raise self.raise_on_cancel
        self.connected.discard(peripheral_id)

    async def is_connected(self, peripheral_id: str) -> bool:
        if self.raise_on_is_connected is not None:
            raise self.raise_on_is_connected
        return peripheral_id in self.connected

    async def connected_peripherals(self, service_uuids: Sequence[str]) -> List[PeripheralDescriptor]:
        if self.raise_on_connected_peripherals is not None:
            raise self.raise_on_connected_peripherals
        return list(self.already_connected)


class FakePermissionGate:
    def __init__(self, granted: bool = True, raise_exc: Optional[Exception] = None):
        self.granted = granted
        self.raise_exc = raise_exc
        self.calls = 0

    async def request_permissions(self) -> bool:
        self.calls += 1
        if self.raise_exc is not None:
            raise self.raise_exc
        return self.granted


@pytest.fixture
def fakes():
    return SimpleNamespace(
        Radio=FakeRadio,
        Peripheral=FakePeripheral,
        Subscription=FakeSubscription,
        PermissionGate=FakePermissionGate,
        health_service=health_service,
        b64=b64,
        RadioIOError=RadioIOError,
    )


@pytest.fixture
def radio() -> FakeRadio:
    r = FakeRadio()
    r.add(FakePeripheral("AA:BB", name="HealthTR-1", services=[health_service()]))
    return r


@pytest.fixture
def device() -> PeripheralDescriptor:
    return PeripheralDescriptor(id="AA:BB", name="HealthTR-1", rssi=-60)
