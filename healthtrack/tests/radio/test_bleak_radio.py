from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from bleak.exc import BleakError

import healthtrack.radio.bleak_radio as br
from healthtrack.model.profile import DEFAULT_PROFILE, Metric
from healthtrack.radio.errors import RadioConnectError, RadioIOError, RadioScanError

SERVICE = DEFAULT_PROFILE.service_uuid.upper()
HR = DEFAULT_PROFILE.characteristics[Metric.HEART_RATE]


class FakeScanner:
    instances: list = []

    def __init__(self, detection_callback=None, **kwargs):
        self.cb = detection_callback
        self.kwargs = kwargs
        self.started = False
        self.stopped = False
        self.raise_on_start = None
        FakeScanner.instances.append(self)

    async def start(self):
        if self.raise_on_start:
            raise self.raise_on_start
        self.started = True

    async def stop(self):
        self.stopped = True


class FakeClient:
    instances: list = []
    fail_connect = None

    def __init__(self, address, disconnected_callback=None, timeout=10.0, **kwargs):
        self.address = address
        self.disconnected_callback = disconnected_callback
        self.timeout = timeout
        self.kwargs = kwargs
        self.is_connected = False
        self.notifying = {}
        self.services = [
            SimpleNamespace(uuid=SERVICE, characteristics=[SimpleNamespace(uuid=HR.upper())]),
        ]
        FakeClient.instances.append(self)

    async def connect(self):
        if FakeClient.fail_connect is not None:
            raise FakeClient.fail_connect
        self.is_connected = True

    async def disconnect(self):
        self.is_connected = False

    async def start_notify(self, uuid, handler):
        self.notifying[uuid] = handler

    async def stop_notify(self, uuid):
        if uuid not in self.notifying:
            raise BleakError("not notifying")
        del self.notifying[uuid]


@pytest.fixture(autouse=True)
def _patch_bleak(monkeypatch):
    FakeScanner.instances = []
    FakeClient.instances = []
    FakeClient.fail_connect = None
    monkeypatch.setattr(br, "BleakScanner", FakeScanner)
    monkeypatch.setattr(br, "BleakClient", FakeClient)


def test_scan_reports_descriptors_and_passes_adapter():
    radio = br.BleakRadio(adapter="hci1")
    events = []

    async def run():
        await radio.start_scan(lambda err, d: events.append((err, d)))
        scanner = FakeScanner.instances[0]
        scanner.cb(
            SimpleNamespace(address="AA:BB", name=None),
            SimpleNamespace(local_name="HealthTR-1", rssi=-61),
        )
        await radio.stop_scan()
        await radio.stop_scan()
        return scanner

    scanner = asyncio.run(run())

    assert scanner.kwargs == {"adapter": "hci1"}
    assert scanner.stopped is True
    (err, d), = events
    assert err is None
    assert (d.id, d.name, d.rssi, d.connectable) == ("AA:BB", "HealthTR-1", -61, True)


def test_scan_start_failure_is_radio_scan_error(monkeypatch):
    radio = br.BleakRadio()

    class Broken(FakeScanner):
        async def start(self):
            raise BleakError("Bluetooth adapter off")

    monkeypatch.setattr(br, "BleakScanner", Broken)
    with pytest.raises(RadioScanError):
        asyncio.run(radio.start_scan(lambda e, d: None))


def test_connect_discovers_normalized_services_and_notifies():
    radio = br.BleakRadio()
    got = []

    async def run():
        p = await radio.connect("AA:BB", timeout_s=3.0)
        services = await p.discover_services()
        sub = await p.monitor(HR, lambda err, payload: got.append((err, payload)))
        client = FakeClient.instances[0]
        client.notifying[HR](None, bytearray(b"72"))
        await sub.remove()
        await sub.remove()
        return p, services, client

    p, services, client = asyncio.run(run())

    assert p.id == "AA:BB"
    assert client.timeout == 3.0
    assert services[0].uuid == DEFAULT_PROFILE.service_uuid
    assert services[0].characteristics == (HR,)
    assert got == [(None, b"72")]
    assert client.notifying == {}


def test_connect_failure_is_radio_connect_error():
    FakeClient.fail_connect = asyncio.TimeoutError()
    radio = br.BleakRadio()

    with pytest.raises(RadioConnectError):
        asyncio.run(radio.connect("AA:BB"))
    assert asyncio.run(radio.is_connected("AA:BB")) is False


def test_connect_reuses_live_client():
    radio = br.BleakRadio()

    async def run():
        await radio.connect("AA:BB")
        await radio.connect("AA:BB")

    asyncio.run(run())
    assert len(FakeClient.instances) == 1


def test_cancel_connection_and_connected_peripherals():
    radio = br.BleakRadio()

    async def run():
        await radio.connect("AA:BB")
        before = await radio.connected_peripherals([DEFAULT_PROFILE.service_uuid])
        unrelated = await radio.connected_peripherals(["0000180d-0000-1000-8000-00805f9b34fb"])
        await radio.cancel_connection("AA:BB")
        await radio.cancel_connection("AA:BB")
        after = await radio.connected_peripherals([DEFAULT_PROFILE.service_uuid])
        return before, unrelated, after, await radio.is_connected("AA:BB")

    before, unrelated, after, connected = asyncio.run(run())

    assert [d.id for d in before] == ["AA:BB"]
    assert unrelated == []
    assert after == []
    assert connected is False


def test_stop_notify_failure_is_radio_io_error():
    radio = br.BleakRadio()

    async def run():
        p = await radio.connect("AA:BB")
        sub = await p.monitor(HR, lambda e, d: None)
        FakeClient.instances[0].notifying.clear()
        await sub.remove()

    with pytest.raises(RadioIOError):
        asyncio.run(run())
