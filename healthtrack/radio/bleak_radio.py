# healthtrack/radio/bleak_radio.py
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from healthtrack.model.peripheral import GattService, PeripheralDescriptor
from healthtrack.model.profile import normalize_uuid
from .base import NotifyCallback, Radio, RadioPeripheral, RadioSubscription, ScanEventCallback
from .errors import RadioConnectError, RadioIOError, RadioScanError


class BleakSubscription(RadioSubscription):
    def __init__(self, client: BleakClient, char_uuid: str):
        self.client = client
        self.char_uuid = char_uuid
        self._removed = False

    async def remove(self) -> None:
        if self._removed:
            return
        self._removed = True
        if not self.client.is_connected:
            return
        try:
            await self.client.stop_notify(self.char_uuid)
        except (BleakError, OSError) as e:
            raise RadioIOError(f"stop_notify {self.char_uuid} failed: {e}") from None


class BleakPeripheral(RadioPeripheral):
    """RadioPeripheral backed by a connected BleakClient."""

    def __init__(self, client: BleakClient, *, name: Optional[str] = None):
        self.client = client
        self.id = client.address
        self.name = name

    async def discover_services(self) -> List[GattService]:
        # bleak resolves the full GATT table during connect()
        try:
            services = self.client.services
        except BleakError as e:
            raise RadioIOError(f"service discovery failed: {e}") from None

        out: List[GattService] = []
        for service in services:
            out.append(
                GattService(
                    uuid=normalize_uuid(service.uuid),
                    characteristics=tuple(normalize_uuid(c.uuid) for c in service.characteristics),
                )
            )
        return out

    async def monitor(self, char_uuid: str, callback: NotifyCallback) -> RadioSubscription:
        def _on_notify(_sender, data: bytearray) -> None:
            callback(None, bytes(data))

        try:
            await self.client.start_notify(char_uuid, _on_notify)
        except (BleakError, OSError) as e:
            raise RadioIOError(f"start_notify {char_uuid} failed: {e}") from None
        return BleakSubscription(self.client, char_uuid)


class BleakRadio(Radio):
    """
    Radio implemented via bleak (BlueZ / CoreBluetooth / WinRT).

    Keeps one BleakClient per peripheral id so that connected_peripherals()
    can report links that are still up after a session let go of them.
    """

    def __init__(self, *, adapter: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.adapter = adapter
        self._log = logger or logging.getLogger(__name__)
        self._scanner: Optional[BleakScanner] = None
        self._clients: Dict[str, BleakClient] = {}
        self._names: Dict[str, Optional[str]] = {}

    def _backend_kwargs(self) -> dict:
        return {"adapter": self.adapter} if self.adapter else {}

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    async def start_scan(self, on_event: ScanEventCallback) -> None:
        if self._scanner is not None:
            await self.stop_scan()

        def _detect(device: BLEDevice, adv: AdvertisementData) -> None:
            name = device.name or adv.local_name
            self._names[device.address] = name
            # bleak does not expose advertised connectability on every backend
            on_event(None, PeripheralDescriptor(id=device.address, name=name, rssi=adv.rssi))

        scanner = BleakScanner(detection_callback=_detect, **self._backend_kwargs())
        try:
            await scanner.start()
        except (BleakError, OSError) as e:
            raise RadioScanError(f"scan start failed: {e}") from None
        self._scanner = scanner

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except (BleakError, OSError) as e:
            raise RadioScanError(f"scan stop failed: {e}") from None

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------
    async def connect(self, peripheral_id: str, *, timeout_s: float = 10.0) -> RadioPeripheral:
        client = self._clients.get(peripheral_id)
        if client is not None and client.is_connected:
            return BleakPeripheral(client, name=self._names.get(peripheral_id))

        def _on_disconnect(c: BleakClient) -> None:
            self._log.info("RADIO_LINK_LOST id=%s", c.address)

        client = BleakClient(
            peripheral_id,
            disconnected_callback=_on_disconnect,
            timeout=timeout_s,
            **self._backend_kwargs(),
        )
        try:
            await client.connect()
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            raise RadioConnectError(f"connect {peripheral_id} failed: {str(e) or type(e).__name__}") from None

        self._clients[peripheral_id] = client
        return BleakPeripheral(client, name=self._names.get(peripheral_id))

    async def cancel_connection(self, peripheral_id: str) -> None:
        client = self._clients.pop(peripheral_id, None)
        if client is None:
            return
        try:
            await client.disconnect()
        except (BleakError, OSError) as e:
            raise RadioIOError(f"disconnect {peripheral_id} failed: {e}") from None

    async def is_connected(self, peripheral_id: str) -> bool:
        client = self._clients.get(peripheral_id)
        return client is not None and client.is_connected

    async def connected_peripherals(self, service_uuids: Sequence[str]) -> List[PeripheralDescriptor]:
        wanted = {normalize_uuid(u) for u in service_uuids}
        out: List[PeripheralDescriptor] = []
        for pid, client in list(self._clients.items()):
            if not client.is_connected:
                continue
            try:
                uuids = {normalize_uuid(s.uuid) for s in client.services}
            except BleakError:
                continue
            if wanted & uuids:
                out.append(PeripheralDescriptor(id=pid, name=self._names.get(pid)))
        return out
