# healthtrack/runtime/session.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple, Union

from healthtrack.core.errors import (
    CharacteristicMissingError,
    DeviceConnectError,
    HealthTrackError,
    NotificationError,
    PayloadDecodeError,
    ServiceNotFoundError,
)
from healthtrack.model.codec import DecodedValue, decode_for
from healthtrack.model.peripheral import GattService, PeripheralDescriptor
from healthtrack.model.profile import DEFAULT_PROFILE, GattProfile, Metric, normalize_uuid
from healthtrack.radio.base import Radio, RadioPeripheral, RadioSubscription
from healthtrack.radio.errors import RadioError
from healthtrack.runtime.state import SessionSnapshot, SessionState, SessionStateMachine
from healthtrack.runtime.teardown import TeardownReport

Listener = Callable[[DecodedValue], None]
ConnectTarget = Union[PeripheralDescriptor, str, None]

_SCANNABLE = (SessionState.IDLE, SessionState.DEVICE_FOUND, SessionState.DISCONNECTED)


@dataclass
class _LiveSubscription:
    metric: Metric
    uuid: str
    handle: Optional[RadioSubscription] = None
    released: bool = False
    error_count: int = 0
    last_error: Optional[NotificationError] = None


class ConnectionSession:
    """
    Lifecycle of one peripheral connection: connect, GATT resolution,
    notification subscriptions, teardown.

    One session per radio. Construct it explicitly and pass it to the
    scanner, reconnect policy and dispatcher that act on it.
    """

    def __init__(
        self,
        *,
        radio: Radio,
        profile: GattProfile = DEFAULT_PROFILE,
        connect_timeout_s: float = 10.0,
        max_notification_errors: int = 5,
        logger: Optional[logging.Logger] = None,
    ):
        self._radio = radio
        self._profile = profile
        self._connect_timeout_s = float(connect_timeout_s)
        self._max_notification_errors = int(max_notification_errors)
        self._log = logger or logging.getLogger(__name__)

        self._sm = SessionStateMachine(logger=self._log)
        self._link: Optional[RadioPeripheral] = None
        self._subs: Dict[Metric, _LiveSubscription] = {}
        self._listeners: Dict[Metric, Listener] = {}
        self._missing: Dict[Metric, CharacteristicMissingError] = {}
        self._escalation: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def radio(self) -> Radio:
        return self._radio

    @property
    def profile(self) -> GattProfile:
        return self._profile

    @property
    def state(self) -> SessionState:
        return self._sm.state

    @property
    def peripheral(self) -> Optional[PeripheralDescriptor]:
        return self._sm.peripheral

    @property
    def connected(self) -> bool:
        return self._sm.connected

    @property
    def subscribed_metrics(self) -> Tuple[Metric, ...]:
        return tuple(self._subs)

    @property
    def missing_characteristics(self) -> Dict[Metric, CharacteristicMissingError]:
        return dict(self._missing)

    def notification_error_count(self, metric: Metric) -> int:
        sub = self._subs.get(metric)
        return sub.error_count if sub else 0

    def snapshot(self) -> SessionSnapshot:
        return self._sm.snapshot(self.subscribed_metrics)

    # ------------------------------------------------------------------
    # Scan bookkeeping (driven by DeviceScanner)
    # ------------------------------------------------------------------
    def can_begin_scan(self) -> bool:
        return self._sm.state in _SCANNABLE

    def begin_scan(self) -> None:
        self._sm.transition(SessionState.SCANNING, peripheral=None)

    def end_scan(self, found: Optional[PeripheralDescriptor]) -> None:
        if self._sm.state is not SessionState.SCANNING:
            return
        if found is not None:
            self._sm.transition(SessionState.DEVICE_FOUND, peripheral=found)
        else:
            self._sm.transition(SessionState.IDLE)

    def adopt(self, descriptor: PeripheralDescriptor) -> None:
        """Make `descriptor` the active peripheral without changing state."""
        self._sm.transition(self._sm.state, peripheral=descriptor)

    # ------------------------------------------------------------------
    # Listener slots (driven by TelemetryDispatcher)
    # ------------------------------------------------------------------
    def set_listener(self, metric: Metric, listener: Optional[Listener]) -> None:
        if listener is None:
            self._listeners.pop(metric, None)
        else:
            self._listeners[metric] = listener

    def clear_listeners(self) -> None:
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------
    async def connect(self, target: ConnectTarget) -> bool:
        """
        Connect, resolve the health service and subscribe to its characteristics.

        Never raises: any failure leaves the session DISCONNECTED and returns False.
        """
        peripheral_id = self._resolve_id(target)
        if not peripheral_id:
            self._log.error("CONNECT_FAILED msg=Peripheral id is missing")
            return False

        if self._sm.state is SessionState.CONNECTING:
            self._log.warning("CONNECT_REFUSED id=%s reason=connect_in_progress", peripheral_id)
            return False
        if self._sm.state is SessionState.SCANNING:
            self._log.warning("CONNECT_REFUSED id=%s reason=scan_in_progress", peripheral_id)
            return False

        descriptor = self._descriptor_for(target, peripheral_id)
        self._sm.transition(SessionState.CONNECTING, peripheral=descriptor)
        self._log.info("CONNECT_START id=%s name=%s", peripheral_id, descriptor.display_name)

        link: Optional[RadioPeripheral] = None
        subscribing = False
        try:
            try:
                link = await self._radio.connect(peripheral_id, timeout_s=self._connect_timeout_s)
            except RadioError as e:
                raise DeviceConnectError(
                    "Could not connect to peripheral.",
                    hint=str(e),
                    details={"id": peripheral_id},
                ) from None

            try:
                services = await link.discover_services()
            except RadioError as e:
                raise DeviceConnectError(
                    "Service discovery failed.",
                    hint=str(e),
                    details={"id": peripheral_id},
                ) from None

            service = self._find_service(services)
            if service is None:
                raise ServiceNotFoundError(
                    "Health service not found on peripheral.",
                    hint=f"Expected service {self._profile.service_uuid}.",
                    details={"id": peripheral_id, "services": [s.uuid for s in services]},
                )
            self._log.info("SERVICE_FOUND id=%s uuid=%s", peripheral_id, service.uuid)

            await self.release_subscriptions()
            subscribing = True
            await self._subscribe_all(link, service)

        except Exception as e:
            msg = e.message if isinstance(e, HealthTrackError) else str(e) or type(e).__name__
            code = getattr(e, "code", type(e).__name__)
            self._log.warning("CONNECT_FAILED id=%s code=%s msg=%s", peripheral_id, code, msg)
            if subscribing:
                # only what this attempt subscribed; earlier ones were released above
                await self.release_subscriptions()
            self._sm.transition(SessionState.DISCONNECTED, connected=False, error=msg)
            if link is not None:
                await self._abandon_link(peripheral_id)
            return False

        if descriptor.name is None and link.name:
            descriptor = PeripheralDescriptor(
                id=descriptor.id, name=link.name, rssi=descriptor.rssi, connectable=descriptor.connectable
            )

        self._link = link
        self._sm.transition(SessionState.CONNECTED, peripheral=descriptor, connected=True)
        if self._subs:
            self._sm.transition(SessionState.SUBSCRIBED)
        self._log.info(
            "CONNECT_OK id=%s subscribed=%s",
            peripheral_id,
            [m.value for m in self._subs],
        )
        return True

    def _resolve_id(self, target: ConnectTarget) -> Optional[str]:
        if isinstance(target, PeripheralDescriptor):
            return target.id or None
        if isinstance(target, str):
            return target.strip() or None
        return None

    def _descriptor_for(self, target: ConnectTarget, peripheral_id: str) -> PeripheralDescriptor:
        if isinstance(target, PeripheralDescriptor):
            return target
        known = self._sm.peripheral
        if known is not None and known.id == peripheral_id:
            return known
        return PeripheralDescriptor(id=peripheral_id)

    def _find_service(self, services: Iterable[GattService]) -> Optional[GattService]:
        services = list(services)
        for s in services:
            if self._profile.matches_service(s.uuid, allow_prefix=False):
                return s
        for s in services:
            if self._profile.matches_service(s.uuid):
                return s
        return None

    async def _subscribe_all(self, link: RadioPeripheral, service: GattService) -> None:
        available = {normalize_uuid(c) for c in service.characteristics}
        self._missing.clear()

        for metric in Metric:
            uuid = self._profile.characteristic_uuid(metric)
            if uuid is None or uuid not in available:
                self._missing[metric] = CharacteristicMissingError(
                    f"Characteristic '{metric.value}' not found.",
                    details={"uuid": uuid, "service": service.uuid},
                )
                self._log.warning("CHARACTERISTIC_MISSING metric=%s uuid=%s", metric.value, uuid)
                continue

            sub = _LiveSubscription(metric=metric, uuid=uuid)
            try:
                sub.handle = await link.monitor(uuid, self._make_callback(sub))
            except RadioError as e:
                raise DeviceConnectError(
                    f"Could not subscribe to '{metric.value}'.",
                    hint=str(e),
                    details={"uuid": uuid},
                ) from None
            self._subs[metric] = sub
            self._log.info("SUBSCRIBED metric=%s uuid=%s", metric.value, uuid)

    async def _abandon_link(self, peripheral_id: str) -> None:
        report = TeardownReport()
        await report.attempt(
            f"connection:{peripheral_id}",
            lambda: self._radio.cancel_connection(peripheral_id),
            logger=self._log,
        )

    # ------------------------------------------------------------------
    # Notification path
    # ------------------------------------------------------------------
    def _make_callback(self, sub: _LiveSubscription):
        def _on_notification(error: Optional[Exception], payload) -> None:
            if sub.released:
                # late delivery after teardown
                return

            if error is not None:
                self._on_notification_error(sub, error)
                return

            if not payload:
                return

            try:
                value = decode_for(sub.metric, payload)
            except PayloadDecodeError as e:
                self._log.warning("NOTIFY_DECODE_FAILED metric=%s err=%s", sub.metric.value, e.hint or e)
                return

            sub.error_count = 0
            listener = self._listeners.get(sub.metric)
            if listener is None:
                return
            try:
                listener(value)
            except Exception:
                self._log.exception("LISTENER_ERROR metric=%s", sub.metric.value)

        return _on_notification

    def _on_notification_error(self, sub: _LiveSubscription, error: Exception) -> None:
        sub.error_count += 1
        sub.last_error = NotificationError(
            f"Notification error on '{sub.metric.value}'.",
            hint=str(error),
            details={"uuid": sub.uuid, "count": sub.error_count},
        )
        self._log.error(
            "NOTIFY_ERROR metric=%s count=%d err=%s", sub.metric.value, sub.error_count, error
        )

        limit = self._max_notification_errors
        if limit > 0 and sub.error_count >= limit:
            self._escalate(sub)

    def _escalate(self, sub: _LiveSubscription) -> None:
        if self._escalation is not None and not self._escalation.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._log.warning("NOTIFY_ERROR_ESCALATION_SKIPPED metric=%s reason=no_loop", sub.metric.value)
            return
        self._log.warning(
            "NOTIFY_ERROR_ESCALATED metric=%s count=%d action=disconnect", sub.metric.value, sub.error_count
        )
        self._escalation = loop.create_task(self.disconnect())

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    async def release_subscriptions(self) -> TeardownReport:
        """Release every live subscription independently. Idempotent."""
        report = TeardownReport()
        subs, self._subs = self._subs, {}

        for metric, sub in subs.items():
            sub.released = True
            if sub.handle is None:
                continue
            await report.attempt(f"subscription:{metric.value}", sub.handle.remove, logger=self._log)

        if subs and self._sm.state is SessionState.SUBSCRIBED:
            self._sm.transition(SessionState.CONNECTED)
        return report

    async def disconnect(self) -> TeardownReport:
        """
        Release subscriptions, cancel the radio link, clear the peripheral.
        Idempotent; always completes.
        """
        report = await self.release_subscriptions()

        peripheral = self._sm.peripheral
        if peripheral is not None:
            self._log.info("DISCONNECT id=%s", peripheral.id)
            await report.attempt(
                f"connection:{peripheral.id}",
                lambda: self._radio.cancel_connection(peripheral.id),
                logger=self._log,
            )

        self._link = None
        state = self._sm.state
        if state is SessionState.SCANNING:
            self._sm.transition(SessionState.SCANNING, peripheral=None, connected=False)
        elif state is not SessionState.IDLE or peripheral is not None:
            self._sm.transition(SessionState.DISCONNECTED, peripheral=None, connected=False)
            self._sm.transition(SessionState.IDLE)

        if peripheral is not None:
            self._log.info("DISCONNECTED failures=%d", len(report.failures))
        return report

    def reset(self) -> None:
        """Drop all in-memory session state without touching the radio."""
        for sub in self._subs.values():
            sub.released = True
        self._subs.clear()
        self._listeners.clear()
        self._missing.clear()
        self._link = None
        self._sm.reset()

    # ------------------------------------------------------------------
    # Liveness
    # ------------------------------------------------------------------
    async def is_connected(self) -> bool:
        peripheral = self._sm.peripheral
        if peripheral is None:
            return False

        try:
            connected = bool(await self._radio.is_connected(peripheral.id))
        except Exception as e:
            self._log.warning("IS_CONNECTED_FAILED id=%s err=%s", peripheral.id, e)
            connected = False

        if not connected and self._sm.connected:
            self._log.info("LINK_LOST id=%s", peripheral.id)
            self._sm.transition(SessionState.DISCONNECTED, connected=False, error="link lost")
        return connected
