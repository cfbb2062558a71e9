# healthtrack/app/controller.py
from __future__ import annotations

import logging
from typing import Optional

from healthtrack.app.config import HealthTrackConfig
from healthtrack.app.permissions import GrantedPermissionGate
from healthtrack.interfaces.permission_gate import PermissionGate
from healthtrack.model.loader import ProfileLoader
from healthtrack.model.peripheral import PeripheralDescriptor
from healthtrack.model.profile import DEFAULT_PROFILE, GattProfile, Metric
from healthtrack.radio.base import Radio
from healthtrack.runtime.dispatcher import DataCallback, StatusCallback, TelemetryDispatcher, TelemetryStream
from healthtrack.runtime.reconnect import ReconnectPolicy
from healthtrack.runtime.scanner import CompleteCallback, DeviceScanner, FoundCallback
from healthtrack.runtime.session import ConnectTarget, ConnectionSession
from healthtrack.runtime.state import SessionSnapshot
from healthtrack.runtime.teardown import TeardownReport


class HealthTrackController:
    """
    App-level session API for screens and the CLI.

    Wires one ConnectionSession to its scanner, reconnect policy and
    telemetry dispatcher. The radio handle is shared and is never closed here.
    """

    def __init__(
        self,
        config: Optional[HealthTrackConfig] = None,
        *,
        radio: Radio,
        permission_gate: Optional[PermissionGate] = None,
        profile: Optional[GattProfile] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config or HealthTrackConfig()
        self._log = logger or logging.getLogger(__name__)
        self._radio = radio

        if profile is None:
            profile = (
                ProfileLoader(self._config.profile_path).load()
                if self._config.profile_path
                else DEFAULT_PROFILE
            )
        self._profile = profile

        self._session = ConnectionSession(
            radio=radio,
            profile=profile,
            connect_timeout_s=self._config.connect_timeout_s,
            max_notification_errors=self._config.max_notification_errors,
            logger=self._log,
        )
        self._scanner = DeviceScanner(
            session=self._session,
            permission_gate=permission_gate or GrantedPermissionGate(),
            scan_timeout_s=self._config.scan_timeout_s,
            logger=self._log,
        )
        self._reconnect = ReconnectPolicy(session=self._session, logger=self._log)
        self._dispatcher = TelemetryDispatcher(session=self._session, logger=self._log)

        self._last_teardown: Optional[TeardownReport] = None

    @property
    def config(self) -> HealthTrackConfig:
        return self._config

    @property
    def profile(self) -> GattProfile:
        return self._profile

    @property
    def session(self) -> ConnectionSession:
        return self._session

    @property
    def device(self) -> Optional[PeripheralDescriptor]:
        return self._session.peripheral

    @property
    def last_teardown(self) -> Optional[TeardownReport]:
        return self._last_teardown

    def status(self) -> SessionSnapshot:
        return self._session.snapshot()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    async def start_scan(
        self,
        on_found: Optional[FoundCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> None:
        await self._scanner.start_scan(on_found, on_complete)

    async def stop_scan(self) -> None:
        await self._scanner.stop_scan()

    async def scan(self, timeout_s: Optional[float] = None) -> Optional[PeripheralDescriptor]:
        return await self._scanner.scan(timeout_s)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    async def connect_to_device(self, target: ConnectTarget) -> bool:
        if self._scanner.is_scanning:
            await self._scanner.stop_scan()
        return await self._session.connect(target)

    async def reconnect(self) -> bool:
        if self._scanner.is_scanning:
            await self._scanner.stop_scan()
        return await self._reconnect.reconnect()

    async def disconnect(self) -> bool:
        self._last_teardown = await self._session.disconnect()
        return True

    async def is_connected(self) -> bool:
        return await self._session.is_connected()

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------
    def subscribe(self, on_data: Optional[DataCallback], on_status: Optional[StatusCallback]) -> bool:
        return self._dispatcher.subscribe(on_data, on_status)

    def open_stream(self, metric: Metric, *, maxsize: int = 256) -> TelemetryStream:
        return self._dispatcher.open_stream(metric, maxsize=maxsize)

    async def unsubscribe(self) -> bool:
        self._last_teardown = await self._dispatcher.unsubscribe()
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def destroy(self) -> TeardownReport:
        """Unsubscribe, stop scanning, drop in-memory state. The radio stays up."""
        report = TeardownReport()
        try:
            report.extend(await self._dispatcher.unsubscribe())
        except Exception:
            self._log.exception("DESTROY_UNSUBSCRIBE_ERROR")
        try:
            await self._scanner.stop_scan()
        except Exception:
            self._log.exception("DESTROY_STOP_SCAN_ERROR")

        self._session.reset()
        self._last_teardown = report
        self._log.info("CONTROLLER_DESTROYED failures=%d", len(report.failures))
        return report

    async def __aenter__(self) -> "HealthTrackController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.destroy()
