# healthtrack/runtime/scanner.py
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from healthtrack.core.errors import PermissionDeniedError, ScanTimeoutError
from healthtrack.interfaces.permission_gate import PermissionGate
from healthtrack.model.peripheral import PeripheralDescriptor, matches_target
from healthtrack.radio.errors import RadioError
from healthtrack.runtime.session import ConnectionSession

FoundCallback = Callable[[PeripheralDescriptor], None]
CompleteCallback = Callable[[bool], None]

DEFAULT_SCAN_TIMEOUT_S = 10.0


class _ScanRun:
    """Bookkeeping for one start_scan() call; completes exactly once."""

    def __init__(self, on_found: Optional[FoundCallback], on_complete: Optional[CompleteCallback]):
        self.on_found = on_found
        self.on_complete = on_complete
        self.done = False
        self.deadline: Optional[asyncio.TimerHandle] = None

    def cancel_deadline(self) -> None:
        if self.deadline is not None:
            self.deadline.cancel()
            self.deadline = None


class DeviceScanner:
    """
    Finds the target peripheral by advertised name.

    start_scan() reports through callbacks: on_found(descriptor) for the
    first match, then on_complete(True); on_complete(False) on permission
    denial, radio error, deadline or stop_scan(). on_complete fires once per scan.
    """

    def __init__(
        self,
        *,
        session: ConnectionSession,
        permission_gate: PermissionGate,
        scan_timeout_s: float = DEFAULT_SCAN_TIMEOUT_S,
        logger: Optional[logging.Logger] = None,
    ):
        self._session = session
        self._radio = session.radio
        self._gate = permission_gate
        self._timeout_s = float(scan_timeout_s)
        self._target = session.profile.target_name
        self._log = logger or logging.getLogger(__name__)

        self._run: Optional[_ScanRun] = None
        self._stop_task: Optional[asyncio.Task] = None

    @property
    def is_scanning(self) -> bool:
        return self._run is not None and not self._run.done

    @property
    def scan_timeout_s(self) -> float:
        return self._timeout_s

    async def start_scan(
        self,
        on_found: Optional[FoundCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> None:
        if self.is_scanning:
            await self.stop_scan()

        run = _ScanRun(on_found, on_complete)

        try:
            granted = bool(await self._gate.request_permissions())
        except Exception as e:
            self._log.warning("PERMISSION_REQUEST_FAILED err=%s", e)
            granted = False

        if not granted:
            err = PermissionDeniedError(
                "Permission denied for BLE scan.",
                hint="Grant Bluetooth scan/connect and location access.",
            )
            self._log.warning("SCAN_PERMISSION_DENIED code=%s", err.code)
            self._finish(run, False)
            return

        if not self._session.can_begin_scan():
            self._log.warning("SCAN_REFUSED state=%s", self._session.state.value)
            self._finish(run, False)
            return

        loop = asyncio.get_running_loop()
        self._run = run
        self._session.begin_scan()
        self._log.info("SCAN_START target=%s timeout_s=%.1f", self._target, self._timeout_s)

        run.deadline = loop.call_later(self._timeout_s, self._on_deadline, run)

        try:
            await self._radio.start_scan(lambda error, device: self._on_event(run, error, device))
        except RadioError as e:
            self._log.warning("SCAN_START_FAILED err=%s", e)
            self._abort(run)

    async def stop_scan(self) -> None:
        """Stop an in-flight scan; it completes with on_complete(False). Idempotent."""
        run, self._run = self._run, None
        if run is not None and not run.done:
            run.cancel_deadline()
            self._session.end_scan(None)
            self._log.info("SCAN_STOP")
            self._finish(run, False)
        await self._stop_radio()

    async def scan(self, timeout_s: Optional[float] = None) -> Optional[PeripheralDescriptor]:
        """Run one scan to completion; returns the match or None."""
        loop = asyncio.get_running_loop()
        result: asyncio.Future = loop.create_future()
        found: list[PeripheralDescriptor] = []

        def _complete(ok: bool) -> None:
            if not result.done():
                result.set_result(found[0] if ok and found else None)

        saved = self._timeout_s
        if timeout_s is not None:
            self._timeout_s = float(timeout_s)
        try:
            await self.start_scan(found.append, _complete)
        finally:
            self._timeout_s = saved

        try:
            return await result
        finally:
            await self._drain_stop()

    # ------------------------------------------------------------------
    # Radio events (run on the event loop)
    # ------------------------------------------------------------------
    def _on_event(
        self,
        run: _ScanRun,
        error: Optional[Exception],
        device: Optional[PeripheralDescriptor],
    ) -> None:
        if run.done:
            return

        if error is not None:
            self._log.error("SCAN_ERROR err=%s", error)
            self._abort(run)
            return

        if device is None:
            return

        self._log.debug("SCAN_SEEN id=%s name=%s rssi=%s", device.id, device.display_name, device.rssi)
        if not matches_target(device, self._target):
            return

        self._log.info("SCAN_MATCH id=%s name=%s rssi=%s", device.id, device.display_name, device.rssi)
        run.cancel_deadline()
        self._schedule_stop_radio()
        self._session.end_scan(device)
        self._emit_found(run, device)
        self._finish(run, True)

    def _on_deadline(self, run: _ScanRun) -> None:
        if run.done:
            return
        run.deadline = None
        err = ScanTimeoutError(
            f"No '{self._target}' peripheral found within {self._timeout_s:.1f}s.",
        )
        self._log.info("SCAN_TIMEOUT code=%s msg=%s", err.code, err.message)
        self._schedule_stop_radio()
        self._session.end_scan(None)
        self._finish(run, False)

    def _abort(self, run: _ScanRun) -> None:
        if run.done:
            return
        run.cancel_deadline()
        self._schedule_stop_radio()
        self._session.end_scan(None)
        self._finish(run, False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _finish(self, run: _ScanRun, ok: bool) -> None:
        run.done = True
        if self._run is run:
            self._run = None
        if run.on_complete is None:
            return
        try:
            run.on_complete(ok)
        except Exception:
            self._log.exception("SCAN_CALLBACK_ERROR callback=on_complete")

    def _emit_found(self, run: _ScanRun, device: PeripheralDescriptor) -> None:
        if run.on_found is None:
            return
        try:
            run.on_found(device)
        except Exception:
            self._log.exception("SCAN_CALLBACK_ERROR callback=on_found")

    def _schedule_stop_radio(self) -> None:
        if self._stop_task is not None and not self._stop_task.done():
            return
        self._stop_task = asyncio.get_running_loop().create_task(self._stop_radio())

    async def _stop_radio(self) -> None:
        try:
            await self._radio.stop_scan()
        except Exception as e:
            self._log.warning("SCAN_STOP_FAILED err=%s", e)

    async def _drain_stop(self) -> None:
        task = self._stop_task
        if task is not None and not task.done():
            await task
