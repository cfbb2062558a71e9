# healthtrack/runtime/reconnect.py
from __future__ import annotations

import logging
from typing import Optional

from healthtrack.model.peripheral import PeripheralDescriptor
from healthtrack.runtime.session import ConnectionSession


class ReconnectPolicy:
    """
    Re-establish telemetry without a fresh scan.

    Order:
      1. the session's known peripheral (last scan match or connection)
      2. a peripheral the radio already holds a link to that exposes the
         health service
    """

    def __init__(self, *, session: ConnectionSession, logger: Optional[logging.Logger] = None):
        self._session = session
        self._log = logger or logging.getLogger(__name__)

    async def reconnect(self) -> bool:
        try:
            known = self._session.peripheral
            if known is not None and known.id:
                self._log.info("RECONNECT_KNOWN id=%s", known.id)
                return await self._session.connect(known)

            candidate = await self._find_connected()
            if candidate is not None:
                self._log.info("RECONNECT_ADOPT id=%s name=%s", candidate.id, candidate.display_name)
                self._session.adopt(candidate)
                return await self._session.connect(candidate)

            self._log.info("RECONNECT_NO_CANDIDATE")
            return False
        except Exception:
            self._log.exception("RECONNECT_FAILED")
            return False

    async def _find_connected(self) -> Optional[PeripheralDescriptor]:
        service_uuid = self._session.profile.service_uuid
        try:
            connected = await self._session.radio.connected_peripherals([service_uuid])
        except Exception as e:
            self._log.warning("CONNECTED_PERIPHERALS_FAILED err=%s", e)
            return None
        return connected[0] if connected else None
