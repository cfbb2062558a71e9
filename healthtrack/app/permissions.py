# healthtrack/app/permissions.py
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

BLUETOOTH_SCAN = "bluetooth_scan"
BLUETOOTH_CONNECT = "bluetooth_connect"
ACCESS_FINE_LOCATION = "access_fine_location"

GRANTED = "granted"

# First platform API level with scoped Bluetooth runtime permissions.
SCOPED_PERMISSIONS_API_LEVEL = 31

PermissionRequester = Callable[[Sequence[str]], Awaitable[Dict[str, str]]]


class GrantedPermissionGate:
    """Hosts without runtime radio permissions (Linux/BlueZ, macOS, Windows)."""

    async def request_permissions(self) -> bool:
        return True


class ScopedPermissionGate:
    """
    Permission gate for platforms with runtime radio permissions.

    `requester` prompts for the given capabilities and returns
    {capability: result}; access is granted only if every result is "granted".
    """

    def __init__(
        self,
        requester: PermissionRequester,
        *,
        api_level: int,
        logger: Optional[logging.Logger] = None,
    ):
        self._requester = requester
        self._api_level = int(api_level)
        self._log = logger or logging.getLogger(__name__)

    def required(self) -> List[str]:
        if self._api_level >= SCOPED_PERMISSIONS_API_LEVEL:
            return [BLUETOOTH_SCAN, BLUETOOTH_CONNECT, ACCESS_FINE_LOCATION]
        return [ACCESS_FINE_LOCATION]

    async def request_permissions(self) -> bool:
        wanted = self.required()
        results = await self._requester(wanted)
        denied = [p for p in wanted if (results or {}).get(p) != GRANTED]
        if denied:
            self._log.warning("PERMISSIONS_DENIED api_level=%d denied=%s", self._api_level, denied)
            return False
        return True
