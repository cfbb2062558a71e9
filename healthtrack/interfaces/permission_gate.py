# healthtrack/interfaces/permission_gate.py
from typing import Protocol


class PermissionGate(Protocol):
    async def request_permissions(self) -> bool: ...
