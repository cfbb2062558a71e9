# healthtrack/runtime/state.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from healthtrack.core.errors import InvalidTransitionError
from healthtrack.model.peripheral import PeripheralDescriptor
from healthtrack.model.profile import Metric


class SessionState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DEVICE_FOUND = "device_found"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    DISCONNECTED = "disconnected"


S = SessionState

# DISCONNECTED is reachable from every state and is not listed here.
_ALLOWED: Dict[SessionState, FrozenSet[SessionState]] = {
    S.IDLE: frozenset({S.SCANNING, S.CONNECTING}),
    S.SCANNING: frozenset({S.DEVICE_FOUND, S.IDLE}),
    S.DEVICE_FOUND: frozenset({S.CONNECTING, S.SCANNING, S.IDLE}),
    S.CONNECTING: frozenset({S.CONNECTED}),
    S.CONNECTED: frozenset({S.SUBSCRIBED, S.CONNECTING}),
    S.SUBSCRIBED: frozenset({S.CONNECTED, S.CONNECTING}),
    S.DISCONNECTED: frozenset({S.IDLE, S.CONNECTING, S.SCANNING}),
}

_KEEP = object()


@dataclass(frozen=True)
class SessionSnapshot:
    """
    A snapshot of the session, safe to hand to UI code.
    """
    state: SessionState
    peripheral: Optional[PeripheralDescriptor]
    connected: bool
    subscribed: Tuple[Metric, ...] = ()
    last_error: Optional[str] = None


class SessionStateMachine:
    """
    Owns the session's mutable state: lifecycle state, active peripheral,
    connected flag, last error.

    Fields are read-only properties; the only way to change them is
    transition() (or reset()), which validates the move.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger(__name__)
        self._state = SessionState.IDLE
        self._peripheral: Optional[PeripheralDescriptor] = None
        self._connected = False
        self._last_error: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def peripheral(self) -> Optional[PeripheralDescriptor]:
        return self._peripheral

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @staticmethod
    def can_transition(src: SessionState, dst: SessionState) -> bool:
        return dst is SessionState.DISCONNECTED or dst in _ALLOWED[src]

    def transition(
        self,
        target: SessionState,
        *,
        peripheral=_KEEP,
        connected: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> None:
        src = self._state
        if src is not target and not self.can_transition(src, target):
            raise InvalidTransitionError(
                f"Illegal session transition {src.value} -> {target.value}.",
                details={"from": src.value, "to": target.value},
            )

        self._state = target
        if peripheral is not _KEEP:
            self._peripheral = peripheral
        if connected is not None:
            self._connected = connected
        elif target in (SessionState.DISCONNECTED, SessionState.IDLE, SessionState.SCANNING):
            self._connected = False
        if error is not None:
            self._last_error = error
        elif target in (SessionState.CONNECTED, SessionState.SUBSCRIBED):
            self._last_error = None

        if src is not target:
            self._log.debug("SESSION_STATE %s -> %s", src.value, target.value)

    def reset(self) -> None:
        """Drop all in-memory state (destroy path)."""
        self._state = SessionState.IDLE
        self._peripheral = None
        self._connected = False
        self._last_error = None

    def snapshot(self, subscribed: Tuple[Metric, ...] = ()) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            peripheral=self._peripheral,
            connected=self._connected,
            subscribed=tuple(subscribed),
            last_error=self._last_error,
        )
