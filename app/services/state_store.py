from __future__ import annotations
from threading import Lock

from ..core.timeutil import now_utc
from ..domain.models import DoorState, DoorUpdate, INITIAL_STATE


class StateStore:
    """Holds the one canonical DoorState. Every ``set`` replaces it whole."""

    def __init__(self, initial: DoorUpdate = INITIAL_STATE) -> None:
        self._lock = Lock()
        self._state = DoorState(
            is_open=initial.is_open,
            status=initial.status,
            last_updated=now_utc(),
        )

    def get(self) -> DoorState:
        with self._lock:
            return self._state

    def set(self, update: DoorUpdate) -> DoorState:
        with self._lock:
            # Never move lastUpdated backwards, even if the wall clock does.
            ts = max(now_utc(), self._state.last_updated)
            self._state = DoorState(
                is_open=update.is_open,
                status=update.status,
                last_updated=ts,
            )
            return self._state
