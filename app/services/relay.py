from __future__ import annotations
import logging
from threading import RLock
from typing import Any, Mapping, Optional

from ..domain.mapping import from_force, from_payload, resolve_write_request
from ..domain.models import ConnectionPhase, DoorState, DoorUpdate, phase_event
from .dispatcher import BroadcastDispatcher
from .registry import SubscriberRegistry
from .state_store import StateStore

logger = logging.getLogger(__name__)


class DoorRelay:
    """Bridges state writes (broker or HTTP) to the stream subscribers.

    Every write goes through :meth:`apply`, so a forced state and a sensor
    message have identical side effects.
    """

    def __init__(self, store: Optional[StateStore] = None) -> None:
        self.store = store or StateStore()
        self.registry = SubscriberRegistry(self.store)
        self.dispatcher = BroadcastDispatcher(self.registry)
        # Held across set + broadcast so subscribers see changes in store order
        self._lock = RLock()

    def current(self) -> DoorState:
        return self.store.get()

    def apply(self, update: DoorUpdate) -> DoorState:
        with self._lock:
            state = self.store.set(update)
            self.dispatcher.broadcast(state.to_json())
        return state

    def ingest(self, payload: str) -> DoorState:
        logger.info("Sensor message received: %s", payload)
        return self.apply(from_payload(payload))

    def force(self, is_open: bool, status: Optional[str] = None) -> DoorState:
        return self.apply(from_force(is_open, status))

    def submit(self, fields: Mapping[str, Any]) -> DoorState:
        """Apply an HTTP write body. Raises InvalidWriteRequest, state untouched."""
        return self.apply(resolve_write_request(fields))

    def announce(self, phase: str) -> None:
        """Tell stream clients about the broker link. Does not touch state."""
        if phase not in ConnectionPhase.ALL:
            raise ValueError(f"Unknown connection phase: {phase}")
        with self._lock:
            self.dispatcher.broadcast(phase_event(phase))
