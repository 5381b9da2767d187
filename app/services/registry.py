from __future__ import annotations
import logging
from threading import Lock
from typing import Callable

from ..domain.interfaces import EventChannel
from .state_store import StateStore

logger = logging.getLogger(__name__)


class Subscriber:
    """Opaque handle for one connected stream client."""

    __slots__ = ("channel",)

    def __init__(self, channel: EventChannel) -> None:
        self.channel = channel


class SubscriberRegistry:
    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._lock = Lock()
        self._subscribers: list[Subscriber] = []

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def register(self, channel: EventChannel) -> Subscriber:
        """Add a subscriber and hand it the current state straight away.

        If that first delivery fails, the subscriber is never added; the
        exception propagates to the caller.
        """
        with self._lock:
            if any(s.channel is channel for s in self._subscribers):
                raise ValueError("Channel is already registered")
        channel.send(self._store.get().to_json())

        sub = Subscriber(channel)
        with self._lock:
            self._subscribers.append(sub)
            total = len(self._subscribers)
        logger.info("Stream client connected (total=%d)", total)
        return sub

    def unregister(self, sub: Subscriber) -> None:
        with self._lock:
            try:
                self._subscribers.remove(sub)
            except ValueError:
                return
            total = len(self._subscribers)
        logger.info("Stream client disconnected (total=%d)", total)

    def for_each(self, fn: Callable[[Subscriber], None]) -> None:
        # Iterate a copy: fn may unregister subscribers as it goes.
        with self._lock:
            snapshot = list(self._subscribers)
        for sub in snapshot:
            fn(sub)
