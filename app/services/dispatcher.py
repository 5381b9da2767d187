from __future__ import annotations
import logging

from .registry import Subscriber, SubscriberRegistry

logger = logging.getLogger(__name__)


class BroadcastDispatcher:
    def __init__(self, registry: SubscriberRegistry) -> None:
        self._registry = registry

    def broadcast(self, data: str) -> int:
        """Push ``data`` to every subscriber, dropping the ones that fail.

        Returns the number of successful deliveries.
        """
        delivered = 0
        failed: list[Subscriber] = []

        def deliver(sub: Subscriber) -> None:
            nonlocal delivered
            try:
                sub.channel.send(data)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping stream client after failed write: %s", e)
                failed.append(sub)

        self._registry.for_each(deliver)

        for sub in failed:
            self._registry.unregister(sub)

        logger.info("Broadcast to %d client(s) (%d dropped)", delivered, len(failed))
        return delivered
