from __future__ import annotations
from typing import Protocol, runtime_checkable


@runtime_checkable
class EventChannel(Protocol):
    """Sink pushing serialized events to one connected client.

    ``send`` must not block; it raises when the client can no longer be
    reached, which the dispatcher treats as a disconnect.
    """

    def send(self, data: str) -> None:
        ...
