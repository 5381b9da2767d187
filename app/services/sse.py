from __future__ import annotations
import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol

from .relay import DoorRelay

logger = logging.getLogger(__name__)

KEEPALIVE_COMMENT = ": keepalive\n\n"


class ChannelClosed(Exception):
    pass


class DisconnectAware(Protocol):
    async def is_disconnected(self) -> bool:
        ...


def format_event(data: str) -> str:
    return f"data: {data}\n\n"


class QueueChannel:
    """Event channel backed by a bounded asyncio.Queue, drained by one response.

    Must be fed from the event loop thread.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, data: str) -> None:
        if self._closed:
            raise ChannelClosed("stream already closed")
        try:
            self._queue.put_nowait(format_event(data))
        except asyncio.QueueFull:
            self._closed = True
            raise ChannelClosed("client is not keeping up")

    async def receive(self) -> Optional[str]:
        """Next formatted event; None once the channel was closed and drained."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        self._closed = True


async def stream_events(
    relay: DoorRelay,
    request: DisconnectAware,
    *,
    keepalive_seconds: float = 15.0,
    queue_size: int = 100,
) -> AsyncIterator[str]:
    channel = QueueChannel(maxsize=queue_size)
    sub = relay.registry.register(channel)
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(channel.receive(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                if channel.closed:
                    break
                yield KEEPALIVE_COMMENT
                continue
            if event is None:
                break
            yield event
    finally:
        channel.close()
        relay.registry.unregister(sub)
