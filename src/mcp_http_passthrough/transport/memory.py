"""
In-memory message-stream transport, mainly for tests and embedding.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from ..core.capability import TransportKind

logger = logging.getLogger(__name__)

_CLOSED = object()


class InMemoryTransport:
    """
    One end of a linked pair of message queues.

    Messages cross as JSON text, so whatever is sent must be representable
    on a real wire. There is no HTTP exchange behind it.
    """

    kind = TransportKind.IN_MEMORY

    def __init__(self) -> None:
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._peer: "InMemoryTransport | None" = None
        self._closed = False

    @classmethod
    def create_linked_pair(cls) -> tuple["InMemoryTransport", "InMemoryTransport"]:
        """Create two transports, each delivering into the other."""
        first, second = cls(), cls()
        first._peer, second._peer = second, first
        return first, second

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: dict[str, Any]) -> None:
        if self._closed or self._peer is None or self._peer._closed:
            raise ConnectionError("In-memory transport is closed")
        await self._peer._inbox.put(json.dumps(message))

    async def receive(self) -> dict[str, Any] | None:
        """Next message from the peer, or None once either side closed."""
        item = await self._inbox.get()
        if item is _CLOSED:
            return None
        return json.loads(item)

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            message = await self.receive()
            if message is None:
                return
            yield message

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._inbox.put_nowait(_CLOSED)
        if self._peer is not None and not self._peer._closed:
            self._peer._inbox.put_nowait(_CLOSED)
        logger.debug("In-memory transport closed")
