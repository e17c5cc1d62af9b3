"""
In-memory Topic Broadcaster Interface

Async pub/sub for push notifications within one process (live session
changes per activity).
"""

from typing import Protocol

from anyio.streams.memory import MemoryObjectReceiveStream


class IInMemoryBroadcaster(Protocol):
    """
    Interface for in-memory topic broadcasting

    Uses anyio's MemoryObjectStream for async iteration and bounded buffers.
    """

    async def subscribe(self, *, topic: str) -> MemoryObjectReceiveStream[dict]:
        """
        Subscribe to a topic

        Returns:
            MemoryObjectReceiveStream that will receive event dictionaries
        """
        ...

    async def broadcast(self, *, topic: str, event_data: dict) -> None:
        """
        Broadcast event to all subscribers of topic

        Note:
            - Silently ignores if no subscribers exist
            - Drops event if subscriber stream is full (prevents blocking)
        """
        ...

    async def unsubscribe(self, *, topic: str, stream: MemoryObjectReceiveStream[dict]) -> None:
        """Unsubscribe and close the stream. Safe to call with unknown stream."""
        ...
