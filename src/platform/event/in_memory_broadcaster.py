"""
In-memory Topic Broadcaster Implementation

Distributes push notifications (e.g. live session INSERT/UPDATE/DELETE for an
activity) to every subscribed feed in the process.
"""

from typing import Dict, List

from anyio import WouldBlock, create_memory_object_stream
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from src.platform.logging.loguru_io import Logger


class InMemoryBroadcasterImpl:
    """
    In-memory pub/sub keyed by topic

    Memory Management:
    - Stream max buffer: `max_buffer_size` events
    - Drop policy: drop with a warning if stream full (send_nowait raises WouldBlock)
    - Cleanup: remove empty lists on unsubscribe and close streams
    """

    def __init__(self, *, max_buffer_size: int = 10) -> None:
        self._max_buffer_size = max_buffer_size
        # topic → list of (send_stream, receive_stream) tuples
        self._subscribers: Dict[
            str, List[tuple[MemoryObjectSendStream[dict], MemoryObjectReceiveStream[dict]]]
        ] = {}

    async def subscribe(self, *, topic: str) -> MemoryObjectReceiveStream[dict]:
        send_stream, receive_stream = create_memory_object_stream[dict](
            max_buffer_size=self._max_buffer_size
        )
        self._subscribers.setdefault(topic, []).append((send_stream, receive_stream))

        Logger.base.debug(
            f'📡 [BROADCASTER] Subscribed to {topic} '
            f'(total subscribers: {len(self._subscribers[topic])})'
        )
        return receive_stream

    async def broadcast(self, *, topic: str, event_data: dict) -> None:
        if topic not in self._subscribers:
            Logger.base.debug(f'📡 [BROADCASTER] No subscribers for {topic}')
            return

        delivered = 0
        dropped = 0
        for send_stream, _ in self._subscribers[topic]:
            try:
                send_stream.send_nowait(event_data)
                delivered += 1
            except WouldBlock:
                dropped += 1
                Logger.base.warning(
                    f'⚠️ [BROADCASTER] Stream full for {topic}, '
                    f'dropping event (type={event_data.get("event_type")})'
                )

        Logger.base.debug(
            f'📡 [BROADCASTER] Broadcast to {topic}: delivered={delivered}, dropped={dropped}'
        )

    async def unsubscribe(self, *, topic: str, stream: MemoryObjectReceiveStream[dict]) -> None:
        if topic not in self._subscribers:
            return

        subscribers = self._subscribers[topic]
        for i, (send_stream, receive_stream) in enumerate(subscribers):
            if receive_stream is stream:
                await send_stream.aclose()
                await receive_stream.aclose()
                subscribers.pop(i)
                Logger.base.debug(
                    f'📡 [BROADCASTER] Unsubscribed from {topic} (remaining: {len(subscribers)})'
                )
                break

        if not subscribers:
            del self._subscribers[topic]
