"""
In-memory Session Change Source

Per-activity push channel for live session changes, carried by the platform
topic broadcaster. Producers (backend webhooks, tests, admin tooling in the
same process) call `publish`; feeds subscribe per activity.
"""

from typing import Any, Mapping, Optional

from anyio.streams.memory import MemoryObjectReceiveStream

from src.platform.event.i_in_memory_broadcaster import IInMemoryBroadcaster
from src.service.booking_widget.app.interface.i_live_session_gateway import ISessionChangeSource
from src.service.booking_widget.domain.value_object.live_session import SessionChangeType


def session_topic(activity_id: str) -> str:
    return f'activity_sessions:{activity_id}'


class InMemorySessionChangeSource(ISessionChangeSource):
    def __init__(self, *, broadcaster: IInMemoryBroadcaster) -> None:
        self.broadcaster = broadcaster

    async def subscribe(self, *, activity_id: str) -> MemoryObjectReceiveStream[dict]:
        return await self.broadcaster.subscribe(topic=session_topic(activity_id))

    async def unsubscribe(
        self, *, activity_id: str, stream: MemoryObjectReceiveStream[dict]
    ) -> None:
        await self.broadcaster.unsubscribe(topic=session_topic(activity_id), stream=stream)

    async def publish(
        self,
        *,
        activity_id: str,
        change_type: SessionChangeType,
        record: Optional[Mapping[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> None:
        await self.broadcaster.broadcast(
            topic=session_topic(activity_id),
            event_data={
                'event_type': str(change_type),
                'record': dict(record) if record is not None else None,
                'session_id': session_id,
            },
        )
