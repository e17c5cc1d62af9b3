"""
Live Session Gateway Interface

Authoritative backend sessions for an activity. When a live session exists for
a date it wins over procedurally generated slots.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Protocol

from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream

from src.service.booking_widget.domain.value_object.live_session import LiveSession


class ILiveSessionGateway(ABC):
    @abstractmethod
    async def list_sessions(
        self, *, activity_id: str, start: datetime, end: datetime
    ) -> List[LiveSession]:
        """
        Sessions starting within [start, end)

        Raises:
            NetworkError: transport failure or non-success status
        """
        pass

    @abstractmethod
    async def check_session_availability(self, *, session_id: str) -> Optional[int]:
        """Remaining capacity of one session, None if the session is unknown"""
        pass


class ISessionChangeSource(ABC):
    """Push channel of INSERT / UPDATE / DELETE session changes per activity"""

    @abstractmethod
    async def subscribe(self, *, activity_id: str) -> MemoryObjectReceiveStream[dict]:
        """
        Returns:
            Stream of raw change dicts `{event_type, record?, session_id?}`
        """
        pass

    @abstractmethod
    async def unsubscribe(
        self, *, activity_id: str, stream: MemoryObjectReceiveStream[dict]
    ) -> None:
        pass


class ILiveSessionFeed(Protocol):
    """Keeps one (activity, date) session list fresh from the push channel"""

    async def refresh(self) -> List[LiveSession]: ...

    async def start(self, *, task_group: TaskGroup) -> None: ...

    def stop(self) -> None: ...
