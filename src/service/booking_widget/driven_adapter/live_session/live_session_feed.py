"""
Live Session Feed

Holds the current live sessions of one (activity, date) and keeps them fresh
from the push channel:

- UPDATE → merge the changed fields into the session with the same id
- INSERT / DELETE → refetch the whole list
- UPDATE for an unknown id → refetch
"""

from typing import Any, Callable, Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo

import anyio
from anyio.abc import TaskGroup
import attrs

from src.platform.exception.exceptions import CustomBaseError
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.app.interface.i_live_session_gateway import (
    ILiveSessionGateway,
    ISessionChangeSource,
)
from src.service.booking_widget.domain.availability_domain import (
    local_day_bounds,
    sessions_on_date,
    slots_from_sessions,
)
from src.service.booking_widget.domain.value_object.live_session import (
    LiveSession,
    SessionChange,
    SessionChangeType,
)
from src.service.booking_widget.domain.value_object.slot import Slot


SlotsCallback = Callable[[List[Slot]], None]


def merge_session(existing: LiveSession, record: Mapping[str, Any]) -> LiveSession:
    """Apply only the fields present in a partial UPDATE record"""
    changes: Dict[str, Any] = {}
    for name in ('capacity_remaining', 'capacity_total'):
        if record.get(name) is not None:
            try:
                changes[name] = int(record[name])
            except (TypeError, ValueError):
                Logger.base.warning(f'⚠️ [LIVE-FEED] Ignoring bad {name}={record[name]!r}')
    if isinstance(record.get('start_time'), str):
        parsed = LiveSession.from_payload({'id': existing.id, 'start_time': record['start_time']})
        if parsed is not None:
            changes['start_time'] = parsed.start_time
    return attrs.evolve(existing, **changes)


class LiveSessionFeed:
    def __init__(
        self,
        *,
        activity_id: str,
        date_iso: str,
        tz: ZoneInfo,
        gateway: ILiveSessionGateway,
        change_source: ISessionChangeSource,
        on_change: Optional[SlotsCallback] = None,
    ) -> None:
        self.activity_id = activity_id
        self.date_iso = date_iso
        self.tz = tz
        self.gateway = gateway
        self.change_source = change_source
        self.on_change = on_change
        self._sessions: Dict[str, LiveSession] = {}
        self._scope: Optional[anyio.CancelScope] = None
        self._stopped = False

    @property
    def sessions(self) -> List[LiveSession]:
        return sorted(self._sessions.values(), key=lambda s: s.start_time)

    @property
    def slots(self) -> List[Slot]:
        return slots_from_sessions(
            sessions_on_date(self._sessions.values(), date_iso=self.date_iso, tz=self.tz),
            tz=self.tz,
        )

    async def refresh(self) -> List[LiveSession]:
        start, end = local_day_bounds(self.date_iso, self.tz)
        fetched = await self.gateway.list_sessions(
            activity_id=self.activity_id, start=start, end=end
        )
        self._sessions = {session.id: session for session in fetched}
        return self.sessions

    async def apply_change(self, event_data: Mapping[str, Any]) -> bool:
        """
        Apply one raw change message

        Returns:
            True if the session list changed (callback fired)
        """
        change = SessionChange.from_event_data(event_data)
        if change is None:
            Logger.base.warning(f'⚠️ [LIVE-FEED] Unknown change type: {event_data!r}')
            return False
        change_type, sid = change.change_type, change.session_id

        if change_type == SessionChangeType.UPDATE and sid in self._sessions:
            self._sessions[sid] = merge_session(self._sessions[sid], change.record)
            Logger.base.debug(f'🔄 [LIVE-FEED] Merged update for session {sid}')
        else:
            try:
                await self.refresh()
            except CustomBaseError as e:
                Logger.base.warning(
                    f'⚠️ [LIVE-FEED] Refetch after {change_type} failed, keeping last list: {e.message}'
                )
                return False
            Logger.base.debug(f'🔄 [LIVE-FEED] Refetched after {change_type}')

        if self.on_change:
            self.on_change(self.slots)
        return True

    async def run(self) -> None:
        """Consume the push channel until `stop` is called or the stream closes"""
        if self._stopped:
            return
        stream = await self.change_source.subscribe(activity_id=self.activity_id)
        Logger.base.info(f'📡 [LIVE-FEED] Listening for {self.activity_id} on {self.date_iso}')
        try:
            with anyio.CancelScope() as scope:
                self._scope = scope
                if self._stopped:
                    scope.cancel()
                async for event_data in stream:
                    await self.apply_change(event_data)
        finally:
            self._scope = None
            await self.change_source.unsubscribe(activity_id=self.activity_id, stream=stream)
            Logger.base.info(f'📡 [LIVE-FEED] Stopped for {self.activity_id}')

    async def start(self, *, task_group: TaskGroup) -> None:
        task_group.start_soon(self.run)  # pyrefly: ignore[bad-argument-type]

    def stop(self) -> None:
        self._stopped = True
        if self._scope is not None:
            self._scope.cancel()
