from datetime import datetime, timezone
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.app.interface.i_entity_store import IEntityStore
from src.service.booking_widget.app.interface.i_live_session_gateway import ILiveSessionGateway
from src.service.booking_widget.domain.availability_domain import (
    DateAvailability,
    available_dates_for_month,
    generate_slots,
    has_available_slots,
    local_day_bounds,
    resolve_timezone,
    sessions_on_date,
    slots_from_sessions,
)
from src.service.booking_widget.domain.entity.activity_entity import Activity
from src.service.booking_widget.domain.enum import EntityKind
from src.service.booking_widget.domain.value_object.slot import Slot


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ComputeSlotsUseCase:
    """
    Slots for (activity, date)

    Flow:
    1. Admin-blocked date → []
    2. Live sessions on that local date, if the backend has any → one slot per session
    3. Any failure or no sessions → procedural slots from the schedule and local bookings

    Dependencies:
    - entity_store: activities and bookings
    - session_gateway: optional; without it only procedural slots are produced
    """

    def __init__(
        self,
        *,
        entity_store: IEntityStore,
        session_gateway: Optional[ILiveSessionGateway] = None,
        default_timezone: str = 'UTC',
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.entity_store = entity_store
        self.session_gateway = session_gateway
        self.default_timezone = default_timezone
        self.clock = clock

    def get_activity(self, activity_id: str) -> Activity:
        activity = self.entity_store.get_by_id(EntityKind.ACTIVITIES, activity_id)
        if activity is None:
            raise NotFoundError(f'Activity {activity_id} not found')
        return activity

    def timezone_for(self, activity: Activity, venue_timezone: Optional[str] = None) -> ZoneInfo:
        return resolve_timezone(activity.timezone, venue_timezone, self.default_timezone)

    async def _live_slots(self, activity: Activity, date: str, tz: ZoneInfo) -> Optional[List[Slot]]:
        if self.session_gateway is None:
            return None
        start, end = local_day_bounds(date, tz)
        try:
            sessions = await self.session_gateway.list_sessions(
                activity_id=activity.id, start=start, end=end
            )
        except Exception as e:
            Logger.base.warning(
                f'⚠️ [SLOTS] Live sessions unavailable for {activity.id} on {date}, '
                f'using schedule: {type(e).__name__}: {e}'
            )
            return None
        on_date = sessions_on_date(sessions, date_iso=date, tz=tz)
        if not on_date:
            return None
        return slots_from_sessions(on_date, tz=tz)

    @Logger.io
    async def compute_slots(
        self, *, activity_id: str, date: str, venue_timezone: Optional[str] = None
    ) -> List[Slot]:
        activity = self.get_activity(activity_id)
        if activity.is_date_blocked(date):
            return []
        tz = self.timezone_for(activity, venue_timezone)

        live = await self._live_slots(activity, date, tz)
        if live is not None:
            Logger.base.debug(f'📡 [SLOTS] {len(live)} live slots for {activity_id} on {date}')
            return live

        return generate_slots(
            activity,
            date,
            bookings=self.entity_store.get_all(EntityKind.BOOKINGS),
            now=self.clock(),
            tz=tz,
        )

    def procedural_slots(
        self, *, activity_id: str, date: str, venue_timezone: Optional[str] = None
    ) -> List[Slot]:
        """Schedule-derived slots only, for synchronous re-derivation on store changes"""
        activity = self.get_activity(activity_id)
        return generate_slots(
            activity,
            date,
            bookings=self.entity_store.get_all(EntityKind.BOOKINGS),
            now=self.clock(),
            tz=self.timezone_for(activity, venue_timezone),
        )

    def available_dates(
        self, *, activity_id: str, year: int, month: int, venue_timezone: Optional[str] = None
    ) -> List[DateAvailability]:
        activity = self.get_activity(activity_id)
        return available_dates_for_month(
            activity, year, month, now=self.clock(), tz=self.timezone_for(activity, venue_timezone)
        )

    def has_available_slots(
        self, *, activity_id: str, date: str, venue_timezone: Optional[str] = None
    ) -> bool:
        activity = self.get_activity(activity_id)
        return has_available_slots(
            activity,
            date,
            bookings=self.entity_store.get_all(EntityKind.BOOKINGS),
            now=self.clock(),
            tz=self.timezone_for(activity, venue_timezone),
        )
