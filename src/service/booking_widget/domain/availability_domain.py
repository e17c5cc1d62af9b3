"""
Availability Domain
Pure slot computation: no storage, no network. Callers pass bookings, the
current instant and the timezone to evaluate wall-clock times in.
"""

import calendar
from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import Iterable, Iterator, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import attrs

from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.domain.entity.activity_entity import Activity
from src.service.booking_widget.domain.entity.booking_entity import Booking
from src.service.booking_widget.domain.value_object.live_session import LiveSession
from src.service.booking_widget.domain.value_object.slot import Slot
from src.service.booking_widget.domain.value_object.wall_clock import (
    format_12h,
    parse_wall_clock,
)


class UnavailableReason(StrEnum):
    BLOCKED = 'Date blocked by admin'
    NOT_OPERATING = 'Not operating on this day'
    BEYOND_ADVANCE_WINDOW = 'Beyond advance booking window'
    PAST_DATE = 'Past date'


@attrs.define(frozen=True)
class DateAvailability:
    date: str
    available: bool
    reason: Optional[UnavailableReason] = None


def resolve_timezone(*candidates: Optional[str]) -> ZoneInfo:
    """First loadable IANA name wins (activity tz, venue tz, configured default)"""
    for name in candidates:
        if not name:
            continue
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            Logger.base.warning(f'⚠️ [AVAILABILITY] Unknown timezone {name!r}, falling back')
    return ZoneInfo('UTC')


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def is_date_admissible(activity: Activity, day: date) -> bool:
    """Explicit allow-list date, or a weekday the schedule operates on"""
    return day.isoformat() in activity.custom_available_dates or activity.schedule.operates_on(
        day.weekday()
    )


def is_beyond_advance_window(activity: Activity, day: date, today: date) -> bool:
    max_days = activity.schedule.max_advance_days
    return max_days > 0 and day > today + timedelta(days=max_days)


def candidate_start_times(activity: Activity, day: date) -> Iterator[int]:
    """Start minutes from opening, stepped by interval, whose session ends by closing"""
    custom_hours = activity.custom_available_dates.get(day.isoformat())
    if custom_hours:
        opening, closing = custom_hours.start_minutes, custom_hours.end_minutes
    else:
        opening, closing = activity.schedule.hours_for(day.weekday())

    duration = activity.duration_minutes
    interval = activity.schedule.interval_for(duration)
    start = opening
    while start + duration <= closing:
        yield start
        start += interval


def consumed_participants(
    bookings: Iterable[Booking], *, activity_id: str, date_iso: str, start_minutes: int
) -> int:
    return sum(
        booking.participants
        for booking in bookings
        if booking.holds_capacity
        and booking.activity_id == activity_id
        and booking.date == date_iso
        and parse_wall_clock(booking.time) == start_minutes
    )


@Logger.io(truncate_content=True)
def generate_slots(
    activity: Activity,
    date_iso: str,
    *,
    bookings: Sequence[Booking],
    now: datetime,
    tz: ZoneInfo,
) -> List[Slot]:
    """
    Procedural slots for one date

    Flow:
    1. Blocked date → []
    2. Not a custom available date and not an operating weekday → []
    3. Beyond the advance booking window → []
    4. Candidates that end by closing, minus (today only) those starting before
       now + advance_booking_minutes, minus partial-day blocks
    5. spots = max(0, capacity - confirmed participants at that exact time)
    """
    day = _parse_date(date_iso)
    if day is None:
        Logger.base.warning(f'⚠️ [AVAILABILITY] Invalid date {date_iso!r}')
        return []
    if activity.is_date_blocked(date_iso):
        return []
    if not is_date_admissible(activity, day):
        return []

    local_now = now.astimezone(tz)
    if is_beyond_advance_window(activity, day, local_now.date()):
        return []

    cutoff: Optional[int] = None
    if day == local_now.date():
        cutoff = local_now.hour * 60 + local_now.minute + activity.schedule.advance_booking_minutes

    slots = []
    for start in candidate_start_times(activity, day):
        if cutoff is not None and start < cutoff:
            continue
        if activity.is_time_blocked(date_iso, start):
            continue
        consumed = consumed_participants(
            bookings, activity_id=activity.id, date_iso=date_iso, start_minutes=start
        )
        slots.append(
            Slot.from_capacity(time=format_12h(start), capacity=activity.capacity, consumed=consumed)
        )
    return slots


def slots_from_sessions(sessions: Iterable[LiveSession], *, tz: ZoneInfo) -> List[Slot]:
    """One slot per live session, ordered by start; times rendered as local wall-clock"""
    slots = []
    for session in sorted(sessions, key=lambda s: s.start_time):
        local_start = session.start_time.astimezone(tz)
        slots.append(
            Slot.from_capacity(
                time=format_12h(local_start.hour * 60 + local_start.minute),
                capacity=max(0, session.capacity_remaining),
                session_id=session.id,
            )
        )
    return slots


def sessions_on_date(sessions: Iterable[LiveSession], *, date_iso: str, tz: ZoneInfo) -> List[LiveSession]:
    return [s for s in sessions if s.start_time.astimezone(tz).date().isoformat() == date_iso]


def local_day_bounds(date_iso: str, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """[start, end) of the local calendar day as aware datetimes"""
    day = date.fromisoformat(date_iso)
    start = datetime(day.year, day.month, day.day, tzinfo=tz)
    return start, start + timedelta(days=1)


def available_dates_for_month(
    activity: Activity, year: int, month: int, *, now: datetime, tz: ZoneInfo
) -> List[DateAvailability]:
    today = now.astimezone(tz).date()
    result = []
    for day_number in range(1, calendar.monthrange(year, month)[1] + 1):
        day = date(year, month, day_number)
        if activity.is_date_blocked(day.isoformat()):
            reason: Optional[UnavailableReason] = UnavailableReason.BLOCKED
        elif not is_date_admissible(activity, day):
            reason = UnavailableReason.NOT_OPERATING
        elif is_beyond_advance_window(activity, day, today):
            reason = UnavailableReason.BEYOND_ADVANCE_WINDOW
        elif day < today:
            reason = UnavailableReason.PAST_DATE
        else:
            reason = None
        result.append(DateAvailability(date=day.isoformat(), available=reason is None, reason=reason))
    return result


def has_available_slots(
    activity: Activity,
    date_iso: str,
    *,
    bookings: Sequence[Booking],
    now: datetime,
    tz: ZoneInfo,
) -> bool:
    return any(
        slot.available
        for slot in generate_slots(activity, date_iso, bookings=bookings, now=now, tz=tz)
    )
