"""
Schedule rule for one activity.

Resolved in three tiers: built-in defaults < organization defaults <
per-activity override. Every tier is a raw mapping (camelCase or snake_case
keys); values that fail to parse fall through to the tier below.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

import attrs

from src.service.booking_widget.domain.value_object.wall_clock import (
    format_24h,
    parse_wall_clock,
)


WEEKDAYS: Tuple[str, ...] = (
    'Monday',
    'Tuesday',
    'Wednesday',
    'Thursday',
    'Friday',
    'Saturday',
    'Sunday',
)


def normalize_weekday(value: object) -> Optional[str]:
    """'mon' / 'MONDAY' / 'Monday' → 'Monday'"""
    if not isinstance(value, str) or len(value.strip()) < 3:
        return None
    lowered = value.strip().lower()
    for day in WEEKDAYS:
        if lowered == day.lower() or lowered == day[:3].lower():
            return day
    return None


@attrs.define(frozen=True)
class DayHours:
    start_time: str
    end_time: str

    @property
    def start_minutes(self) -> int:
        return parse_wall_clock(self.start_time) or 0

    @property
    def end_minutes(self) -> int:
        return parse_wall_clock(self.end_time) or 0

    @classmethod
    def from_raw(cls, raw: object) -> Optional['DayHours']:
        if not isinstance(raw, Mapping):
            return None
        if raw.get('enabled') is False:
            return None
        start = parse_wall_clock(raw.get('startTime', raw.get('start_time')))
        end = parse_wall_clock(raw.get('endTime', raw.get('end_time')))
        if start is None or end is None:
            return None
        return cls(start_time=format_24h(start), end_time=format_24h(end))


@attrs.define(frozen=True)
class ScheduleRule:
    operating_days: Tuple[str, ...] = WEEKDAYS
    start_time: str = '10:00'
    end_time: str = '22:00'
    slot_interval: int = 0  # 0 → step by activity duration
    advance_booking_minutes: int = 0
    max_advance_days: int = 0  # 0 → no limit
    custom_hours: Dict[str, DayHours] = attrs.field(factory=dict)

    def operates_on(self, weekday_index: int) -> bool:
        """Empty operating_days means open every day"""
        return not self.operating_days or WEEKDAYS[weekday_index] in self.operating_days

    def hours_for(self, weekday_index: int) -> tuple[int, int]:
        custom = self.custom_hours.get(WEEKDAYS[weekday_index])
        if custom:
            return custom.start_minutes, custom.end_minutes
        return parse_wall_clock(self.start_time) or 0, parse_wall_clock(self.end_time) or 0

    def interval_for(self, duration_minutes: int) -> int:
        return self.slot_interval if self.slot_interval > 0 else max(1, duration_minutes)

    def to_record(self) -> dict:
        return {
            'operatingDays': list(self.operating_days),
            'startTime': self.start_time,
            'endTime': self.end_time,
            'slotInterval': self.slot_interval,
            'advanceBookingMinutes': self.advance_booking_minutes,
            'maxAdvanceDays': self.max_advance_days,
            'customHours': {
                day: {'enabled': True, 'startTime': hours.start_time, 'endTime': hours.end_time}
                for day, hours in self.custom_hours.items()
            },
        }


DEFAULT_SCHEDULE = ScheduleRule()


def _pick(raw: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None


def _non_negative_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number >= 0 else None


def _layer_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Parse one tier into ScheduleRule field values, skipping unusable entries"""
    fields: Dict[str, Any] = {}

    days = _pick(raw, 'operatingDays', 'operating_days')
    if isinstance(days, (list, tuple)):
        normalized = [d for d in (normalize_weekday(day) for day in days) if d]
        # keep weekday order, drop duplicates
        fields['operating_days'] = tuple(day for day in WEEKDAYS if day in normalized)

    for field_name, names in (
        ('start_time', ('startTime', 'start_time')),
        ('end_time', ('endTime', 'end_time')),
    ):
        minutes = parse_wall_clock(_pick(raw, *names))
        if minutes is not None:
            fields[field_name] = format_24h(minutes)

    for field_name, names in (
        ('slot_interval', ('slotInterval', 'slot_interval')),
        ('advance_booking_minutes', ('advanceBookingMinutes', 'advance_booking_minutes')),
        ('max_advance_days', ('maxAdvanceDays', 'max_advance_days', 'advanceBooking')),
    ):
        number = _non_negative_int(_pick(raw, *names))
        if number is not None:
            fields[field_name] = number

    custom = _pick(raw, 'customHours', 'custom_hours')
    if isinstance(custom, Mapping) and raw.get('customHoursEnabled', True) is not False:
        hours = {}
        for day_name, day_raw in custom.items():
            day = normalize_weekday(day_name)
            parsed = DayHours.from_raw(day_raw)
            if day and parsed:
                hours[day] = parsed
        fields['custom_hours'] = hours

    return fields


def resolve_schedule(*layers: Optional[Mapping[str, Any]]) -> ScheduleRule:
    """Merge tiers left to right over DEFAULT_SCHEDULE; later tiers win per field"""
    rule = DEFAULT_SCHEDULE
    for layer in layers:
        if isinstance(layer, Mapping):
            rule = attrs.evolve(rule, **_layer_fields(layer))
    return rule
