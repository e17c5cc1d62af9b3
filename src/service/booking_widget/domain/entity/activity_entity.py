from datetime import datetime
from decimal import Decimal
from typing import Dict, FrozenSet, Optional, Tuple

import attrs

from src.service.booking_widget.domain.enum import ActivityStatus
from src.service.booking_widget.domain.value_object.money import to_money
from src.service.booking_widget.domain.value_object.schedule_rule import (
    DEFAULT_SCHEDULE,
    DayHours,
    ScheduleRule,
)
from src.service.booking_widget.domain.value_object.ticket import TicketType
from src.service.booking_widget.domain.value_object.wall_clock import parse_wall_clock


DEFAULT_ACTIVITY_NAME = 'Untitled Event'
DEFAULT_CAPACITY = 8
DEFAULT_DURATION_MINUTES = 60
STANDARD_TICKET_TYPE_ID = 'standard'


@attrs.define(frozen=True)
class BlockedTimeRange:
    """Partial-day block: slots starting inside [start_time, end_time) are withheld"""

    date: str
    start_time: str
    end_time: str

    def covers(self, date: str, start_minutes: int) -> bool:
        if date != self.date:
            return False
        start = parse_wall_clock(self.start_time)
        end = parse_wall_clock(self.end_time)
        if start is None or end is None:
            return False
        return start <= start_minutes < end


@attrs.define
class Activity:
    id: str
    name: str
    organization_id: str
    capacity: int = attrs.field(default=DEFAULT_CAPACITY, validator=attrs.validators.ge(0))
    base_price: Decimal = attrs.field(default=Decimal('0.00'), converter=to_money)
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    description: str = ''
    schedule: ScheduleRule = DEFAULT_SCHEDULE
    blocked_dates: FrozenSet[str] = attrs.field(factory=frozenset, converter=frozenset)
    blocked_time_ranges: Tuple[BlockedTimeRange, ...] = attrs.field(factory=tuple, converter=tuple)
    # ISO date → optional hours override for that date
    custom_available_dates: Dict[str, Optional[DayHours]] = attrs.field(factory=dict)
    venue_id: Optional[str] = None
    timezone: Optional[str] = None
    status: ActivityStatus = ActivityStatus.ACTIVE
    difficulty: int = 3
    difficulty_label: str = 'Medium'
    min_players: int = 1
    ticket_types: Tuple[TicketType, ...] = attrs.field(factory=tuple, converter=tuple)
    price_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == ActivityStatus.ACTIVE

    def is_date_blocked(self, date: str) -> bool:
        return date in self.blocked_dates

    def is_time_blocked(self, date: str, start_minutes: int) -> bool:
        return any(block.covers(date, start_minutes) for block in self.blocked_time_ranges)

    def effective_ticket_types(self) -> Tuple[TicketType, ...]:
        """Configured ticket types, or a single standard ticket at base price"""
        if self.ticket_types:
            return self.ticket_types
        return (TicketType(id=STANDARD_TICKET_TYPE_ID, name='Standard', price=self.base_price),)

    def find_ticket_type(self, ticket_type_id: str) -> Optional[TicketType]:
        for ticket_type in self.effective_ticket_types():
            if ticket_type.id == ticket_type_id:
                return ticket_type
        return None
