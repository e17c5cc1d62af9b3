from datetime import date as date_type, datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

import attrs

from src.platform.exception.exceptions import DomainError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.domain.enum import BookingSource, BookingStatus
from src.service.booking_widget.domain.value_object.money import ZERO, to_money
from src.service.booking_widget.domain.value_object.wall_clock import parse_wall_clock


@attrs.define(frozen=True)
class TicketLine:
    ticket_type_id: str
    name: str
    unit_price: Decimal = attrs.field(converter=to_money)
    quantity: int = 0

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@attrs.define
class Booking:
    id: str
    organization_id: str
    activity_id: str
    activity_name: str
    date: str
    time: str
    participants: int
    customer_name: str = ''
    customer_email: str = ''
    customer_phone: str = ''
    ticket_lines: Tuple[TicketLine, ...] = attrs.field(factory=tuple, converter=tuple)
    total_price: Decimal = attrs.field(default=ZERO, converter=to_money)
    status: BookingStatus = BookingStatus.PENDING
    source: BookingSource = BookingSource.WIDGET
    session_id: Optional[str] = None
    venue_id: Optional[str] = None
    promo_code: Optional[str] = None
    gift_card_code: Optional[str] = None
    gift_card_credit: Decimal = attrs.field(default=ZERO, converter=to_money)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def holds_capacity(self) -> bool:
        """Only confirmed bookings consume slot capacity"""
        return self.status == BookingStatus.CONFIRMED

    @classmethod
    @Logger.io
    def create(
        cls,
        *,
        id: str,
        organization_id: str,
        activity_id: str,
        activity_name: str,
        date: str,
        time: str,
        participants: int,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        ticket_lines: Tuple[TicketLine, ...],
        total_price: Decimal,
        status: BookingStatus = BookingStatus.PENDING,
        source: BookingSource = BookingSource.WIDGET,
        session_id: Optional[str] = None,
        venue_id: Optional[str] = None,
        promo_code: Optional[str] = None,
        gift_card_code: Optional[str] = None,
        gift_card_credit: Decimal = ZERO,
    ) -> 'Booking':
        if participants < 1:
            raise DomainError('participants must be at least 1', 400)
        try:
            date_type.fromisoformat(date)
        except ValueError:
            raise ValidationError(f'Invalid booking date: {date!r}', {'date': 'Invalid date'})
        if parse_wall_clock(time) is None:
            raise ValidationError(f'Invalid time format: {time!r}', {'time': 'Invalid time format'})

        now = datetime.now(timezone.utc)
        return cls(
            id=id,
            organization_id=organization_id,
            activity_id=activity_id,
            activity_name=activity_name,
            date=date,
            time=time,
            participants=participants,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            ticket_lines=ticket_lines,
            total_price=total_price,
            status=status,
            source=source,
            session_id=session_id,
            venue_id=venue_id,
            promo_code=promo_code,
            gift_card_code=gift_card_code,
            gift_card_credit=gift_card_credit,
            created_at=now,
            updated_at=now,
        )

    @Logger.io
    def confirm(self) -> 'Booking':
        """Payment succeeded (pending → confirmed)"""
        if self.status != BookingStatus.PENDING:
            raise DomainError(f'Cannot confirm booking in status {self.status}', 409)
        return attrs.evolve(
            self, status=BookingStatus.CONFIRMED, updated_at=datetime.now(timezone.utc)
        )

    @Logger.io
    def fail(self) -> 'Booking':
        """Payment failed or was abandoned (pending → failed)"""
        if self.status != BookingStatus.PENDING:
            raise DomainError(f'Cannot fail booking in status {self.status}', 409)
        return attrs.evolve(self, status=BookingStatus.FAILED, updated_at=datetime.now(timezone.utc))

    @Logger.io
    def cancel(self) -> 'Booking':
        if self.status in (BookingStatus.CANCELLED, BookingStatus.FAILED):
            raise DomainError(f'Cannot cancel booking in status {self.status}', 409)
        return attrs.evolve(
            self, status=BookingStatus.CANCELLED, updated_at=datetime.now(timezone.utc)
        )
