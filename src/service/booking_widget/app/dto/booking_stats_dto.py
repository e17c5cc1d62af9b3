"""Booking statistics DTOs."""

from decimal import Decimal

import attrs


@attrs.define(frozen=True)
class BookingStats:
    total_bookings: int
    confirmed_bookings: int
    pending_bookings: int
    cancelled_bookings: int
    total_revenue: Decimal
    average_order_value: Decimal
