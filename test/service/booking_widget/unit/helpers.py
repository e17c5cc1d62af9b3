"""
Test helpers for booking widget unit tests

Raw-record builders (the shape the store persists) and gateway doubles.
"""

from decimal import Decimal
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

from src.service.booking_widget.app.dto.checkout_dto import CheckoutResult
from src.service.booking_widget.domain.entity.activity_entity import Activity
from src.service.booking_widget.domain.entity.booking_entity import Booking
from src.service.booking_widget.domain.entity_normalizer import (
    normalize_activity,
    normalize_booking,
)
from src.service.booking_widget.domain.enum import DiscountType
from src.service.booking_widget.domain.value_object.discount import (
    GiftCardValidationResult,
    PromoCodeDiscount,
    PromoValidationResult,
    TicketTypePromo,
    TicketTypePromoValidationResult,
)
from src.service.booking_widget.domain.value_object.ticket import CartItem
from test.constants import (
    BOOKING_DATE,
    DEFAULT_ORGANIZATION_ID,
    DEFAULT_VENUE_ID,
    ESCAPE_ROOM_ID,
    ESCAPE_ROOM_NAME,
)


def activity_record(**overrides: Any) -> Dict[str, Any]:
    """
    Escape room open every day 10:00-22:00, 60 minute sessions, capacity 8

    Produces slots 10:00 AM ... 9:00 PM on any date.
    """
    record: Dict[str, Any] = {
        'id': ESCAPE_ROOM_ID,
        'name': ESCAPE_ROOM_NAME,
        'organizationId': DEFAULT_ORGANIZATION_ID,
        'venueId': DEFAULT_VENUE_ID,
        'timezone': 'UTC',
        'capacity': 8,
        'basePrice': 30,
        'duration': 60,
        'schedule': {
            'operatingDays': ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday'],
            'startTime': '10:00',
            'endTime': '22:00',
        },
        'ticketTypes': [
            {'id': 'adult', 'name': 'Adult', 'price': 30},
            {'id': 'child', 'name': 'Child', 'price': 20},
        ],
    }
    record.update(overrides)
    return record


def booking_record(
    *,
    booking_id: str,
    participants: int,
    time: str = '10:00 AM',
    date: str = BOOKING_DATE,
    status: Optional[str] = 'confirmed',
    activity_id: str = ESCAPE_ROOM_ID,
    **overrides: Any,
) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        'id': booking_id,
        'activityId': activity_id,
        'activityName': ESCAPE_ROOM_NAME,
        'date': date,
        'time': time,
        'participants': participants,
        'customerName': 'Alex Smith',
        'customerEmail': 'alex@example.com',
        'totalPrice': 30 * participants,
    }
    if status is not None:
        record['status'] = status
    record.update(overrides)
    return record


def make_activity(**overrides: Any) -> Activity:
    activity = normalize_activity(
        activity_record(**overrides), default_organization_id=DEFAULT_ORGANIZATION_ID
    )
    assert activity is not None
    return activity


def make_booking(**kwargs: Any) -> Booking:
    booking = normalize_booking(booking_record(**kwargs), default_organization_id=DEFAULT_ORGANIZATION_ID)
    assert booking is not None
    return booking


def cart_item(
    *,
    ticket_type_id: str = 'adult',
    unit_price: str | int = 30,
    quantity: int = 1,
    time: str = '10:00 AM',
    session_id: Optional[str] = None,
) -> CartItem:
    return CartItem(
        activity_id=ESCAPE_ROOM_ID,
        activity_name=ESCAPE_ROOM_NAME,
        ticket_type_id=ticket_type_id,
        ticket_name=ticket_type_id.title(),
        unit_price=unit_price,
        quantity=quantity,
        date=BOOKING_DATE,
        time=time,
        session_id=session_id,
    )


def percentage_promo(code: str = 'SAVE10', value: int = 10) -> PromoCodeDiscount:
    return PromoCodeDiscount(code=code, discount_type=DiscountType.PERCENTAGE, value=value)


def fixed_promo(code: str = 'TENOFF', value: int = 10) -> PromoCodeDiscount:
    return PromoCodeDiscount(code=code, discount_type=DiscountType.FIXED, value=value)


class GatewayMocks:
    """
    Remote collaborators with happy-path defaults

    Every discount validates, every checkout returns a redirect URL.
    Override individual return values per test.
    """

    def __init__(self, *, redirect_url: str = 'https://pay.example.com/session/cs_123') -> None:
        self.discount_gateway = AsyncMock()
        self.discount_gateway.validate_promo_code = AsyncMock(
            side_effect=lambda *, code, amount, activity_id: PromoValidationResult(
                is_valid=True, discount=fixed_promo(code=code)
            )
        )
        self.discount_gateway.validate_ticket_type_promo = AsyncMock(
            side_effect=lambda *, code, ticket_type_id, activity_id: TicketTypePromoValidationResult(
                is_valid=True,
                promo=TicketTypePromo(code=code, ticket_type_id=ticket_type_id, rate=Decimal('0.15')),
            )
        )
        self.discount_gateway.validate_gift_card = AsyncMock(
            return_value=GiftCardValidationResult(is_valid=True, balance=50)
        )

        self.reservation_gateway = AsyncMock()
        self.reservation_gateway.create_checkout = AsyncMock(
            return_value=CheckoutResult(redirect_url=redirect_url, reservation_id='res-001')
        )

        self.session_gateway = AsyncMock()
        self.session_gateway.list_sessions = AsyncMock(return_value=[])
        self.session_gateway.check_session_availability = AsyncMock(return_value=8)
