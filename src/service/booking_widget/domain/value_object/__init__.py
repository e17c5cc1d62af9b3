"""Booking Widget Value Objects"""

from src.service.booking_widget.domain.value_object.customer_contact import (
    CustomerContact,
    SanitizedContact,
)
from src.service.booking_widget.domain.value_object.discount import (
    AppliedDiscounts,
    GiftCardCredit,
    GiftCardValidationResult,
    PromoCodeDiscount,
    PromoValidationResult,
    TicketTypePromo,
    TicketTypePromoValidationResult,
)
from src.service.booking_widget.domain.value_object.envelope import Envelope
from src.service.booking_widget.domain.value_object.live_session import (
    LiveSession,
    SessionChange,
    SessionChangeType,
)
from src.service.booking_widget.domain.value_object.schedule_rule import (
    DayHours,
    ScheduleRule,
    resolve_schedule,
)
from src.service.booking_widget.domain.value_object.slot import Slot
from src.service.booking_widget.domain.value_object.ticket import (
    CartItem,
    TicketSelection,
    TicketType,
)

__all__ = [
    'AppliedDiscounts',
    'CartItem',
    'CustomerContact',
    'DayHours',
    'Envelope',
    'GiftCardCredit',
    'GiftCardValidationResult',
    'LiveSession',
    'PromoCodeDiscount',
    'PromoValidationResult',
    'SanitizedContact',
    'ScheduleRule',
    'SessionChange',
    'SessionChangeType',
    'Slot',
    'TicketSelection',
    'TicketType',
    'TicketTypePromo',
    'TicketTypePromoValidationResult',
    'resolve_schedule',
]
