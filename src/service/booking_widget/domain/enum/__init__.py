"""Booking Widget Domain Enums"""

from src.service.booking_widget.domain.enum.booking_status import (
    ActivityStatus,
    BookingSource,
    BookingStatus,
    VoucherStatus,
)
from src.service.booking_widget.domain.enum.entity_kind import EntityKind
from src.service.booking_widget.domain.enum.wizard_step import DiscountType, WizardStep

__all__ = [
    'ActivityStatus',
    'BookingSource',
    'BookingStatus',
    'DiscountType',
    'EntityKind',
    'VoucherStatus',
    'WizardStep',
]
