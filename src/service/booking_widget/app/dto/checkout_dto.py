"""Checkout hand-off DTOs."""

from decimal import Decimal
from typing import Optional

import attrs

from src.service.booking_widget.domain.entity.booking_entity import Booking
from src.service.booking_widget.domain.pricing_domain import PriceBreakdown
from src.service.booking_widget.domain.value_object.customer_contact import SanitizedContact
from src.service.booking_widget.domain.value_object.discount import AppliedDiscounts


@attrs.define(frozen=True)
class CheckoutRequest:
    """
    Everything the reservation collaborator needs to open a payment session.

    session_id set → session mode (backend decrements that session);
    session_id None → template mode (slot generated from the schedule).
    """

    venue_id: Optional[str]
    activity_id: str
    date: str
    start_time: str
    end_time: str
    party_size: int
    contact: SanitizedContact
    total: Decimal
    session_id: Optional[str] = None
    price_reference: Optional[str] = None
    promo_code: Optional[str] = None
    gift_card_code: Optional[str] = None

    @property
    def is_session_mode(self) -> bool:
        return self.session_id is not None


@attrs.define(frozen=True)
class CheckoutResult:
    redirect_url: Optional[str] = None
    reservation_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.redirect_url is not None and self.error is None


@attrs.define(frozen=True)
class CheckoutOutcome:
    """What the widget gets back from a successful submission"""

    booking: Booking
    redirect_url: str
    breakdown: PriceBreakdown
    # discounts as re-validated at submit (gift card balance refreshed)
    discounts: AppliedDiscounts = attrs.field(factory=AppliedDiscounts)
