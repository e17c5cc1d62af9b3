from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Sequence

from opentelemetry import trace
import uuid_utils

from src.platform.exception.exceptions import (
    AvailabilityConflictError,
    DiscountInvalidError,
    DomainError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.app.dto.checkout_dto import CheckoutOutcome, CheckoutRequest
from src.service.booking_widget.app.interface.i_discount_validation_gateway import (
    IDiscountValidationGateway,
)
from src.service.booking_widget.app.interface.i_entity_store import IEntityStore
from src.service.booking_widget.app.interface.i_live_session_gateway import ILiveSessionGateway
from src.service.booking_widget.app.interface.i_reservation_gateway import IReservationGateway
from src.service.booking_widget.domain.availability_domain import generate_slots, resolve_timezone
from src.service.booking_widget.domain.entity.activity_entity import Activity
from src.service.booking_widget.domain.entity.booking_entity import Booking, TicketLine
from src.service.booking_widget.domain.enum import BookingStatus, EntityKind
from src.service.booking_widget.domain.pricing_domain import calculate_price, price_with_discounts
from src.service.booking_widget.domain.value_object.customer_contact import CustomerContact
from src.service.booking_widget.domain.value_object.discount import AppliedDiscounts, GiftCardCredit
from src.service.booking_widget.domain.value_object.ticket import CartItem
from src.service.booking_widget.domain.value_object.wall_clock import (
    normalize_time_window,
    same_wall_clock,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubmitCheckoutUseCase:
    """
    Submit checkout - validate, re-check, hand off, record pending booking

    Flow:
    1. Local contact validation (ValidationError with per-field errors)
    2. Remote re-validation of every applied discount (DiscountInvalidError on rejection)
    3. Time normalization to a 24h start/end window (ValidationError if unparseable)
    4. Capacity re-check: live session remaining, or recomputed template slot
       (AvailabilityConflictError)
    5. Hand-off to the reservation backend: session mode with session_id, template mode without
    6. Save the booking as pending (emits bookings-updated)

    Note:
    - Template mode has no atomic capacity decrement here; two concurrent
      submissions for the last spots can both pass step 4. The backend decides.
    """

    def __init__(
        self,
        *,
        entity_store: IEntityStore,
        discount_gateway: IDiscountValidationGateway,
        reservation_gateway: IReservationGateway,
        session_gateway: Optional[ILiveSessionGateway] = None,
        fee_rate: Decimal = Decimal('0.06'),
        default_timezone: str = 'UTC',
        phone_country_code: str = '1',
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.entity_store = entity_store
        self.discount_gateway = discount_gateway
        self.reservation_gateway = reservation_gateway
        self.session_gateway = session_gateway
        self.fee_rate = fee_rate
        self.default_timezone = default_timezone
        self.phone_country_code = phone_country_code
        self.clock = clock
        self.tracer = trace.get_tracer(__name__)

    @Logger.io
    async def revalidate_discounts(
        self, *, activity_id: str, cart: Sequence[CartItem], discounts: AppliedDiscounts
    ) -> AppliedDiscounts:
        """
        Confirm each provisional discount with the backend

        Returns:
            Discounts as the backend sees them now (gift card balance refreshed)

        Raises:
            DiscountInvalidError: first rejected code
        """
        confirmed = AppliedDiscounts()

        for type_id, promo in discounts.ticket_type_promos.items():
            result = await self.discount_gateway.validate_ticket_type_promo(
                code=promo.code, ticket_type_id=type_id, activity_id=activity_id
            )
            if not result.is_valid or result.promo is None:
                raise DiscountInvalidError(result.error or 'Promo code is no longer valid', code=promo.code)
            confirmed = confirmed.with_ticket_type_promo(result.promo)

        if discounts.promo_code is not None:
            running = calculate_price(
                cart, ticket_type_promos=confirmed.ticket_type_promos, fee_rate=self.fee_rate
            ).discounted_subtotal
            result = await self.discount_gateway.validate_promo_code(
                code=discounts.promo_code.code, amount=running, activity_id=activity_id
            )
            if not result.is_valid or result.discount is None:
                raise DiscountInvalidError(
                    result.error or 'Promo code is no longer valid', code=discounts.promo_code.code
                )
            confirmed = confirmed.with_promo_code(result.discount)

        if discounts.gift_card is not None:
            result = await self.discount_gateway.validate_gift_card(code=discounts.gift_card.code)
            if not result.is_valid:
                raise DiscountInvalidError(
                    result.error or 'Gift card is no longer valid', code=discounts.gift_card.code
                )
            confirmed = confirmed.with_gift_card(
                GiftCardCredit(code=discounts.gift_card.code, balance=result.balance)
            )

        return confirmed

    async def _ensure_capacity(
        self,
        *,
        activity: Activity,
        date: str,
        time: str,
        session_id: Optional[str],
        party_size: int,
        venue_timezone: Optional[str] = None,
    ) -> None:
        if session_id is not None and self.session_gateway is not None:
            remaining = await self.session_gateway.check_session_availability(session_id=session_id)
            if remaining is None or remaining < party_size:
                raise AvailabilityConflictError(
                    f'Only {remaining or 0} spots left for the selected session'
                )
            return

        tz = resolve_timezone(activity.timezone, venue_timezone, self.default_timezone)
        slots = generate_slots(
            activity,
            date,
            bookings=self.entity_store.get_all(EntityKind.BOOKINGS),
            now=self.clock(),
            tz=tz,
        )
        slot = next((s for s in slots if same_wall_clock(s.time, time)), None)
        if slot is None or slot.spots < party_size:
            raise AvailabilityConflictError('Selected time is no longer available')

    @Logger.io
    async def submit_checkout(
        self,
        *,
        activity_id: str,
        date: str,
        time: str,
        cart: Sequence[CartItem],
        contact: CustomerContact,
        discounts: AppliedDiscounts,
        session_id: Optional[str] = None,
        venue_timezone: Optional[str] = None,
    ) -> CheckoutOutcome:
        """
        Raises:
            ValidationError: contact fields, empty cart or unparseable time
            NotFoundError: unknown activity
            DiscountInvalidError: a discount was rejected on re-validation
            AvailabilityConflictError: capacity gone since selection
            NetworkError: backend unreachable
            DomainError: backend rejected the checkout
        """
        with self.tracer.start_as_current_span(
            'use_case.submit_checkout',
            attributes={'activity.id': activity_id, 'booking.date': date},
        ):
            contact.ensure_valid()
            if not cart:
                raise ValidationError('Your cart is empty', {'cart': 'Add at least one ticket'})

            activity = self.entity_store.get_by_id(EntityKind.ACTIVITIES, activity_id)
            if activity is None:
                raise NotFoundError(f'Activity {activity_id} not found')

            confirmed = await self.revalidate_discounts(
                activity_id=activity_id, cart=cart, discounts=discounts
            )
            start_time, end_time = normalize_time_window(time, activity.duration_minutes)

            party_size = sum(item.quantity for item in cart)
            await self._ensure_capacity(
                activity=activity,
                date=date,
                time=time,
                session_id=session_id,
                party_size=party_size,
                venue_timezone=venue_timezone,
            )

            breakdown = price_with_discounts(cart, confirmed, fee_rate=self.fee_rate)
            sanitized = contact.sanitized(country_code=self.phone_country_code)
            promo_code = confirmed.promo_code.code if confirmed.promo_code else None
            gift_card_code = confirmed.gift_card.code if confirmed.gift_card else None

            request = CheckoutRequest(
                venue_id=activity.venue_id,
                activity_id=activity_id,
                date=date,
                start_time=start_time,
                end_time=end_time,
                party_size=party_size,
                contact=sanitized,
                total=breakdown.total,
                session_id=session_id,
                price_reference=activity.price_reference,
                promo_code=promo_code,
                gift_card_code=gift_card_code,
            )
            Logger.base.info(
                f'🧾 [CHECKOUT] {"session" if request.is_session_mode else "template"} mode '
                f'{activity_id} {date} {start_time}-{end_time} x{party_size} total={breakdown.total}'
            )
            result = await self.reservation_gateway.create_checkout(request=request)
            if not result.is_success or result.redirect_url is None:
                raise DomainError(result.error or 'Failed to create checkout session', 502)

            booking = Booking.create(
                id=result.reservation_id or str(uuid_utils.uuid7()),
                organization_id=activity.organization_id,
                activity_id=activity_id,
                activity_name=activity.name,
                date=date,
                time=start_time,
                participants=party_size,
                customer_name=sanitized.full_name,
                customer_email=sanitized.email,
                customer_phone=sanitized.phone,
                ticket_lines=tuple(
                    TicketLine(
                        ticket_type_id=item.ticket_type_id,
                        name=item.ticket_name,
                        unit_price=item.unit_price,
                        quantity=item.quantity,
                    )
                    for item in cart
                ),
                total_price=breakdown.total,
                status=BookingStatus.PENDING,
                session_id=session_id,
                venue_id=activity.venue_id,
                promo_code=promo_code,
                gift_card_code=gift_card_code,
                gift_card_credit=breakdown.gift_card_redemption,
            )
            saved = self.entity_store.save(EntityKind.BOOKINGS, booking)
            Logger.base.info(f'✅ [CHECKOUT] Pending booking {saved.id} → payment redirect')
            return CheckoutOutcome(
                booking=saved,
                redirect_url=result.redirect_url,
                breakdown=breakdown,
                discounts=confirmed,
            )
