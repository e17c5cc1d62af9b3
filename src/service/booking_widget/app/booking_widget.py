"""
Booking Widget

One instance per embedded widget. Owns the flow state, the provisional
discounts and the in-flight checkout flag; everything else is read from the
entity store or delegated to use cases.
"""

from decimal import Decimal
from typing import Callable, List, Mapping, Optional, Sequence

from anyio.abc import TaskGroup

from src.platform.event.i_event_bus import IEventBus
from src.platform.exception.exceptions import (
    AvailabilityConflictError,
    CustomBaseError,
    DiscountInvalidError,
    DomainError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.app.command.payment_result_use_case import PaymentResultUseCase
from src.service.booking_widget.app.command.submit_checkout_use_case import SubmitCheckoutUseCase
from src.service.booking_widget.app.dto.checkout_dto import CheckoutOutcome
from src.service.booking_widget.app.interface.i_discount_validation_gateway import (
    IDiscountValidationGateway,
)
from src.service.booking_widget.app.interface.i_entity_store import IEntityStore
from src.service.booking_widget.app.interface.i_live_session_gateway import ILiveSessionFeed
from src.service.booking_widget.app.query.compute_slots_use_case import ComputeSlotsUseCase
from src.service.booking_widget.domain.booking_flow_machine import (
    AddToCart,
    BeginPaymentRedirect,
    BookingFlowEvent,
    BookingFlowState,
    ConfigureTickets,
    GoBack,
    PaymentFailed,
    PaymentSucceeded,
    ProceedToCheckout,
    RefreshSlots,
    Reset,
    SelectActivity,
    SelectDate,
    SelectTime,
    SlotConflict,
    transition,
)
from src.service.booking_widget.domain.entity.activity_entity import Activity
from src.service.booking_widget.domain.enum import EntityKind, WizardStep
from src.service.booking_widget.domain.pricing_domain import (
    PriceBreakdown,
    calculate_price,
    price_with_discounts,
)
from src.service.booking_widget.domain.value_object.customer_contact import (
    CustomerContact,
    validate_party_size,
)
from src.service.booking_widget.domain.value_object.discount import (
    AppliedDiscounts,
    GiftCardCredit,
    GiftCardValidationResult,
    PromoValidationResult,
    TicketTypePromoValidationResult,
)
from src.service.booking_widget.domain.value_object.slot import Slot
from src.service.booking_widget.domain.value_object.ticket import TicketSelection


class BookingWidget:
    def __init__(
        self,
        *,
        entity_store: IEntityStore,
        event_bus: IEventBus,
        compute_slots: ComputeSlotsUseCase,
        submit_checkout: SubmitCheckoutUseCase,
        payment_result: PaymentResultUseCase,
        discount_gateway: IDiscountValidationGateway,
        fee_rate: Decimal = Decimal('0.06'),
        venue_timezone: Optional[str] = None,
        live_feed_factory: Optional[Callable[..., ILiveSessionFeed]] = None,
    ) -> None:
        self.entity_store = entity_store
        self.event_bus = event_bus
        self.compute_slots = compute_slots
        self.submit_checkout = submit_checkout
        self.payment_result = payment_result
        self.discount_gateway = discount_gateway
        self.fee_rate = fee_rate
        self.venue_timezone = venue_timezone
        self.live_feed_factory = live_feed_factory

        self.state = BookingFlowState()
        self.discounts = AppliedDiscounts()
        self.is_processing = False
        self._generation = 0
        self._unsubscribers: List[Callable[[], None]] = []
        self._task_group: Optional[TaskGroup] = None
        self._live_feed: Optional[ILiveSessionFeed] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self, *, task_group: Optional[TaskGroup] = None) -> None:
        """
        Follow store changes made by this or any other widget (or process)

        With a task group, live-session dates are also kept fresh from the push channel.
        """
        if task_group is not None:
            self._task_group = task_group
        if self._unsubscribers:
            return
        for kind in (EntityKind.ACTIVITIES, EntityKind.BOOKINGS):
            self._unsubscribers.append(self.event_bus.subscribe(kind.event_name, self._on_store_change))

    def close(self) -> None:
        self._stop_live_feed()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _on_store_change(self, event: str) -> None:
        activity_id = self.state.activity_id
        if activity_id is None or self.state.step.is_terminal:
            return
        if event == EntityKind.ACTIVITIES.event_name and self.activity is None:
            Logger.base.info(f'🔄 [WIDGET] Activity {activity_id} removed, resetting')
            self._stop_live_feed()
            self.dispatch(Reset())
            self.discounts = AppliedDiscounts()
            return
        date = self.state.date
        if date is None or any(slot.is_live for slot in self.state.slots):
            return
        slots = self.compute_slots.procedural_slots(
            activity_id=activity_id, date=date, venue_timezone=self.venue_timezone
        )
        self.dispatch(RefreshSlots(date=date, slots=slots))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def dispatch(self, event: BookingFlowEvent) -> BookingFlowState:
        self.state = transition(self.state, event)
        return self.state

    @property
    def activity(self) -> Optional[Activity]:
        if self.state.activity_id is None:
            return None
        return self.entity_store.get_by_id(EntityKind.ACTIVITIES, self.state.activity_id)

    @property
    def breakdown(self) -> PriceBreakdown:
        return price_with_discounts(self.state.cart, self.discounts, fee_rate=self.fee_rate)

    def _require_activity(self) -> Activity:
        activity = self.activity
        if activity is None:
            raise NotFoundError('No activity selected')
        return activity

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_activity(self, activity_id: str) -> BookingFlowState:
        activity = self.entity_store.get_by_id(EntityKind.ACTIVITIES, activity_id)
        if activity is None:
            raise NotFoundError(f'Activity {activity_id} not found')
        previous = self.state.activity_id
        self.dispatch(SelectActivity(activity_id=activity.id, activity_name=activity.name))
        if self.state.activity_id != previous:
            self._generation += 1
            self.discounts = AppliedDiscounts()
            self._stop_live_feed()
        return self.state

    async def load_slots(self, date: str) -> Optional[List[Slot]]:
        """
        Fetch slots for date

        Returns:
            The slots, or None when the result went stale while awaiting
            (another load started or the activity changed)
        """
        activity_id = self.state.activity_id
        if activity_id is None:
            raise DomainError('Select an activity first', 409)
        self._generation += 1
        generation = self._generation

        slots = await self.compute_slots.compute_slots(
            activity_id=activity_id, date=date, venue_timezone=self.venue_timezone
        )
        if generation != self._generation or self.state.activity_id != activity_id:
            Logger.base.debug(f'⏭️ [WIDGET] Dropping stale slots for {activity_id} on {date}')
            return None
        return slots

    async def select_date(self, date: str) -> bool:
        """True if the date was accepted (it has at least one available slot)"""
        slots = await self.load_slots(date)
        if slots is None:
            return False
        self.dispatch(SelectDate(date=date, slots=slots))
        accepted = self.state.date == date and self.state.step == WizardStep.SELECTING_TIME
        if accepted:
            if any(slot.is_live for slot in slots):
                await self._follow_live_sessions(date)
            else:
                self._stop_live_feed()
        return accepted

    # ------------------------------------------------------------------
    # Live session updates
    # ------------------------------------------------------------------

    async def _follow_live_sessions(self, date: str) -> None:
        self._stop_live_feed()
        if self.live_feed_factory is None or self._task_group is None:
            return
        activity = self._require_activity()
        generation = self._generation

        def on_change(slots: Sequence[Slot]) -> None:
            self._on_live_slots(feed, date, slots)

        feed = self.live_feed_factory(
            activity_id=activity.id,
            date_iso=date,
            tz=self.compute_slots.timezone_for(activity, self.venue_timezone),
            on_change=on_change,
        )
        try:
            await feed.refresh()
        except CustomBaseError as e:
            Logger.base.warning(
                f'⚠️ [WIDGET] Live updates unavailable for {activity.id} on {date}: {e.message}'
            )
            return
        if generation != self._generation:
            return
        self._live_feed = feed
        await feed.start(task_group=self._task_group)
        Logger.base.info(f'📡 [WIDGET] Following live sessions of {activity.id} on {date}')

    def _on_live_slots(self, feed: ILiveSessionFeed, date: str, slots: Sequence[Slot]) -> None:
        if feed is not self._live_feed:
            return
        self.dispatch(RefreshSlots(date=date, slots=slots))

    def _stop_live_feed(self) -> None:
        if self._live_feed is not None:
            self._live_feed.stop()
            self._live_feed = None

    def select_time(self, time: str) -> BookingFlowState:
        return self.dispatch(SelectTime(time=time))

    def configure_tickets(self, quantities: Mapping[str, int]) -> BookingFlowState:
        activity = self._require_activity()
        selections = []
        for ticket_type_id, quantity in quantities.items():
            ticket_type = activity.find_ticket_type(ticket_type_id)
            if ticket_type is None:
                raise ValidationError(
                    f'Unknown ticket type {ticket_type_id!r}', {'tickets': 'Unknown ticket type'}
                )
            if quantity < 0:
                raise ValidationError('Ticket quantity cannot be negative', {'tickets': 'Invalid quantity'})
            selections.append(
                TicketSelection(
                    ticket_type_id=ticket_type.id,
                    name=ticket_type.name,
                    unit_price=ticket_type.price,
                    quantity=quantity,
                )
            )
        party_size = sum(selection.quantity for selection in selections)
        if party_size > activity.capacity:
            self._ensure_party_size(activity, party_size)
        return self.dispatch(ConfigureTickets(tickets=tuple(selections)))

    def add_to_cart(self) -> BookingFlowState:
        """
        Raises:
            ValidationError: party size outside the activity's player limits
        """
        if self.state.step == WizardStep.CONFIGURING_TICKETS and self.state.party_size > 0:
            self._ensure_party_size(self._require_activity(), self.state.party_size)
        return self.dispatch(AddToCart())

    @staticmethod
    def _ensure_party_size(activity: Activity, party_size: int) -> None:
        error = validate_party_size(
            party_size, min_players=activity.min_players, max_players=activity.capacity
        )
        if error:
            raise ValidationError(error, {'tickets': error})

    def proceed_to_checkout(self, contact: CustomerContact) -> BookingFlowState:
        """
        Raises:
            ValidationError: contact fields are not syntactically valid
        """
        contact.ensure_valid()
        return self.dispatch(ProceedToCheckout(contact=contact))

    def go_back(self, step: WizardStep) -> BookingFlowState:
        return self.dispatch(GoBack(target=step))

    def reset(self) -> BookingFlowState:
        self._generation += 1
        self._stop_live_feed()
        self.discounts = AppliedDiscounts()
        return self.dispatch(Reset())

    # ------------------------------------------------------------------
    # Discounts (provisional until submit re-validates them)
    # ------------------------------------------------------------------

    async def apply_ticket_type_promo(
        self, *, code: str, ticket_type_id: str
    ) -> TicketTypePromoValidationResult:
        activity = self._require_activity()
        result = await self.discount_gateway.validate_ticket_type_promo(
            code=code, ticket_type_id=ticket_type_id, activity_id=activity.id
        )
        if result.is_valid and result.promo is not None:
            self.discounts = self.discounts.with_ticket_type_promo(result.promo)
        return result

    async def apply_promo_code(self, code: str) -> PromoValidationResult:
        activity = self._require_activity()
        running = calculate_price(
            self.state.cart,
            ticket_type_promos=self.discounts.ticket_type_promos,
            fee_rate=self.fee_rate,
        ).discounted_subtotal
        result = await self.discount_gateway.validate_promo_code(
            code=code, amount=running, activity_id=activity.id
        )
        if result.is_valid and result.discount is not None:
            self.discounts = self.discounts.with_promo_code(result.discount)
        return result

    async def apply_gift_card(self, code: str) -> GiftCardValidationResult:
        result = await self.discount_gateway.validate_gift_card(code=code)
        if result.is_valid:
            self.discounts = self.discounts.with_gift_card(
                GiftCardCredit(code=code, balance=result.balance)
            )
        return result

    def remove_discount(self, code: str) -> AppliedDiscounts:
        self.discounts = self.discounts.without_code(code)
        return self.discounts

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def submit(self) -> CheckoutOutcome:
        """
        Raises:
            DomainError: not at checkout, or a submission is already in flight (409)
            DiscountInvalidError: the rejected discount has been removed; apply again or go on without it
            AvailabilityConflictError: the flow is back at time selection with fresh slots
        """
        if self.is_processing:
            raise DomainError('Checkout is already being processed', 409)
        state = self.state
        if state.step != WizardStep.CHECKOUT or state.contact is None or state.date is None:
            raise DomainError('Checkout is not ready', 409)

        self.is_processing = True
        try:
            outcome = await self.submit_checkout.submit_checkout(
                activity_id=state.activity_id or '',
                date=state.date,
                time=state.time or '',
                cart=state.cart,
                contact=state.contact,
                discounts=self.discounts,
                session_id=state.session_id,
                venue_timezone=self.venue_timezone,
            )
        except DiscountInvalidError as e:
            self.discounts = self.discounts.without_code(e.code)
            Logger.base.warning(f'🏷️ [WIDGET] Revoked discount {e.code}: {e.message}')
            raise
        except AvailabilityConflictError as e:
            slots = await self._fresh_slots(state.date)
            self.dispatch(SlotConflict(reason=e.message, slots=slots))
            raise
        finally:
            self.is_processing = False

        self.discounts = outcome.discounts
        self.dispatch(
            BeginPaymentRedirect(
                discounts_revalidated=True,
                booking_id=outcome.booking.id,
                redirect_url=outcome.redirect_url,
            )
        )
        return outcome

    async def _fresh_slots(self, date: str) -> Optional[tuple[Slot, ...]]:
        if self.state.activity_id is None:
            return None
        try:
            slots = await self.compute_slots.compute_slots(
                activity_id=self.state.activity_id, date=date, venue_timezone=self.venue_timezone
            )
        except NotFoundError:
            return None
        return tuple(slots)

    def complete_payment(self, *, succeeded: bool, reason: str = 'Payment failed') -> BookingFlowState:
        """
        Raises:
            DomainError: no payment is pending for this widget
        """
        booking_id = self.state.booking_id
        if self.state.step != WizardStep.PAYMENT_REDIRECT or booking_id is None:
            raise DomainError('No payment in progress', 409)
        self._stop_live_feed()
        if succeeded:
            self.payment_result.confirm_payment(booking_id=booking_id)
            return self.dispatch(PaymentSucceeded())
        self.payment_result.fail_payment(booking_id=booking_id, reason=reason)
        return self.dispatch(PaymentFailed(reason=reason))
