"""
Booking Flow Machine
Wizard state and a pure, total transition function.

    selecting-activity → selecting-date → selecting-time → configuring-tickets
        → cart → checkout → payment-redirect → (success | failed)

`transition` never raises: an event that is not allowed in the current
state returns the state unchanged.
"""

from typing import Callable, Dict, Optional, Tuple, Union

import attrs

from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.domain.enum import WizardStep
from src.service.booking_widget.domain.value_object.customer_contact import CustomerContact
from src.service.booking_widget.domain.value_object.slot import Slot
from src.service.booking_widget.domain.value_object.ticket import CartItem, TicketSelection


@attrs.define(frozen=True)
class BookingFlowState:
    step: WizardStep = WizardStep.SELECTING_ACTIVITY
    activity_id: Optional[str] = None
    activity_name: str = ''
    date: Optional[str] = None
    slots: Tuple[Slot, ...] = ()
    time: Optional[str] = None
    session_id: Optional[str] = None
    tickets: Tuple[TicketSelection, ...] = ()
    cart: Tuple[CartItem, ...] = ()
    contact: Optional[CustomerContact] = None
    booking_id: Optional[str] = None
    redirect_url: Optional[str] = None
    failure_reason: Optional[str] = None

    @property
    def selected_slot(self) -> Optional[Slot]:
        return _find_slot(self.slots, self.time) if self.time else None

    @property
    def party_size(self) -> int:
        return sum(item.quantity for item in self.cart) or sum(t.quantity for t in self.tickets)


# =============================================================================
# Events
# =============================================================================


@attrs.define(frozen=True)
class SelectActivity:
    activity_id: str
    activity_name: str = ''


@attrs.define(frozen=True)
class SelectDate:
    date: str
    slots: Tuple[Slot, ...] = attrs.field(converter=tuple)


@attrs.define(frozen=True)
class RefreshSlots:
    """New slot data for the already selected date (live push, store change)"""

    date: str
    slots: Tuple[Slot, ...] = attrs.field(converter=tuple)


@attrs.define(frozen=True)
class SelectTime:
    time: str


@attrs.define(frozen=True)
class ConfigureTickets:
    tickets: Tuple[TicketSelection, ...] = attrs.field(converter=tuple)


@attrs.define(frozen=True)
class AddToCart:
    pass


@attrs.define(frozen=True)
class ProceedToCheckout:
    contact: CustomerContact


@attrs.define(frozen=True)
class BeginPaymentRedirect:
    discounts_revalidated: bool
    booking_id: Optional[str] = None
    redirect_url: Optional[str] = None


@attrs.define(frozen=True)
class PaymentSucceeded:
    pass


@attrs.define(frozen=True)
class PaymentFailed:
    reason: str = 'Payment failed'


@attrs.define(frozen=True)
class SlotConflict:
    reason: str
    slots: Optional[Tuple[Slot, ...]] = None


@attrs.define(frozen=True)
class GoBack:
    target: WizardStep


@attrs.define(frozen=True)
class Reset:
    pass


BookingFlowEvent = Union[
    SelectActivity,
    SelectDate,
    RefreshSlots,
    SelectTime,
    ConfigureTickets,
    AddToCart,
    ProceedToCheckout,
    BeginPaymentRedirect,
    PaymentSucceeded,
    PaymentFailed,
    SlotConflict,
    GoBack,
    Reset,
]


# =============================================================================
# Transition handlers (None = not allowed)
# =============================================================================

_EDITABLE_STEPS = frozenset(
    {
        WizardStep.SELECTING_ACTIVITY,
        WizardStep.SELECTING_DATE,
        WizardStep.SELECTING_TIME,
        WizardStep.CONFIGURING_TICKETS,
        WizardStep.CART,
        WizardStep.CHECKOUT,
    }
)


def _find_slot(slots: Tuple[Slot, ...], time: str) -> Optional[Slot]:
    for slot in slots:
        if slot.time == time:
            return slot
    return None


def _select_activity(state: BookingFlowState, event: SelectActivity) -> Optional[BookingFlowState]:
    if state.step not in _EDITABLE_STEPS:
        return None
    if event.activity_id == state.activity_id:
        if state.step != WizardStep.SELECTING_ACTIVITY:
            return None
        # back at the activity picker: continue with the earlier selections
        return attrs.evolve(state, step=WizardStep.SELECTING_DATE, failure_reason=None)
    return BookingFlowState(
        step=WizardStep.SELECTING_DATE,
        activity_id=event.activity_id,
        activity_name=event.activity_name,
    )


def _select_date(state: BookingFlowState, event: SelectDate) -> Optional[BookingFlowState]:
    if state.step not in _EDITABLE_STEPS or state.activity_id is None:
        return None
    if not any(slot.available for slot in event.slots):
        return None
    return attrs.evolve(
        state,
        step=WizardStep.SELECTING_TIME,
        date=event.date,
        slots=event.slots,
        time=None,
        session_id=None,
        cart=(),
        failure_reason=None,
    )


def _refresh_slots(state: BookingFlowState, event: RefreshSlots) -> Optional[BookingFlowState]:
    if state.date != event.date or state.step.is_terminal:
        return None
    return attrs.evolve(state, slots=event.slots)


def _select_time(state: BookingFlowState, event: SelectTime) -> Optional[BookingFlowState]:
    if state.step not in _EDITABLE_STEPS or state.date is None:
        return None
    slot = _find_slot(state.slots, event.time)
    if slot is None or not slot.available:
        return None
    changed = event.time != state.time
    return attrs.evolve(
        state,
        step=WizardStep.CONFIGURING_TICKETS,
        time=slot.time,
        session_id=slot.session_id,
        cart=() if changed else state.cart,
        failure_reason=None,
    )


def _configure_tickets(state: BookingFlowState, event: ConfigureTickets) -> Optional[BookingFlowState]:
    if state.time is None or state.step not in (
        WizardStep.CONFIGURING_TICKETS,
        WizardStep.CART,
    ):
        return None
    return attrs.evolve(
        state, step=WizardStep.CONFIGURING_TICKETS, tickets=event.tickets, cart=()
    )


def _add_to_cart(state: BookingFlowState, event: AddToCart) -> Optional[BookingFlowState]:
    if state.step != WizardStep.CONFIGURING_TICKETS or state.date is None or state.time is None:
        return None
    chosen = [ticket for ticket in state.tickets if ticket.quantity > 0]
    if not chosen:
        return None
    cart = tuple(
        CartItem(
            activity_id=state.activity_id or '',
            activity_name=state.activity_name,
            ticket_type_id=ticket.ticket_type_id,
            ticket_name=ticket.name,
            unit_price=ticket.unit_price,
            quantity=ticket.quantity,
            date=state.date,
            time=state.time,
            session_id=state.session_id,
        )
        for ticket in chosen
    )
    return attrs.evolve(state, step=WizardStep.CART, cart=cart)


def _proceed_to_checkout(
    state: BookingFlowState, event: ProceedToCheckout
) -> Optional[BookingFlowState]:
    if state.step != WizardStep.CART or not state.cart or not event.contact.is_valid:
        return None
    return attrs.evolve(state, step=WizardStep.CHECKOUT, contact=event.contact)


def _begin_payment_redirect(
    state: BookingFlowState, event: BeginPaymentRedirect
) -> Optional[BookingFlowState]:
    if state.step != WizardStep.CHECKOUT or not event.discounts_revalidated:
        return None
    return attrs.evolve(
        state,
        step=WizardStep.PAYMENT_REDIRECT,
        booking_id=event.booking_id,
        redirect_url=event.redirect_url,
    )


def _payment_succeeded(state: BookingFlowState, event: PaymentSucceeded) -> Optional[BookingFlowState]:
    if state.step != WizardStep.PAYMENT_REDIRECT:
        return None
    return attrs.evolve(state, step=WizardStep.SUCCESS)


def _payment_failed(state: BookingFlowState, event: PaymentFailed) -> Optional[BookingFlowState]:
    if state.step != WizardStep.PAYMENT_REDIRECT:
        return None
    return attrs.evolve(state, step=WizardStep.FAILED, failure_reason=event.reason)


def _slot_conflict(state: BookingFlowState, event: SlotConflict) -> Optional[BookingFlowState]:
    if state.step not in (WizardStep.CART, WizardStep.CHECKOUT) or state.date is None:
        return None
    return attrs.evolve(
        state,
        step=WizardStep.SELECTING_TIME,
        slots=event.slots if event.slots is not None else state.slots,
        time=None,
        session_id=None,
        cart=(),
        failure_reason=event.reason,
    )


_BACK_PREREQUISITES: Dict[WizardStep, Callable[[BookingFlowState], bool]] = {
    WizardStep.SELECTING_ACTIVITY: lambda s: True,
    WizardStep.SELECTING_DATE: lambda s: s.activity_id is not None,
    WizardStep.SELECTING_TIME: lambda s: s.date is not None,
    WizardStep.CONFIGURING_TICKETS: lambda s: s.time is not None,
    WizardStep.CART: lambda s: bool(s.cart),
    WizardStep.CHECKOUT: lambda s: bool(s.cart) and s.contact is not None,
}


def _go_back(state: BookingFlowState, event: GoBack) -> Optional[BookingFlowState]:
    if state.step in (WizardStep.PAYMENT_REDIRECT, WizardStep.SUCCESS):
        return None
    prerequisite = _BACK_PREREQUISITES.get(event.target)
    if prerequisite is None or event.target.order >= state.step.order or not prerequisite(state):
        return None
    return attrs.evolve(state, step=event.target, failure_reason=None)


def _reset(state: BookingFlowState, event: Reset) -> Optional[BookingFlowState]:
    return BookingFlowState()


_HANDLERS: Dict[type, Callable[[BookingFlowState, object], Optional[BookingFlowState]]] = {
    SelectActivity: _select_activity,  # type: ignore[dict-item]
    SelectDate: _select_date,  # type: ignore[dict-item]
    RefreshSlots: _refresh_slots,  # type: ignore[dict-item]
    SelectTime: _select_time,  # type: ignore[dict-item]
    ConfigureTickets: _configure_tickets,  # type: ignore[dict-item]
    AddToCart: _add_to_cart,  # type: ignore[dict-item]
    ProceedToCheckout: _proceed_to_checkout,  # type: ignore[dict-item]
    BeginPaymentRedirect: _begin_payment_redirect,  # type: ignore[dict-item]
    PaymentSucceeded: _payment_succeeded,  # type: ignore[dict-item]
    PaymentFailed: _payment_failed,  # type: ignore[dict-item]
    SlotConflict: _slot_conflict,  # type: ignore[dict-item]
    GoBack: _go_back,  # type: ignore[dict-item]
    Reset: _reset,  # type: ignore[dict-item]
}


def transition(state: BookingFlowState, event: BookingFlowEvent) -> BookingFlowState:
    handler = _HANDLERS.get(type(event))
    next_state = handler(state, event) if handler else None
    if next_state is None:
        Logger.base.debug(f'🚫 [FLOW] {type(event).__name__} rejected in {state.step}')
        return state
    if next_state.step != state.step:
        Logger.base.debug(f'➡️ [FLOW] {state.step} → {next_state.step}')
    return next_state
