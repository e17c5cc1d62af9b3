"""
Pricing Domain

Price breakdown for a cart. Stage order matters:

    subtotal
    - per-ticket-type promos (≤1 per type, on that type's subtotal)
    - checkout promo (percentage of the running subtotal, or fixed, clamped)
    + fee (fee_rate × discounted subtotal)
    - gift card redemption (min(balance, discounted subtotal + fee))
    = total (never negative)

Every stage is rounded half-up to cents.
"""

from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

import attrs

from src.service.booking_widget.domain.enum import DiscountType
from src.service.booking_widget.domain.value_object.discount import (
    AppliedDiscounts,
    GiftCardCredit,
    PromoCodeDiscount,
    TicketTypePromo,
)
from src.service.booking_widget.domain.value_object.money import ZERO, to_money
from src.service.booking_widget.domain.value_object.ticket import CartItem


HUNDRED = Decimal(100)


@attrs.define(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    ticket_type_discount: Decimal
    promo_discount: Decimal
    fee: Decimal
    gift_card_redemption: Decimal
    total: Decimal
    ticket_type_discounts: Dict[str, Decimal] = attrs.field(factory=dict)

    @property
    def total_discount(self) -> Decimal:
        return to_money(self.ticket_type_discount + self.promo_discount)

    @property
    def discounted_subtotal(self) -> Decimal:
        return to_money(self.subtotal - self.total_discount)


def subtotal_by_ticket_type(cart: Iterable[CartItem]) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = {}
    for item in cart:
        totals[item.ticket_type_id] = to_money(totals.get(item.ticket_type_id, ZERO) + item.line_total)
    return totals


def promo_code_amount(promo: Optional[PromoCodeDiscount], running_subtotal: Decimal) -> Decimal:
    if promo is None or running_subtotal <= ZERO:
        return ZERO
    if promo.discount_type == DiscountType.PERCENTAGE:
        amount = to_money(running_subtotal * promo.value / HUNDRED)
    else:
        amount = promo.value
    return min(max(amount, ZERO), running_subtotal)


def calculate_price(
    cart: Iterable[CartItem],
    *,
    ticket_type_promos: Optional[Mapping[str, TicketTypePromo]] = None,
    promo_code: Optional[PromoCodeDiscount] = None,
    gift_card: Optional[GiftCardCredit] = None,
    fee_rate: Decimal = Decimal('0.06'),
) -> PriceBreakdown:
    by_type = subtotal_by_ticket_type(cart)
    subtotal = to_money(sum(by_type.values(), ZERO))

    type_discounts: Dict[str, Decimal] = {}
    for type_id, promo in (ticket_type_promos or {}).items():
        type_subtotal = by_type.get(type_id)
        if type_subtotal is None or promo.ticket_type_id != type_id:
            continue
        type_discounts[type_id] = to_money(type_subtotal * promo.rate)
    ticket_type_discount = to_money(sum(type_discounts.values(), ZERO))

    running = max(ZERO, to_money(subtotal - ticket_type_discount))
    promo_discount = promo_code_amount(promo_code, running)
    discounted = to_money(running - promo_discount)

    fee = to_money(discounted * fee_rate)
    payable = to_money(discounted + fee)
    redemption = min(gift_card.balance, payable) if gift_card else ZERO
    redemption = max(redemption, ZERO)
    total = max(ZERO, to_money(payable - redemption))

    return PriceBreakdown(
        subtotal=subtotal,
        ticket_type_discount=ticket_type_discount,
        promo_discount=promo_discount,
        fee=fee,
        gift_card_redemption=redemption,
        total=total,
        ticket_type_discounts=type_discounts,
    )


def price_with_discounts(
    cart: Iterable[CartItem], discounts: AppliedDiscounts, *, fee_rate: Decimal
) -> PriceBreakdown:
    return calculate_price(
        cart,
        ticket_type_promos=discounts.ticket_type_promos,
        promo_code=discounts.promo_code,
        gift_card=discounts.gift_card,
        fee_rate=fee_rate,
    )
