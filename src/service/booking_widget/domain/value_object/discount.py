"""
Discount value objects.

Everything here is provisional client state until the checkout use case
re-validates it against the remote validator.
"""

from decimal import Decimal
from typing import Dict, Optional

import attrs

from src.service.booking_widget.domain.enum import DiscountType
from src.service.booking_widget.domain.value_object.money import ZERO, to_money


def normalize_code(code: str) -> str:
    return code.strip().upper()


@attrs.define(frozen=True)
class PromoCodeDiscount:
    """Checkout-level promo: percentage (0-100) of the running subtotal, or a fixed amount"""

    code: str = attrs.field(converter=normalize_code)
    discount_type: DiscountType = attrs.field(converter=DiscountType)
    value: Decimal = attrs.field(converter=to_money)


@attrs.define(frozen=True)
class TicketTypePromo:
    """Percentage promo scoped to one ticket type; `rate` is a fraction (0.15 = 15%)"""

    code: str = attrs.field(converter=normalize_code)
    ticket_type_id: str
    rate: Decimal = attrs.field(converter=lambda v: Decimal(str(v)))

    @rate.validator
    def _check_rate(self, attribute: attrs.Attribute, value: Decimal) -> None:
        if not Decimal(0) <= value <= Decimal(1):
            raise ValueError(f'{attribute.name} must be within [0, 1], got {value}')


@attrs.define(frozen=True)
class GiftCardCredit:
    code: str = attrs.field(converter=normalize_code)
    balance: Decimal = attrs.field(converter=to_money)


@attrs.define(frozen=True)
class AppliedDiscounts:
    """Discounts currently applied in one widget instance (at most one promo per ticket type)"""

    ticket_type_promos: Dict[str, TicketTypePromo] = attrs.field(factory=dict)
    promo_code: Optional[PromoCodeDiscount] = None
    gift_card: Optional[GiftCardCredit] = None

    @property
    def is_empty(self) -> bool:
        return not self.ticket_type_promos and self.promo_code is None and self.gift_card is None

    def with_ticket_type_promo(self, promo: TicketTypePromo) -> 'AppliedDiscounts':
        return attrs.evolve(
            self, ticket_type_promos={**self.ticket_type_promos, promo.ticket_type_id: promo}
        )

    def with_promo_code(self, promo: Optional[PromoCodeDiscount]) -> 'AppliedDiscounts':
        return attrs.evolve(self, promo_code=promo)

    def with_gift_card(self, gift_card: Optional[GiftCardCredit]) -> 'AppliedDiscounts':
        return attrs.evolve(self, gift_card=gift_card)

    def without_code(self, code: str) -> 'AppliedDiscounts':
        """Revoke every discount carrying code"""
        code = normalize_code(code)
        return AppliedDiscounts(
            ticket_type_promos={
                type_id: promo
                for type_id, promo in self.ticket_type_promos.items()
                if promo.code != code
            },
            promo_code=None
            if self.promo_code and self.promo_code.code == code
            else self.promo_code,
            gift_card=None if self.gift_card and self.gift_card.code == code else self.gift_card,
        )


@attrs.define(frozen=True)
class PromoValidationResult:
    is_valid: bool
    discount: Optional[PromoCodeDiscount] = None
    error: Optional[str] = None


@attrs.define(frozen=True)
class TicketTypePromoValidationResult:
    is_valid: bool
    promo: Optional[TicketTypePromo] = None
    error: Optional[str] = None


@attrs.define(frozen=True)
class GiftCardValidationResult:
    is_valid: bool
    balance: Decimal = attrs.field(default=ZERO, converter=to_money)
    error: Optional[str] = None
