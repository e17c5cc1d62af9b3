from decimal import Decimal
from typing import Optional

import attrs

from src.service.booking_widget.domain.value_object.money import to_money


@attrs.define(frozen=True)
class TicketType:
    id: str
    name: str
    price: Decimal = attrs.field(converter=to_money)


@attrs.define(frozen=True)
class TicketSelection:
    """Quantity chosen for one ticket type while configuring tickets"""

    ticket_type_id: str
    name: str
    unit_price: Decimal = attrs.field(converter=to_money)
    quantity: int = attrs.field(validator=attrs.validators.ge(0))

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@attrs.define(frozen=True)
class CartItem:
    activity_id: str
    activity_name: str
    ticket_type_id: str
    ticket_name: str
    unit_price: Decimal = attrs.field(converter=to_money)
    quantity: int = attrs.field(validator=attrs.validators.ge(1))
    date: str
    time: str
    session_id: Optional[str] = None
    promo_code: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)
