"""
Discount Validation Gateway Interface

Remote validator for promo codes, ticket-type promos and gift cards. Used both
when a customer applies a code and again at checkout submission.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from src.service.booking_widget.domain.value_object.discount import (
    GiftCardValidationResult,
    PromoValidationResult,
    TicketTypePromoValidationResult,
)


class IDiscountValidationGateway(ABC):
    @abstractmethod
    async def validate_promo_code(
        self, *, code: str, amount: Decimal, activity_id: str
    ) -> PromoValidationResult:
        """
        Args:
            amount: running subtotal the promo would apply to

        Returns:
            is_valid False with an error message for unknown, expired or
            exhausted codes (not an exception)
        """
        pass

    @abstractmethod
    async def validate_ticket_type_promo(
        self, *, code: str, ticket_type_id: str, activity_id: str
    ) -> TicketTypePromoValidationResult:
        pass

    @abstractmethod
    async def validate_gift_card(self, *, code: str) -> GiftCardValidationResult:
        pass
