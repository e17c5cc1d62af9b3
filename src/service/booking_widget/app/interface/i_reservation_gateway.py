"""
Reservation Gateway Interface

Hands a validated checkout over to the backend, which reserves capacity and
opens a hosted payment page.
"""

from abc import ABC, abstractmethod

from src.service.booking_widget.app.dto.checkout_dto import CheckoutRequest, CheckoutResult


class IReservationGateway(ABC):
    @abstractmethod
    async def create_checkout(self, *, request: CheckoutRequest) -> CheckoutResult:
        """
        Returns:
            CheckoutResult with redirect_url, or with error for a rejected request

        Raises:
            AvailabilityConflictError: capacity was taken in the meantime (HTTP 409)
            NetworkError: transport failure or server error
        """
        pass
