"""Application layer DTOs"""

from src.service.booking_widget.app.dto.booking_stats_dto import BookingStats
from src.service.booking_widget.app.dto.catalog_dto import CatalogSnapshot, Venue
from src.service.booking_widget.app.dto.checkout_dto import (
    CheckoutOutcome,
    CheckoutRequest,
    CheckoutResult,
)

__all__ = [
    'BookingStats',
    'CatalogSnapshot',
    'CheckoutOutcome',
    'CheckoutRequest',
    'CheckoutResult',
    'Venue',
]
