from datetime import datetime, timezone
from typing import Any, Dict

from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.app.dto.booking_stats_dto import BookingStats
from src.service.booking_widget.app.interface.i_entity_store import IEntityStore
from src.service.booking_widget.domain.entity_normalizer import TO_RECORD
from src.service.booking_widget.domain.enum import BookingStatus, EntityKind
from src.service.booking_widget.domain.value_object.money import ZERO, to_money


class GetBookingStatsUseCase:
    def __init__(self, *, entity_store: IEntityStore) -> None:
        self.entity_store = entity_store

    @Logger.io
    def get_stats(self) -> BookingStats:
        """Revenue and average order value count confirmed bookings only"""
        bookings = self.entity_store.get_all(EntityKind.BOOKINGS)
        by_status: Dict[BookingStatus, int] = {status: 0 for status in BookingStatus}
        revenue = ZERO
        for booking in bookings:
            by_status[booking.status] += 1
            if booking.status == BookingStatus.CONFIRMED:
                revenue += booking.total_price

        confirmed = by_status[BookingStatus.CONFIRMED]
        return BookingStats(
            total_bookings=len(bookings),
            confirmed_bookings=confirmed,
            pending_bookings=by_status[BookingStatus.PENDING],
            cancelled_bookings=by_status[BookingStatus.CANCELLED],
            total_revenue=to_money(revenue),
            average_order_value=to_money(revenue / confirmed) if confirmed else ZERO,
        )

    @Logger.io(truncate_content=True)
    def export_all_data(self) -> Dict[str, Any]:
        """Snapshot of every collection as canonical records"""
        return {
            'exportedAt': datetime.now(timezone.utc).isoformat(),
            **{
                kind.value: [TO_RECORD[kind](entity) for entity in self.entity_store.get_all(kind)]
                for kind in EntityKind
            },
        }
