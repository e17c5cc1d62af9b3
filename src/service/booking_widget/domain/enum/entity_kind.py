from enum import StrEnum


class EntityKind(StrEnum):
    ACTIVITIES = 'activities'
    BOOKINGS = 'bookings'
    GIFT_VOUCHERS = 'gift-vouchers'

    @property
    def event_name(self) -> str:
        """Event emitted on the bus after every committed write of this kind"""
        return f'{self.value}-updated'
