from enum import StrEnum


class BookingStatus(StrEnum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    FAILED = 'failed'


class BookingSource(StrEnum):
    ADMIN = 'admin'
    WIDGET = 'widget'


class ActivityStatus(StrEnum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class VoucherStatus(StrEnum):
    ACTIVE = 'active'
    REDEEMED = 'redeemed'
    EXPIRED = 'expired'
