from typing import Dict, Iterable, List

from src.service.booking_widget.domain.enum import EntityKind
from src.service.booking_widget.driven_adapter.repo.legacy_source import (
    FlatArrayKeySource,
    ILegacySource,
    PrefixedKeySource,
)


CANONICAL_KEYS: Dict[EntityKind, str] = {
    EntityKind.ACTIVITIES: 'bookingtms::activities',
    EntityKind.BOOKINGS: 'bookingtms::bookings',
    EntityKind.GIFT_VOUCHERS: 'bookingtms::gift-vouchers',
}

LEGACY_ACTIVITY_KEYS = ('bookingtms::games', 'admin_games', 'bookingtms_games')
LEGACY_BOOKING_KEYS = ('bookings',)
LEGACY_GIFT_VOUCHER_KEYS = ('giftVouchers',)


def default_legacy_sources(
    activity_prefixes: Iterable[str] = ('bookingtms_games_',),
) -> Dict[EntityKind, List[ILegacySource]]:
    """Legacy read chain per kind: flat-array keys first, then scope-prefixed keys"""
    return {
        EntityKind.ACTIVITIES: [
            *(FlatArrayKeySource(key) for key in LEGACY_ACTIVITY_KEYS),
            *(PrefixedKeySource(prefix) for prefix in activity_prefixes),
        ],
        EntityKind.BOOKINGS: [FlatArrayKeySource(key) for key in LEGACY_BOOKING_KEYS],
        EntityKind.GIFT_VOUCHERS: [FlatArrayKeySource(key) for key in LEGACY_GIFT_VOUCHER_KEYS],
    }
