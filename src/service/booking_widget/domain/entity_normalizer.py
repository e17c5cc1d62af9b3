"""
Entity Normalizer
Record ↔ entity conversion for everything the local store persists.

Stored records use camelCase keys. Reading is lenient: snake_case keys and
legacy aliases (price, maxPlayers, gameId, ...) are accepted, numbers may be
strings, and structurally required fields fall back to defaults. A record
without a usable identifier is dropped (None), never raised.
"""

from datetime import datetime, timezone
import math
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from src.service.booking_widget.domain.entity.activity_entity import (
    DEFAULT_ACTIVITY_NAME,
    DEFAULT_CAPACITY,
    DEFAULT_DURATION_MINUTES,
    Activity,
    BlockedTimeRange,
)
from src.service.booking_widget.domain.entity.booking_entity import Booking, TicketLine
from src.service.booking_widget.domain.entity.gift_voucher_entity import (
    GiftVoucher,
    VoucherRecipient,
)
from src.service.booking_widget.domain.enum import (
    ActivityStatus,
    BookingSource,
    BookingStatus,
    EntityKind,
    VoucherStatus,
)
from src.service.booking_widget.domain.value_object.difficulty import resolve_difficulty
from src.service.booking_widget.domain.value_object.money import money_to_json, to_money
from src.service.booking_widget.domain.value_object.schedule_rule import (
    DayHours,
    resolve_schedule,
)
from src.service.booking_widget.domain.value_object.ticket import TicketType
from src.service.booking_widget.domain.value_object.wall_clock import format_24h, parse_wall_clock


_SNAKE_SEGMENT = re.compile(r'_([a-z0-9])')
_LEADING_NUMBER = re.compile(r'^\s*(-?\d+(?:\.\d+)?)')

ACTIVITY_ALIASES = {
    'price': 'basePrice',
    'maxPlayers': 'capacity',
    'max_players': 'capacity',
    'durationMinutes': 'duration',
    'duration_minutes': 'duration',
    'customDates': 'customAvailableDates',
    'minAdults': 'minPlayers',
    'stripePriceId': 'priceReference',
}
BOOKING_ALIASES = {
    'gameId': 'activityId',
    'game_id': 'activityId',
    'gameName': 'activityName',
    'game_name': 'activityName',
    'partySize': 'participants',
    'players': 'participants',
    'ticketTypes': 'ticketLines',
    'total': 'totalPrice',
    'timestamp': 'createdAt',
}
VOUCHER_ALIASES = {
    'voucherCode': 'code',
    'remainingBalance': 'balance',
}


def snake_to_camel(key: str) -> str:
    return _SNAKE_SEGMENT.sub(lambda m: m.group(1).upper(), key)


def canonical_record(raw: Mapping[str, Any], aliases: Mapping[str, str]) -> Dict[str, Any]:
    """Rename aliases/snake_case keys to canonical camelCase; canonical keys win on collision"""
    renamed: Dict[str, Any] = {}
    exact: Dict[str, Any] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            continue
        canonical = aliases.get(key) or snake_to_camel(key)
        if canonical == key:
            exact[key] = value
        else:
            renamed.setdefault(canonical, value)
    return {**renamed, **exact}


def coerce_number(value: Any, fallback: float) -> float:
    """Number as-is, numeric prefix of a string ('90 min' → 90), else fallback"""
    if isinstance(value, bool):
        return fallback
    number: Optional[float] = None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return fallback
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match:
            number = float(match.group(1))
    if number is None or not math.isfinite(number):
        return fallback
    return number


def _coerce_int(value: Any, fallback: int, *, minimum: int = 0) -> int:
    return max(minimum, int(coerce_number(value, fallback)))


def _usable_id(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _string_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return [item for item in value if isinstance(item, str)]
    return []


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _enum_or_default(enum_cls: Any, value: Any, default: Any) -> Any:
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


# =============================================================================
# Activity
# =============================================================================


def _blocked_entries(raw: Dict[str, Any]) -> tuple[set[str], List[BlockedTimeRange]]:
    full_days: set[str] = set()
    ranges: List[BlockedTimeRange] = []
    for entry in list(raw.get('blockedDates') or []) + list(raw.get('blockedTimeRanges') or []):
        if isinstance(entry, str):
            full_days.add(entry)
            continue
        if not isinstance(entry, Mapping) or not isinstance(entry.get('date'), str):
            continue
        start = parse_wall_clock(entry.get('startTime'))
        end = parse_wall_clock(entry.get('endTime'))
        if entry.get('blockType') == 'full-day' or start is None or end is None:
            full_days.add(entry['date'])
        else:
            ranges.append(
                BlockedTimeRange(
                    date=entry['date'], start_time=format_24h(start), end_time=format_24h(end)
                )
            )
    return full_days, ranges


def _custom_dates(raw: Dict[str, Any]) -> Dict[str, Optional[DayHours]]:
    custom: Dict[str, Optional[DayHours]] = {}
    for entry in raw.get('customAvailableDates') or []:
        if isinstance(entry, str):
            custom[entry] = None
        elif isinstance(entry, Mapping) and isinstance(entry.get('date'), str):
            custom[entry['date']] = DayHours.from_raw(entry)
    return custom


def _ticket_types(raw: Dict[str, Any]) -> List[TicketType]:
    ticket_types = []
    for entry in raw.get('ticketTypes') or []:
        if not isinstance(entry, Mapping) or not (type_id := _usable_id(entry.get('id'))):
            continue
        ticket_types.append(
            TicketType(
                id=type_id,
                name=str(entry.get('name') or type_id),
                price=to_money(entry.get('price')),
            )
        )
    return ticket_types


def normalize_activity(
    raw: Any,
    *,
    default_organization_id: str,
    schedule_defaults: Optional[Mapping[str, Any]] = None,
) -> Optional[Activity]:
    if not isinstance(raw, Mapping):
        return None
    record = canonical_record(raw, ACTIVITY_ALIASES)
    if not (activity_id := _usable_id(record.get('id'))):
        return None

    level, label = resolve_difficulty(record.get('difficulty'), record.get('difficultyLabel'))
    blocked_days, blocked_ranges = _blocked_entries(record)
    nested_schedule = record.get('schedule')

    return Activity(
        id=activity_id,
        name=str(record.get('name') or DEFAULT_ACTIVITY_NAME),
        organization_id=_optional_str(record.get('organizationId')) or default_organization_id,
        capacity=_coerce_int(record.get('capacity'), DEFAULT_CAPACITY),
        base_price=to_money(coerce_number(record.get('basePrice'), 0)),
        duration_minutes=_coerce_int(record.get('duration'), DEFAULT_DURATION_MINUTES, minimum=1),
        description=str(record.get('description') or ''),
        schedule=resolve_schedule(
            schedule_defaults,
            record,
            nested_schedule if isinstance(nested_schedule, Mapping) else None,
        ),
        blocked_dates=blocked_days,
        blocked_time_ranges=blocked_ranges,
        custom_available_dates=_custom_dates(record),
        venue_id=_optional_str(record.get('venueId')),
        timezone=_optional_str(record.get('timezone')),
        status=ActivityStatus.INACTIVE
        if record.get('status') == ActivityStatus.INACTIVE
        else ActivityStatus.ACTIVE,
        difficulty=level,
        difficulty_label=label,
        min_players=_coerce_int(record.get('minPlayers'), 1, minimum=1),
        ticket_types=_ticket_types(record),
        price_reference=_optional_str(record.get('priceReference')),
        created_at=_parse_datetime(record.get('createdAt')),
        updated_at=_parse_datetime(record.get('updatedAt') or record.get('lastUpdated')),
        created_by=_optional_str(record.get('createdBy')),
        updated_by=_optional_str(record.get('updatedBy')),
    )


def activity_to_record(activity: Activity) -> Dict[str, Any]:
    return {
        'id': activity.id,
        'name': activity.name,
        'organizationId': activity.organization_id,
        'capacity': activity.capacity,
        'basePrice': money_to_json(activity.base_price),
        'duration': activity.duration_minutes,
        'description': activity.description,
        'schedule': activity.schedule.to_record(),
        'blockedDates': sorted(activity.blocked_dates),
        'blockedTimeRanges': [
            {
                'date': block.date,
                'blockType': 'time-slot',
                'startTime': block.start_time,
                'endTime': block.end_time,
            }
            for block in activity.blocked_time_ranges
        ],
        'customAvailableDates': [
            {'date': day, 'startTime': hours.start_time, 'endTime': hours.end_time}
            if hours
            else {'date': day}
            for day, hours in sorted(activity.custom_available_dates.items())
        ],
        'venueId': activity.venue_id,
        'timezone': activity.timezone,
        'status': activity.status.value,
        'difficulty': activity.difficulty,
        'difficultyLabel': activity.difficulty_label,
        'minPlayers': activity.min_players,
        'ticketTypes': [
            {'id': t.id, 'name': t.name, 'price': money_to_json(t.price)}
            for t in activity.ticket_types
        ],
        'priceReference': activity.price_reference,
        'createdAt': _iso(activity.created_at),
        'updatedAt': _iso(activity.updated_at),
        'createdBy': activity.created_by,
        'updatedBy': activity.updated_by,
    }


# =============================================================================
# Booking
# =============================================================================


def _ticket_lines(raw: Dict[str, Any]) -> List[TicketLine]:
    lines = []
    for entry in raw.get('ticketLines') or []:
        if not isinstance(entry, Mapping):
            continue
        entry = canonical_record(entry, {'id': 'ticketTypeId', 'price': 'unitPrice'})
        if not (type_id := _usable_id(entry.get('ticketTypeId'))):
            continue
        lines.append(
            TicketLine(
                ticket_type_id=type_id,
                name=str(entry.get('name') or type_id),
                unit_price=to_money(entry.get('unitPrice')),
                quantity=_coerce_int(entry.get('quantity'), 0),
            )
        )
    return lines


def normalize_booking(raw: Any, *, default_organization_id: str) -> Optional[Booking]:
    if not isinstance(raw, Mapping):
        return None
    record = canonical_record(raw, BOOKING_ALIASES)
    if not (booking_id := _usable_id(record.get('id'))):
        return None

    lines = _ticket_lines(record)
    participants = _coerce_int(record.get('participants'), sum(line.quantity for line in lines))

    return Booking(
        id=booking_id,
        organization_id=_optional_str(record.get('organizationId')) or default_organization_id,
        activity_id=_usable_id(record.get('activityId')) or '',
        activity_name=str(record.get('activityName') or ''),
        date=str(record.get('date') or ''),
        time=str(record.get('time') or ''),
        participants=participants,
        customer_name=str(record.get('customerName') or ''),
        customer_email=str(record.get('customerEmail') or ''),
        customer_phone=str(record.get('customerPhone') or ''),
        ticket_lines=lines,
        total_price=to_money(coerce_number(record.get('totalPrice'), 0)),
        # legacy records predate the status field and were all real bookings
        status=_enum_or_default(BookingStatus, record.get('status'), BookingStatus.CONFIRMED),
        source=_enum_or_default(BookingSource, record.get('source'), BookingSource.WIDGET),
        session_id=_usable_id(record.get('sessionId')),
        venue_id=_optional_str(record.get('venueId')),
        promo_code=_optional_str(record.get('promoCode')),
        gift_card_code=_optional_str(record.get('giftCardCode')),
        gift_card_credit=to_money(coerce_number(record.get('giftCardCredit'), 0)),
        created_at=_parse_datetime(record.get('createdAt')),
        updated_at=_parse_datetime(record.get('updatedAt')),
    )


def booking_to_record(booking: Booking) -> Dict[str, Any]:
    return {
        'id': booking.id,
        'organizationId': booking.organization_id,
        'activityId': booking.activity_id,
        'activityName': booking.activity_name,
        'date': booking.date,
        'time': booking.time,
        'participants': booking.participants,
        'customerName': booking.customer_name,
        'customerEmail': booking.customer_email,
        'customerPhone': booking.customer_phone,
        'ticketLines': [
            {
                'ticketTypeId': line.ticket_type_id,
                'name': line.name,
                'unitPrice': money_to_json(line.unit_price),
                'quantity': line.quantity,
                'subtotal': money_to_json(line.subtotal),
            }
            for line in booking.ticket_lines
        ],
        'totalPrice': money_to_json(booking.total_price),
        'status': booking.status.value,
        'source': booking.source.value,
        'sessionId': booking.session_id,
        'venueId': booking.venue_id,
        'promoCode': booking.promo_code,
        'giftCardCode': booking.gift_card_code,
        'giftCardCredit': money_to_json(booking.gift_card_credit),
        'createdAt': _iso(booking.created_at),
        'updatedAt': _iso(booking.updated_at),
    }


# =============================================================================
# Gift voucher
# =============================================================================


def normalize_gift_voucher(raw: Any, *, default_organization_id: str) -> Optional[GiftVoucher]:
    if not isinstance(raw, Mapping):
        return None
    record = canonical_record(raw, VOUCHER_ALIASES)
    if not (voucher_id := _usable_id(record.get('id'))):
        return None

    amount = to_money(coerce_number(record.get('amount'), 0))
    recipients = [
        VoucherRecipient(
            name=str(entry.get('name') or ''),
            email=str(entry.get('email') or ''),
            status=str(entry.get('status') or 'sent'),
        )
        for entry in record.get('recipients') or []
        if isinstance(entry, Mapping)
    ]
    return GiftVoucher(
        id=voucher_id,
        code=str(record.get('code') or voucher_id),
        organization_id=_optional_str(record.get('organizationId')) or default_organization_id,
        amount=amount,
        balance=to_money(coerce_number(record.get('balance'), float(amount))),
        sender_name=str(record.get('senderName') or ''),
        recipients=recipients,
        message=str(record.get('message') or ''),
        theme=str(record.get('theme') or 'general'),
        status=_enum_or_default(VoucherStatus, record.get('status'), VoucherStatus.ACTIVE),
        purchase_date=_parse_datetime(record.get('purchaseDate')),
        expires_on=_optional_str(record.get('expiresOn')),
        redemption_count=_coerce_int(record.get('redemptionCount'), 0),
    )


def gift_voucher_to_record(voucher: GiftVoucher) -> Dict[str, Any]:
    return {
        'id': voucher.id,
        'code': voucher.code,
        'organizationId': voucher.organization_id,
        'amount': money_to_json(voucher.amount),
        'balance': money_to_json(voucher.balance),
        'senderName': voucher.sender_name,
        'recipients': [
            {'name': r.name, 'email': r.email, 'status': r.status} for r in voucher.recipients
        ],
        'message': voucher.message,
        'theme': voucher.theme,
        'status': voucher.status.value,
        'purchaseDate': _iso(voucher.purchase_date),
        'expiresOn': voucher.expires_on,
        'redemptionCount': voucher.redemption_count,
    }


# =============================================================================
# Dispatch by kind
# =============================================================================

ENTITY_ALIASES: Dict[EntityKind, Mapping[str, str]] = {
    EntityKind.ACTIVITIES: ACTIVITY_ALIASES,
    EntityKind.BOOKINGS: BOOKING_ALIASES,
    EntityKind.GIFT_VOUCHERS: VOUCHER_ALIASES,
}

TO_RECORD: Dict[EntityKind, Callable[[Any], Dict[str, Any]]] = {
    EntityKind.ACTIVITIES: activity_to_record,
    EntityKind.BOOKINGS: booking_to_record,
    EntityKind.GIFT_VOUCHERS: gift_voucher_to_record,
}
