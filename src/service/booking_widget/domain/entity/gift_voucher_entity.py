from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Optional, Tuple

import attrs

from src.service.booking_widget.domain.enum import VoucherStatus
from src.service.booking_widget.domain.value_object.discount import normalize_code
from src.service.booking_widget.domain.value_object.money import ZERO, to_money


@attrs.define(frozen=True)
class VoucherRecipient:
    name: str
    email: str
    status: str = 'sent'


@attrs.define
class GiftVoucher:
    id: str
    code: str = attrs.field(converter=normalize_code)
    organization_id: str = ''
    amount: Decimal = attrs.field(default=ZERO, converter=to_money)
    balance: Decimal = attrs.field(default=ZERO, converter=to_money)
    sender_name: str = ''
    recipients: Tuple[VoucherRecipient, ...] = attrs.field(factory=tuple, converter=tuple)
    message: str = ''
    theme: str = 'general'
    status: VoucherStatus = VoucherStatus.ACTIVE
    purchase_date: Optional[datetime] = None
    expires_on: Optional[str] = None  # ISO date, inclusive
    redemption_count: int = 0

    def is_expired(self, today: date_type) -> bool:
        if self.status == VoucherStatus.EXPIRED:
            return True
        if not self.expires_on:
            return False
        try:
            return date_type.fromisoformat(self.expires_on) < today
        except ValueError:
            return False

    def is_redeemable(self, today: date_type) -> bool:
        return (
            self.status == VoucherStatus.ACTIVE and not self.is_expired(today) and self.balance > 0
        )

    def redeem(self, amount: Decimal) -> 'GiftVoucher':
        """Deduct amount (capped at the balance); an emptied voucher becomes redeemed"""
        used = min(to_money(amount), self.balance)
        balance = to_money(self.balance - used)
        return attrs.evolve(
            self,
            balance=balance,
            redemption_count=self.redemption_count + 1,
            status=VoucherStatus.REDEEMED if balance <= ZERO else self.status,
        )
