from datetime import date, datetime, timezone
from typing import Callable, Optional

from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.app.interface.i_entity_store import IEntityStore
from src.service.booking_widget.domain.entity.booking_entity import Booking
from src.service.booking_widget.domain.entity.gift_voucher_entity import GiftVoucher
from src.service.booking_widget.domain.enum import EntityKind
from src.service.booking_widget.domain.value_object.discount import normalize_code


def _today() -> date:
    return datetime.now(timezone.utc).date()


class PaymentResultUseCase:
    """
    Settle a pending booking after the payment redirect returns

    - confirm_payment: pending → confirmed, and the gift card credit used is
      deducted from the matching local gift voucher
    - fail_payment: pending → failed (capacity is never consumed)
    """

    def __init__(self, *, entity_store: IEntityStore, today: Callable[[], date] = _today) -> None:
        self.entity_store = entity_store
        self.today = today

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.entity_store.get_by_id(EntityKind.BOOKINGS, booking_id)
        if booking is None:
            raise NotFoundError(f'Booking {booking_id} not found')
        return booking

    def _find_voucher(self, code: str) -> Optional[GiftVoucher]:
        code = normalize_code(code)
        for voucher in self.entity_store.get_all(EntityKind.GIFT_VOUCHERS):
            if voucher.code == code:
                return voucher
        return None

    def _redeem_gift_card(self, booking: Booking) -> None:
        if not booking.gift_card_code or booking.gift_card_credit <= 0:
            return
        voucher = self._find_voucher(booking.gift_card_code)
        if voucher is None:
            # card lives only on the backend
            return
        if not voucher.is_redeemable(self.today()):
            Logger.base.warning(
                f'⚠️ [PAYMENT] Voucher {voucher.code} not redeemable locally, balance left unchanged'
            )
            return
        self.entity_store.save(EntityKind.GIFT_VOUCHERS, voucher.redeem(booking.gift_card_credit))

    @Logger.io
    def confirm_payment(self, *, booking_id: str) -> Booking:
        """
        Raises:
            NotFoundError: unknown booking
            DomainError: booking is not pending
        """
        confirmed = self._get_booking(booking_id).confirm()
        saved = self.entity_store.save(EntityKind.BOOKINGS, confirmed)
        self._redeem_gift_card(saved)
        Logger.base.info(f'💰 [PAYMENT] Booking {booking_id} confirmed')
        return saved

    @Logger.io
    def fail_payment(self, *, booking_id: str, reason: str = 'Payment failed') -> Booking:
        failed = self._get_booking(booking_id).fail()
        saved = self.entity_store.save(EntityKind.BOOKINGS, failed)
        Logger.base.info(f'💸 [PAYMENT] Booking {booking_id} failed: {reason}')
        return saved
