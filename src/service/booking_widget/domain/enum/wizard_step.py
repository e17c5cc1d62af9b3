from enum import StrEnum


class WizardStep(StrEnum):
    """Booking wizard steps, declared in flow order"""

    SELECTING_ACTIVITY = 'selecting-activity'
    SELECTING_DATE = 'selecting-date'
    SELECTING_TIME = 'selecting-time'
    CONFIGURING_TICKETS = 'configuring-tickets'
    CART = 'cart'
    CHECKOUT = 'checkout'
    PAYMENT_REDIRECT = 'payment-redirect'
    SUCCESS = 'success'
    FAILED = 'failed'

    @property
    def order(self) -> int:
        return list(WizardStep).index(self)

    @property
    def is_terminal(self) -> bool:
        return self in (WizardStep.SUCCESS, WizardStep.FAILED)


class DiscountType(StrEnum):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'
