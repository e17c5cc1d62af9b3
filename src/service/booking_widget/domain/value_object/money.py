from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_money(value: object, default: Decimal = ZERO) -> Decimal:
    """Coerce int/float/str/Decimal to a cent-quantized Decimal"""
    if isinstance(value, bool):
        return default
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not amount.is_finite():
        return default
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the context precision holds
        return default


def money_to_json(amount: Decimal) -> float:
    return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))
