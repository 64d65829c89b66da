"""
Money helpers. All amounts are Decimals with 2 fractional digits, rounded half-up.
"""
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def quantize_money(value):
    """Round value half-up to cents. None passes through unchanged."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def zero_money():
    return Decimal("0.00")
