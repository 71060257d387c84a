from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


def to_money(value) -> Decimal:
    """Quantize to cents (half up); ``None`` counts as 0."""
    return Decimal(str(value if value is not None else 0)).quantize(CENT, rounding=ROUND_HALF_UP)
