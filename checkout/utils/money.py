# checkout/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal

CENT = Decimal("0.01")

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_money(x: Money) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)

def to_cents(x) -> int:
    return int((round_money(x) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def parse_amount(x):
    """Lenient numeric parse: returns a finite Decimal or None."""
    if x is None or isinstance(x, bool):
        return None
    try:
        value = Decimal(str(x).strip())
    except (InvalidOperation, ValueError):
        return None
    return value if value.is_finite() else None
