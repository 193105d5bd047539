from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def to_cents(value: Decimal) -> int:
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def optional_cents(value: Optional[Decimal]) -> Optional[int]:
    if value is None:
        return None
    return to_cents(value)


def cents_to_amount(cents: int) -> float:
    return round(cents / 100, 2)
