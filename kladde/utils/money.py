"""
Fixed-point currency helpers for the Kegelkladde.

All amounts are handled as ``decimal.Decimal`` quantized to cents. Input coming
from the command layer is parsed leniently: blanks become 0,00 and a comma is
accepted as decimal separator.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def round2(value: Any) -> Decimal:
    """Round a value to two decimal places (half up). Idempotent."""
    if not isinstance(value, Decimal):
        value = _to_decimal(value)
    if not value.is_finite():
        # NaN and Infinity parse as Decimal but are no amount
        raise ValueError(f"not a finite amount: {value!r}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value: Any) -> Decimal:
    """Parse arbitrary input into a two-place Decimal; unparseable input is 0,00."""
    if value is None:
        return ZERO
    try:
        return round2(value)
    except (InvalidOperation, ValueError, TypeError):
        return ZERO


def parse_money(value: Any) -> Decimal:
    """Strict variant of to_money; raises ValueError for text that is not a number."""
    if value is None:
        return ZERO
    try:
        return round2(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"not a currency amount: {value!r}") from e


def clamp_money(value: Any, minimum: Decimal = ZERO, maximum: Decimal = Decimal('9999')) -> Decimal:
    """Parse and clamp a currency amount into [minimum, maximum]."""
    amount = to_money(value)
    return max(round2(minimum), min(round2(maximum), amount))


def clamp_count(value: Any, minimum: int = 0, maximum: int = 999) -> int:
    """Parse and clamp a marker count into [minimum, maximum]."""
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            count = int(Decimal(str(value).strip()))
        except (InvalidOperation, ValueError, OverflowError):
            count = 0
    return max(minimum, min(maximum, count))


def money_sum(values: Iterable[Any]) -> Decimal:
    """Sum amounts, rounding every term to cents before adding."""
    total = ZERO
    for value in values:
        total += to_money(value)
    return round2(total)


def format_euro(value: Any) -> str:
    """Format an amount German style, e.g. ``-1,30 €``."""
    amount = to_money(value)
    return f"{amount:.2f}".replace('.', ',') + " €"


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, float):
        # str() keeps the shortest repr so 0.1 stays 0.1
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace('€', '').replace(' ', '')
        if not cleaned:
            return Decimal(0)
        if ',' in cleaned:
            cleaned = cleaned.replace('.', '').replace(',', '.')
        return Decimal(cleaned)
    return Decimal(value)
