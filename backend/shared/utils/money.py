"""
Money helpers.

Amounts are stored and compared as integer cents so two-decimal rounding is
exact. Client-supplied amounts (floats, strings, Decimals) go through
``to_cents`` once at the boundary.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation


def to_cents(amount: int | float | str | Decimal | None) -> int:
    """
    Convert a currency amount to integer cents, rounding half-up.

        to_cents(10) -> 1000
        to_cents("4.995") -> 500
        to_cents(None) -> 0
    """
    if amount is None:
        return 0
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Cents back to a two-decimal Decimal."""
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def format_cents(cents: int) -> str:
    """Plain two-decimal string, e.g. 500 -> '5.00'."""
    return f"{from_cents(cents):.2f}"


def split_evenly(total_cents: int, parts: int) -> int:
    """Per-part share of ``total_cents``, rounded half-up. ``parts`` < 1 counts as 1."""
    parts = max(parts, 1)
    share = (Decimal(total_cents) / parts).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(share)
