from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation


def _to_decimal(value: str | int | float | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    return Decimal(str(value).strip())


def to_base_units(amount: str | int | float | Decimal, decimals: int) -> int:
    """Convert a human amount (``"12.5"``) to integer base units, rounding down."""
    try:
        amt = _to_decimal(amount)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid token amount: {amount}") from exc
    if not amt.is_finite():
        raise ValueError(f"Invalid token amount: {amount}")
    if amt < 0:
        raise ValueError("Amount must be non-negative")
    scale = Decimal(10) ** int(decimals)
    return int((amt * scale).to_integral_value(rounding=ROUND_DOWN))


def parse_positive_amount(amount: str | int | float | Decimal, decimals: int) -> int:
    raw = to_base_units(amount, decimals)
    if raw <= 0:
        raise ValueError(f"Amount must be greater than zero: {amount}")
    return raw


def from_base_units(raw: int, decimals: int) -> Decimal:
    return Decimal(int(raw)).scaleb(-int(decimals))


def format_units(raw: int, decimals: int, places: int | None = None) -> str:
    value = from_base_units(raw, decimals)
    if places is not None:
        quant = Decimal(1).scaleb(-int(places))
        return f"{value.quantize(quant, rounding=ROUND_DOWN):,f}"
    normalized = value.normalize()
    # normalize() turns 100 into 1E+2
    if normalized == normalized.to_integral_value():
        return f"{normalized.to_integral_value():,f}"
    return f"{normalized:,f}"
