"""Integer position arithmetic shared by the position and liquidation commands.

Sizes are signed base-asset units (18 decimals, negative = short), margins are
quote units (6 decimals) and prices are 18-decimal fixed point.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from enum import Enum

from uniperp.core.constants.base import (
    BPS_DENOMINATOR,
    PRICE_DECIMALS,
    USDC_DECIMALS,
    VETH_DECIMALS,
)

_HUNDRED = Decimal(100)
# size (18) * price (18) -> quote (6)
_NOTIONAL_SCALE = 10 ** (VETH_DECIMALS + PRICE_DECIMALS - USDC_DECIMALS)
_DANGER_HEALTH_FACTOR = Decimal("1.1")
_WARNING_HEALTH_FACTOR = Decimal("1.5")


class RiskLevel(str, Enum):
    LIQUIDATABLE = "LIQUIDATABLE"
    DANGER = "DANGER"
    WARNING = "WARNING"
    SAFE = "SAFE"

    @property
    def rank(self) -> int:
        return _RISK_ORDER[self]


_RISK_ORDER = {
    RiskLevel.LIQUIDATABLE: 0,
    RiskLevel.DANGER: 1,
    RiskLevel.WARNING: 2,
    RiskLevel.SAFE: 3,
}


def parse_percent(percent: str | int | float | Decimal) -> Decimal:
    try:
        value = Decimal(str(percent).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid percentage: {percent}") from exc
    if not value.is_finite() or value <= 0 or value > _HUNDRED:
        raise ValueError("Percentage must be greater than 0 and at most 100")
    return value


def _scale_toward_zero(value: int, factor: Decimal) -> int:
    return int((Decimal(value) * factor).to_integral_value(rounding=ROUND_DOWN))


def remaining_after_close(
    size_base: int, margin: int, percent: str | int | float | Decimal
) -> tuple[int, int]:
    """Size and margin left after closing ``percent`` of a position.

    ``remaining = original * (100 - P) / 100`` truncated toward zero, so the
    sign of the size is kept and ``P == 100`` leaves exactly ``(0, 0)``.
    """
    pct = parse_percent(percent)
    keep = (_HUNDRED - pct) / _HUNDRED
    return _scale_toward_zero(int(size_base), keep), _scale_toward_zero(
        int(margin), keep
    )


def is_long(size_base: int) -> bool:
    return int(size_base) > 0


def side_label(size_base: int) -> str:
    return "LONG" if is_long(size_base) else "SHORT"


def notional_value(size_base: int, price: int) -> int:
    """Absolute notional in quote base units."""
    return abs(int(size_base)) * int(price) // _NOTIONAL_SCALE


def unrealized_pnl(size_base: int, entry_price: int, mark_price: int) -> int:
    """Signed PnL in quote base units.

    Shorts carry a negative size, so ``size * (mark - entry)`` covers both sides.
    """
    raw = int(size_base) * (int(mark_price) - int(entry_price))
    # int division floors; truncate toward zero instead
    magnitude = abs(raw) // _NOTIONAL_SCALE
    return magnitude if raw >= 0 else -magnitude


def leverage(notional: int, margin: int) -> Decimal:
    if int(margin) <= 0:
        raise ValueError("Margin must be positive to compute leverage")
    return Decimal(int(notional)) / Decimal(int(margin))


def pnl_percent(pnl: int, margin: int) -> Decimal:
    if int(margin) <= 0:
        return Decimal(0)
    return Decimal(int(pnl)) * _HUNDRED / Decimal(int(margin))


def position_size_for_margin(
    margin: int, leverage_x: str | int | float | Decimal, mark_price: int
) -> int:
    """Unsigned base-asset size whose notional at ``mark_price`` is ``margin * leverage``."""
    lev = Decimal(str(leverage_x))
    if not lev.is_finite() or lev <= 0:
        raise ValueError(f"Invalid leverage: {leverage_x}")
    if int(mark_price) <= 0:
        raise ValueError("Mark price must be positive")
    notional = Decimal(int(margin)) * lev
    size = notional * _NOTIONAL_SCALE / Decimal(int(mark_price))
    return int(size.to_integral_value(rounding=ROUND_DOWN))


def estimate_liquidation_price(
    size_base: int,
    entry_price: int,
    margin: int,
    maintenance_margin_bps: int,
) -> int:
    """Rough mark price at which equity falls to the maintenance requirement.

    Long:  (s*e - m) / (s * (1 - r))
    Short: (s*e + m) / (s * (1 + r))

    with ``s`` the absolute size, ``e`` entry, ``m`` margin and ``r`` the
    maintenance ratio. Display only; the liquidation engine is authoritative.
    """
    size = abs(int(size_base))
    if size == 0:
        return 0
    ratio = Decimal(int(maintenance_margin_bps)) / BPS_DENOMINATOR
    s = Decimal(size)
    # notional terms in 36-decimal space so margin lines up with s * e
    s_e = s * Decimal(int(entry_price))
    m = Decimal(int(margin)) * _NOTIONAL_SCALE
    if is_long(size_base):
        price = (s_e - m) / (s * (1 - ratio))
    else:
        price = (s_e + m) / (s * (1 + ratio))
    if price <= 0:
        return 0
    return int(price.to_integral_value(rounding=ROUND_DOWN))


def classify_risk(is_liquidatable: bool, health_factor: int) -> RiskLevel:
    """Bucket a position by the liquidation engine's 18-decimal health factor."""
    if is_liquidatable:
        return RiskLevel.LIQUIDATABLE
    hf = Decimal(int(health_factor)).scaleb(-PRICE_DECIMALS)
    if hf < _DANGER_HEALTH_FACTOR:
        return RiskLevel.DANGER
    if hf < _WARNING_HEALTH_FACTOR:
        return RiskLevel.WARNING
    return RiskLevel.SAFE


# quote (6) -> base (18)
_RESERVE_SCALE = 10 ** (VETH_DECIMALS - USDC_DECIMALS)


def vamm_price(virtual_base: int, virtual_quote: int) -> int:
    """18-decimal quote-per-base price implied by the vAMM reserves."""
    if int(virtual_base) <= 0:
        return 0
    return int(virtual_quote) * _RESERVE_SCALE * 10**PRICE_DECIMALS // int(virtual_base)


def virtual_base_for_price(
    virtual_quote: int, target_price: str | int | float | Decimal
) -> int:
    """Virtual base reserve that puts the vAMM at ``target_price`` (quote per base)."""
    try:
        price = Decimal(str(target_price).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid price: {target_price}") from exc
    if not price.is_finite() or price <= 0:
        raise ValueError("Target price must be positive")
    if int(virtual_quote) <= 0:
        raise ValueError("Virtual quote reserve must be positive")
    base = Decimal(int(virtual_quote) * _RESERVE_SCALE) / price
    return int(base.to_integral_value(rounding=ROUND_DOWN))
