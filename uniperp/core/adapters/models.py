from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Literal

from eth_utils import to_checksum_address
from pydantic import BaseModel, ConfigDict

from uniperp.core.constants.base import ZERO_ADDRESS
from uniperp.core.utils.position_math import RiskLevel, side_label


def _hex32(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith("0x") else f"0x{text}"


class Position(BaseModel):
    model_config = ConfigDict(frozen=True)

    token_id: int
    owner: str
    margin: int
    market_id: str
    size_base: int
    entry_price: int
    last_funding_index: int
    opened_at: int
    funding_paid: int

    @classmethod
    def from_chain(cls, token_id: int, raw: Sequence[Any]) -> Position:
        (
            owner,
            margin,
            market_id,
            size_base,
            entry_price,
            last_funding_index,
            opened_at,
            funding_paid,
        ) = raw
        return cls(
            token_id=int(token_id),
            owner=to_checksum_address(owner),
            margin=int(margin),
            market_id=_hex32(market_id),
            size_base=int(size_base),
            entry_price=int(entry_price),
            last_funding_index=int(last_funding_index),
            opened_at=int(opened_at),
            funding_paid=int(funding_paid),
        )

    @property
    def is_active(self) -> bool:
        return self.owner != ZERO_ADDRESS and self.size_base != 0

    @property
    def side(self) -> str:
        return side_label(self.size_base)


class PositionWithPnl(BaseModel):
    position: Position
    mark_price: int
    unrealized_pnl: int
    pnl_percent: Decimal
    notional: int
    leverage: Decimal


class MarginBalance(BaseModel):
    owner: str
    free: int
    locked: int
    total: int


class Market(BaseModel):
    market_id: str
    base_asset: str
    quote_asset: str
    pool_address: str
    is_active: bool
    funding_index: int
    last_funding_update: int

    @classmethod
    def from_chain(cls, market_id: str, raw: Sequence[Any]) -> Market:
        base, quote, pool, active, funding_index, last_update = raw
        return cls(
            market_id=market_id,
            base_asset=to_checksum_address(base),
            quote_asset=to_checksum_address(quote),
            pool_address=to_checksum_address(pool),
            is_active=bool(active),
            funding_index=int(funding_index),
            last_funding_update=int(last_update),
        )

    @property
    def exists(self) -> bool:
        return self.base_asset != ZERO_ADDRESS


class MarketState(BaseModel):
    pool_id: str
    virtual_base: int
    virtual_quote: int
    k: int
    global_funding_index: int
    total_long_oi: int
    total_short_oi: int
    max_oi_cap: int
    last_funding_time: int
    spot_price_feed: str
    is_active: bool

    @classmethod
    def from_chain(cls, pool_id: str, raw: Sequence[Any]) -> MarketState:
        (
            virtual_base,
            virtual_quote,
            k,
            global_funding_index,
            total_long_oi,
            total_short_oi,
            max_oi_cap,
            last_funding_time,
            spot_price_feed,
            is_active,
        ) = raw
        return cls(
            pool_id=pool_id,
            virtual_base=int(virtual_base),
            virtual_quote=int(virtual_quote),
            k=int(k),
            global_funding_index=int(global_funding_index),
            total_long_oi=int(total_long_oi),
            total_short_oi=int(total_short_oi),
            max_oi_cap=int(max_oi_cap),
            last_funding_time=int(last_funding_time),
            spot_price_feed=to_checksum_address(spot_price_feed),
            is_active=bool(is_active),
        )


class LiquidationConfig(BaseModel):
    pool_id: str
    maintenance_margin_bps: int
    liquidation_fee_bps: int
    insurance_fee_bps: int
    is_active: bool

    @classmethod
    def from_chain(cls, pool_id: str, raw: Sequence[Any]) -> LiquidationConfig:
        mmr, liq_fee, insurance_fee, active = raw
        return cls(
            pool_id=pool_id,
            maintenance_margin_bps=int(mmr),
            liquidation_fee_bps=int(liq_fee),
            insurance_fee_bps=int(insurance_fee),
            is_active=bool(active),
        )


class LiquidationStatus(BaseModel):
    token_id: int
    is_liquidatable: bool
    price: int
    health_factor: int


class Slot0(BaseModel):
    pool_id: str
    sqrt_price_x96: int
    tick: int
    protocol_fee: int
    lp_fee: int

    @property
    def is_initialized(self) -> bool:
        return self.sqrt_price_x96 != 0


class PositionRisk(BaseModel):
    token_id: int
    owner: str
    side: str
    size_base: int
    margin: int
    entry_price: int
    current_price: int
    health_factor: int
    unrealized_pnl: int
    liquidation_price: int
    risk: RiskLevel


StepStatus = Literal["added", "exists", "failed", "skipped"]


class RegistrationStep(BaseModel):
    name: str
    status: StepStatus
    txn_hash: str | None = None
    error: str | None = None


class RegistrationReport(BaseModel):
    market_id: str
    steps: list[RegistrationStep] = []

    @property
    def ok(self) -> bool:
        return all(step.status != "failed" for step in self.steps)
