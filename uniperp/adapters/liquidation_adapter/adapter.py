from __future__ import annotations

import asyncio
from typing import Any

import httpx
from web3.exceptions import ContractLogicError, Web3RPCError

from uniperp.adapters.market_adapter.adapter import MarketAdapter
from uniperp.core.adapters.BaseAdapter import BaseAdapter, require_wallet
from uniperp.core.adapters.decorators import status_tuple
from uniperp.core.adapters.models import (
    LiquidationConfig,
    LiquidationStatus,
    Position,
    PositionRisk,
)
from uniperp.core.clients.PythClient import PYTH_CLIENT, PythClient
from uniperp.core.constants.base import (
    ADAPTER_LIQUIDATION,
    DEFAULT_INSURANCE_FEE_BPS,
    DEFAULT_LIQUIDATION_FEE_BPS,
    DEFAULT_MAINTENANCE_MARGIN_BPS,
    DEFAULT_SCAN_MAX_TOKEN_ID,
)
from uniperp.core.constants.perps_abi import (
    LIQUIDATION_ENGINE_ABI,
    POSITION_MANAGER_ABI,
)
from uniperp.core.errors import PreconditionError
from uniperp.core.utils.pool import normalize_bytes32
from uniperp.core.utils.position_math import (
    classify_risk,
    estimate_liquidation_price,
    unrealized_pnl,
)
from uniperp.core.utils.transaction import SignCallback, call_and_send
from uniperp.core.utils.web3 import web3_from_chain_id


class LiquidationAdapter(BaseAdapter):
    adapter_type = ADAPTER_LIQUIDATION

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        sign_callback: SignCallback | None = None,
        wallet_address: str | None = None,
        chain_id: int | None = None,
        price_client: PythClient | None = None,
    ) -> None:
        super().__init__(
            "liquidation_adapter",
            config,
            sign_callback=sign_callback,
            wallet_address=wallet_address,
            chain_id=chain_id,
        )
        self.engine = self.deployment.liquidation_engine
        self.price_client = price_client or PYTH_CLIENT
        self.markets: MarketAdapter = self.child(MarketAdapter)

    def _pool_id(self, pool_id: str | None) -> str:
        return "0x" + normalize_bytes32(
            pool_id or self.markets.default_pool.pool_id
        ).hex()

    async def _send(self, fn_name: str, args: list[Any]) -> str:
        return await call_and_send(
            target=self.engine,
            abi=LIQUIDATION_ENGINE_ABI,
            fn_name=fn_name,
            args=args,
            from_address=self.wallet_address,
            chain_id=self.chain_id,
            sign_callback=self.sign_callback,
        )

    async def _read_config(self, pool_id: str) -> LiquidationConfig:
        async with web3_from_chain_id(self.chain_id) as web3:
            engine = web3.eth.contract(address=self.engine, abi=LIQUIDATION_ENGINE_ABI)
            raw = await engine.functions.getLiquidationConfig(
                normalize_bytes32(pool_id)
            ).call(block_identifier="latest")
        return LiquidationConfig.from_chain(pool_id, raw)

    async def _read_status(self, token_id: int) -> LiquidationStatus:
        async with web3_from_chain_id(self.chain_id) as web3:
            engine = web3.eth.contract(address=self.engine, abi=LIQUIDATION_ENGINE_ABI)
            liquidatable, price, health_factor = (
                await engine.functions.isPositionLiquidatable(int(token_id)).call(
                    block_identifier="latest"
                )
            )
        return LiquidationStatus(
            token_id=int(token_id),
            is_liquidatable=bool(liquidatable),
            price=int(price),
            health_factor=int(health_factor),
        )

    @status_tuple
    async def get_liquidation_config(
        self, pool_id: str | None = None
    ) -> LiquidationConfig:
        return await self._read_config(self._pool_id(pool_id))

    @require_wallet
    @status_tuple
    async def configure_liquidation(
        self,
        pool_id: str | None = None,
        maintenance_margin_bps: int = DEFAULT_MAINTENANCE_MARGIN_BPS,
        liquidation_fee_bps: int = DEFAULT_LIQUIDATION_FEE_BPS,
        insurance_fee_bps: int = DEFAULT_INSURANCE_FEE_BPS,
        is_active: bool = True,
    ) -> dict[str, Any]:
        pid = self._pool_id(pool_id)
        for name, value in (
            ("maintenance margin", maintenance_margin_bps),
            ("liquidation fee", liquidation_fee_bps),
            ("insurance fee", insurance_fee_bps),
        ):
            if not 0 <= int(value) <= 10_000:
                raise PreconditionError(f"{name} must be 0-10000 bps, got {value}")
        txn_hash = await self._send(
            "configureLiquidation",
            [
                normalize_bytes32(pid),
                int(maintenance_margin_bps),
                int(liquidation_fee_bps),
                int(insurance_fee_bps),
                bool(is_active),
            ],
        )
        return {"txn_hash": txn_hash, "config": await self._read_config(pid)}

    @status_tuple
    async def is_position_liquidatable(self, token_id: int) -> LiquidationStatus:
        return await self._read_status(token_id)

    @require_wallet
    @status_tuple
    async def liquidate(self, token_id: int) -> str:
        status = await self._read_status(token_id)
        if not status.is_liquidatable:
            raise PreconditionError(
                f"Position {token_id} is not liquidatable "
                f"(health factor {status.health_factor / 10**18:.4f})"
            )
        return await self._send("liquidatePosition", [int(token_id)])

    async def _reference_price(self, pool_id: str) -> int:
        try:
            return await self.price_client.get_price_x18()
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.warning(
                f"Pyth price unavailable ({exc}); using on-chain mark price"
            )
            return await self.markets.read_mark_price(pool_id)

    async def _assess(
        self, token_id: int, current_price: int, maintenance_bps: int
    ) -> PositionRisk | None:
        async with web3_from_chain_id(self.chain_id) as web3:
            manager = web3.eth.contract(
                address=self.deployment.position_manager, abi=POSITION_MANAGER_ABI
            )
            raw = await manager.functions.getPosition(int(token_id)).call(
                block_identifier="latest"
            )
        position = Position.from_chain(token_id, raw)
        if not position.is_active:
            return None

        status = await self._read_status(token_id)
        return PositionRisk(
            token_id=position.token_id,
            owner=position.owner,
            side=position.side,
            size_base=position.size_base,
            margin=position.margin,
            entry_price=position.entry_price,
            current_price=current_price,
            health_factor=status.health_factor,
            unrealized_pnl=unrealized_pnl(
                position.size_base, position.entry_price, current_price
            ),
            liquidation_price=estimate_liquidation_price(
                position.size_base,
                position.entry_price,
                position.margin,
                maintenance_bps,
            ),
            risk=classify_risk(status.is_liquidatable, status.health_factor),
        )

    @status_tuple
    async def scan_positions(
        self,
        max_token_id: int = DEFAULT_SCAN_MAX_TOKEN_ID,
        pool_id: str | None = None,
    ) -> list[PositionRisk]:
        """Assess token ids ``1..max_token_id``, riskiest first.

        Ids that fail to read (burned or never minted) are skipped.
        """
        pid = self._pool_id(pool_id)
        current_price, config = await asyncio.gather(
            self._reference_price(pid), self._read_config(pid)
        )
        maintenance_bps = config.maintenance_margin_bps or DEFAULT_MAINTENANCE_MARGIN_BPS

        results: list[PositionRisk] = []
        for token_id in range(1, int(max_token_id) + 1):
            try:
                risk = await self._assess(token_id, current_price, maintenance_bps)
            except (ContractLogicError, Web3RPCError) as exc:
                self.logger.debug(f"Skipping token {token_id}: {exc}")
                continue
            if risk is not None:
                results.append(risk)

        results.sort(key=lambda r: (r.risk.rank, r.health_factor))
        return results
