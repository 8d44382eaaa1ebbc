from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

from eth_utils import to_checksum_address

from uniperp.adapters.margin_adapter.adapter import MarginAdapter
from uniperp.adapters.market_adapter.adapter import MarketAdapter
from uniperp.core.adapters.BaseAdapter import BaseAdapter, require_wallet
from uniperp.core.adapters.decorators import status_tuple
from uniperp.core.adapters.models import Position, PositionWithPnl
from uniperp.core.constants.base import ADAPTER_POSITION, USDC_DECIMALS
from uniperp.core.constants.perps_abi import POSITION_MANAGER_ABI
from uniperp.core.errors import PreconditionError
from uniperp.core.utils.pool import normalize_bytes32
from uniperp.core.utils.position_math import (
    leverage,
    notional_value,
    parse_percent,
    pnl_percent,
    position_size_for_margin,
    remaining_after_close,
    unrealized_pnl,
)
from uniperp.core.utils.tokens import get_token_balance
from uniperp.core.utils.transaction import SignCallback, call_and_send
from uniperp.core.utils.units import format_units
from uniperp.core.utils.web3 import web3_from_chain_id

_FULL_CLOSE = Decimal(100)


class PositionAdapter(BaseAdapter):
    """Position NFTs on the PositionManager.

    Sizes are signed VETH base units (negative = short), margins USDC base
    units, prices 18-decimal fixed point.
    """

    adapter_type = ADAPTER_POSITION

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        sign_callback: SignCallback | None = None,
        wallet_address: str | None = None,
        chain_id: int | None = None,
    ) -> None:
        super().__init__(
            "position_adapter",
            config,
            sign_callback=sign_callback,
            wallet_address=wallet_address,
            chain_id=chain_id,
        )
        self.position_manager = self.deployment.position_manager
        self.margin: MarginAdapter = self.child(MarginAdapter)
        self.markets: MarketAdapter = self.child(MarketAdapter)

    async def _read_position(self, token_id: int) -> Position:
        async with web3_from_chain_id(self.chain_id) as web3:
            manager = web3.eth.contract(
                address=self.position_manager, abi=POSITION_MANAGER_ABI
            )
            raw = await manager.functions.getPosition(int(token_id)).call(
                block_identifier="latest"
            )
        return Position.from_chain(token_id, raw)

    async def _read_user_positions(self, owner: str) -> list[int]:
        async with web3_from_chain_id(self.chain_id) as web3:
            manager = web3.eth.contract(
                address=self.position_manager, abi=POSITION_MANAGER_ABI
            )
            ids = await manager.functions.getUserPositions(
                web3.to_checksum_address(owner)
            ).call(block_identifier="latest")
        return [int(i) for i in ids]

    async def _read_min_margin(self) -> int:
        async with web3_from_chain_id(self.chain_id) as web3:
            manager = web3.eth.contract(
                address=self.position_manager, abi=POSITION_MANAGER_ABI
            )
            return int(
                await manager.functions.minMargin().call(block_identifier="latest")
            )

    async def _owned_position(self, token_id: int) -> Position:
        position = await self._read_position(token_id)
        if not position.is_active:
            raise PreconditionError(f"Position {token_id} is not active")
        if position.owner != to_checksum_address(self.wallet_address):
            raise PreconditionError("You do not own this position")
        return position

    async def _send(self, fn_name: str, args: list[Any]) -> str:
        return await call_and_send(
            target=self.position_manager,
            abi=POSITION_MANAGER_ABI,
            fn_name=fn_name,
            args=args,
            from_address=self.wallet_address,
            chain_id=self.chain_id,
            sign_callback=self.sign_callback,
        )

    @status_tuple
    async def get_position(self, token_id: int) -> Position:
        return await self._read_position(token_id)

    @status_tuple
    async def get_user_positions(self, owner: str | None = None) -> list[int]:
        owner = owner or self.wallet_address
        if not owner:
            raise ValueError("owner address is required")
        return await self._read_user_positions(owner)

    def _with_pnl(self, position: Position, mark_price: int) -> PositionWithPnl:
        pnl = unrealized_pnl(position.size_base, position.entry_price, mark_price)
        notional = notional_value(position.size_base, mark_price)
        return PositionWithPnl(
            position=position,
            mark_price=mark_price,
            unrealized_pnl=pnl,
            pnl_percent=pnl_percent(pnl, position.margin),
            notional=notional,
            leverage=(
                leverage(notional, position.margin) if position.margin else Decimal(0)
            ),
        )

    @status_tuple
    async def get_position_with_pnl(
        self, token_id: int, mark_price: int | None = None
    ) -> PositionWithPnl:
        position = await self._read_position(token_id)
        if mark_price is None:
            mark_price = await self.markets.read_mark_price(position.market_id)
        return self._with_pnl(position, mark_price)

    @status_tuple
    async def get_portfolio(self, owner: str | None = None) -> list[PositionWithPnl]:
        """Every active position of ``owner`` valued at its market's mark price."""
        owner = owner or self.wallet_address
        if not owner:
            raise ValueError("owner address is required")
        token_ids = await self._read_user_positions(owner)
        positions = await asyncio.gather(*[self._read_position(t) for t in token_ids])
        active = [p for p in positions if p.is_active]

        prices: dict[str, int] = {}
        for market_id in {p.market_id for p in active}:
            prices[market_id] = await self.markets.read_mark_price(market_id)
        return [self._with_pnl(p, prices[p.market_id]) for p in active]

    async def _open(
        self, market_id: str, size_base: int, entry_price: int, margin: int
    ) -> dict[str, Any]:
        if size_base == 0:
            raise PreconditionError("Position size must be non-zero")
        if margin <= 0:
            raise PreconditionError("Margin must be greater than zero")
        if entry_price <= 0:
            raise PreconditionError("Entry price must be positive")

        balances = await self.margin._read_balances(self.wallet_address)
        if balances.free < margin:
            raise PreconditionError(
                "Insufficient free margin: have "
                f"{format_units(balances.free, USDC_DECIMALS)} USDC, need "
                f"{format_units(margin, USDC_DECIMALS)} USDC (deposit first)"
            )

        before = set(await self._read_user_positions(self.wallet_address))
        txn_hash = await self._send(
            "openPosition",
            [
                normalize_bytes32(market_id),
                int(size_base),
                int(entry_price),
                int(margin),
            ],
        )
        after = await self._read_user_positions(self.wallet_address)
        new_ids = sorted(set(after) - before)
        return {
            "txn_hash": txn_hash,
            "token_id": new_ids[-1] if new_ids else None,
        }

    @require_wallet
    @status_tuple
    async def open_position(
        self,
        market_id: str,
        size_base: int,
        entry_price: int,
        margin: int,
    ) -> dict[str, Any]:
        return await self._open(market_id, size_base, entry_price, margin)

    @require_wallet
    @status_tuple
    async def open_at_mark(
        self,
        margin: int,
        leverage_x: str | int | Decimal,
        is_long: bool,
        market_id: str | None = None,
    ) -> dict[str, Any]:
        """Open a position sized ``margin * leverage`` at the oracle mark price."""
        market_id = market_id or self.markets.default_pool.pool_id
        mark_price = await self.markets.read_mark_price(market_id)
        size = position_size_for_margin(margin, leverage_x, mark_price)
        if size == 0:
            raise PreconditionError("Computed position size is zero")
        signed_size = size if is_long else -size
        self.logger.info(
            f"Opening {'LONG' if is_long else 'SHORT'} size={signed_size} "
            f"at mark {mark_price} with margin {margin}"
        )
        result = await self._open(market_id, signed_size, mark_price, margin)
        return {**result, "size_base": signed_size, "entry_price": mark_price}

    @require_wallet
    @status_tuple
    async def close_position(
        self, token_id: int, percent: str | int | Decimal = 100
    ) -> dict[str, Any]:
        """Close ``percent`` of a position.

        100 closes through ``closePosition`` at the oracle mark price. Anything
        lower rewrites size and margin with ``updatePosition``.
        """
        pct = parse_percent(percent)
        position = await self._owned_position(token_id)
        free_before = (await self.margin._read_balances(self.wallet_address)).free

        if pct == _FULL_CLOSE:
            mark_price = await self.markets.read_mark_price(position.market_id)
            txn_hash = await self._send("closePosition", [int(token_id), mark_price])
            new_size, new_margin = 0, 0
        else:
            new_size, new_margin = remaining_after_close(
                position.size_base, position.margin, pct
            )
            min_margin = await self._read_min_margin()
            if new_margin < min_margin:
                raise PreconditionError(
                    "Remaining margin "
                    f"{format_units(new_margin, USDC_DECIMALS)} USDC is below the "
                    f"minimum {format_units(min_margin, USDC_DECIMALS)} USDC; "
                    "close a smaller percentage or the whole position"
                )
            txn_hash = await self._send(
                "updatePosition", [int(token_id), new_size, new_margin]
            )

        free_after = (await self.margin._read_balances(self.wallet_address)).free
        return {
            "txn_hash": txn_hash,
            "percent": pct,
            "remaining_size": new_size,
            "remaining_margin": new_margin,
            "free_margin_before": free_before,
            "free_margin_after": free_after,
        }

    @require_wallet
    @status_tuple
    async def add_margin(self, token_id: int, amount: int) -> dict[str, Any]:
        if amount <= 0:
            raise PreconditionError("Amount must be greater than zero")
        position = await self._owned_position(token_id)

        wallet_balance = await get_token_balance(
            self.deployment.usdc, self.chain_id, self.wallet_address
        )
        if wallet_balance < amount:
            raise PreconditionError("Insufficient USDC balance")

        deposit_hash = await self.margin._deposit(amount)
        txn_hash = await self._send("addMargin", [int(token_id), int(amount)])

        new_margin = position.margin + amount
        entry_notional = notional_value(position.size_base, position.entry_price)
        return {
            "deposit_txn_hash": deposit_hash,
            "txn_hash": txn_hash,
            "new_margin": new_margin,
            "new_leverage": leverage(entry_notional, new_margin),
        }

    @require_wallet
    @status_tuple
    async def remove_margin(self, token_id: int, amount: int) -> dict[str, Any]:
        if amount <= 0:
            raise PreconditionError("Amount must be greater than zero")
        position = await self._owned_position(token_id)
        if amount >= position.margin:
            raise PreconditionError(
                "Cannot remove "
                f"{format_units(amount, USDC_DECIMALS)} USDC from a position with "
                f"{format_units(position.margin, USDC_DECIMALS)} USDC margin"
            )
        txn_hash = await self._send("removeMargin", [int(token_id), int(amount)])
        new_margin = position.margin - amount
        entry_notional = notional_value(position.size_base, position.entry_price)
        return {
            "txn_hash": txn_hash,
            "new_margin": new_margin,
            "new_leverage": leverage(entry_notional, new_margin),
        }
