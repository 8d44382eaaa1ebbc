from __future__ import annotations

from typing import Any

from uniperp.core.adapters.BaseAdapter import BaseAdapter, require_wallet
from uniperp.core.adapters.decorators import status_tuple
from uniperp.core.adapters.models import Slot0
from uniperp.core.constants.base import ADAPTER_POOL, DEFAULT_SQRT_PRICE_X96
from uniperp.core.constants.uniswap_v4_abi import POOL_MANAGER_ABI
from uniperp.core.errors import PreconditionError
from uniperp.core.utils.pool import (
    PoolKey,
    default_pool_info,
    normalize_bytes32,
    pool_id,
    pool_key_tuple,
    validate_sqrt_price_x96,
)
from uniperp.core.utils.transaction import SignCallback, call_and_send
from uniperp.core.utils.web3 import web3_from_chain_id


class PoolAdapter(BaseAdapter):
    """Uniswap v4 PoolManager reads and pool initialization."""

    adapter_type = ADAPTER_POOL

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        sign_callback: SignCallback | None = None,
        wallet_address: str | None = None,
        chain_id: int | None = None,
    ) -> None:
        super().__init__(
            "pool_adapter",
            config,
            sign_callback=sign_callback,
            wallet_address=wallet_address,
            chain_id=chain_id,
        )
        self.pool_manager = self.deployment.pool_manager
        self.default_pool = default_pool_info(self.deployment)

    async def _read_slot0(self, pid: str) -> Slot0:
        async with web3_from_chain_id(self.chain_id) as web3:
            manager = web3.eth.contract(address=self.pool_manager, abi=POOL_MANAGER_ABI)
            sqrt_price_x96, tick, protocol_fee, lp_fee = (
                await manager.functions.getSlot0(normalize_bytes32(pid)).call(
                    block_identifier="latest"
                )
            )
        return Slot0(
            pool_id=pid,
            sqrt_price_x96=int(sqrt_price_x96),
            tick=int(tick),
            protocol_fee=int(protocol_fee),
            lp_fee=int(lp_fee),
        )

    @status_tuple
    async def get_slot0(self, pool_id_hex: str | None = None) -> Slot0:
        pid = "0x" + normalize_bytes32(pool_id_hex or self.default_pool.pool_id).hex()
        return await self._read_slot0(pid)

    @status_tuple
    async def is_initialized(self, pool_id_hex: str | None = None) -> bool:
        pid = "0x" + normalize_bytes32(pool_id_hex or self.default_pool.pool_id).hex()
        return (await self._read_slot0(pid)).is_initialized

    @require_wallet
    @status_tuple
    async def initialize_pool(
        self,
        key: PoolKey | None = None,
        sqrt_price_x96: int = DEFAULT_SQRT_PRICE_X96,
    ) -> dict[str, Any]:
        key = key or self.default_pool.key
        pid = pool_id(key)
        price = validate_sqrt_price_x96(sqrt_price_x96)

        if (await self._read_slot0(pid)).is_initialized:
            raise PreconditionError(f"Pool {pid} is already initialized")

        txn_hash = await call_and_send(
            target=self.pool_manager,
            abi=POOL_MANAGER_ABI,
            fn_name="initialize",
            args=[pool_key_tuple(key), price],
            from_address=self.wallet_address,
            chain_id=self.chain_id,
            sign_callback=self.sign_callback,
        )
        return {"txn_hash": txn_hash, "pool_id": pid, "slot0": await self._read_slot0(pid)}
