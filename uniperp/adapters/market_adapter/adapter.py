from __future__ import annotations

from typing import Any, Literal

from eth_utils import to_checksum_address

from uniperp.core.adapters.BaseAdapter import BaseAdapter, require_wallet
from uniperp.core.adapters.decorators import status_tuple
from uniperp.core.adapters.models import (
    Market,
    MarketState,
    RegistrationReport,
    RegistrationStep,
)
from uniperp.core.constants.base import ADAPTER_MARKET, ZERO_ADDRESS
from uniperp.core.constants.contracts import PYTH_ETH_USD_FEED_ID
from uniperp.core.constants.perps_abi import (
    FUNDING_ORACLE_ABI,
    MARKET_REGISTRY_ABI,
    PERPS_HOOK_ABI,
    POSITION_MANAGER_ABI,
)
from uniperp.core.errors import (
    ErrorKind,
    PreconditionError,
    decode_revert_selector,
    describe_error,
)
from uniperp.core.utils.pool import default_pool_info, normalize_bytes32
from uniperp.core.utils.transaction import SignCallback, call_and_send
from uniperp.core.utils.web3 import web3_from_chain_id

Registry = Literal["market_manager", "position_factory"]


class MarketAdapter(BaseAdapter):
    """Market registry, mark prices and vAMM state for perps markets.

    Pool ids double as market ids. Every method defaults to the deployment's
    VETH/USDC pool when no id is given.
    """

    adapter_type = ADAPTER_MARKET

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        sign_callback: SignCallback | None = None,
        wallet_address: str | None = None,
        chain_id: int | None = None,
    ) -> None:
        super().__init__(
            "market_adapter",
            config,
            sign_callback=sign_callback,
            wallet_address=wallet_address,
            chain_id=chain_id,
        )
        self.default_pool = default_pool_info(self.deployment)

    def _pool_id(self, pool_id: str | None) -> str:
        return "0x" + normalize_bytes32(pool_id or self.default_pool.pool_id).hex()

    def _registry_address(self, registry: Registry) -> str:
        if registry == "market_manager":
            return self.deployment.market_manager
        if registry == "position_factory":
            return self.deployment.position_factory
        raise ValueError(f"Unknown market registry: {registry}")

    async def read_mark_price(self, pool_id: str | None = None) -> int:
        pid = self._pool_id(pool_id)
        async with web3_from_chain_id(self.chain_id) as web3:
            oracle = web3.eth.contract(
                address=self.deployment.funding_oracle, abi=FUNDING_ORACLE_ABI
            )
            price = await oracle.functions.getMarkPrice(normalize_bytes32(pid)).call(
                block_identifier="latest"
            )
        return int(price)

    @status_tuple
    async def get_mark_price(self, pool_id: str | None = None) -> int:
        """FundingOracle mark price, 18-decimal fixed point."""
        return await self.read_mark_price(pool_id)

    @status_tuple
    async def get_hook_mark_price(self, pool_id: str | None = None) -> int:
        pid = self._pool_id(pool_id)
        async with web3_from_chain_id(self.chain_id) as web3:
            hook = web3.eth.contract(
                address=self.deployment.perps_hook, abi=PERPS_HOOK_ABI
            )
            price = await hook.functions.getMarkPrice(normalize_bytes32(pid)).call(
                block_identifier="latest"
            )
        return int(price)

    async def _read_market_state(self, pid: str) -> MarketState:
        async with web3_from_chain_id(self.chain_id) as web3:
            hook = web3.eth.contract(
                address=self.deployment.perps_hook, abi=PERPS_HOOK_ABI
            )
            raw = await hook.functions.getMarketState(normalize_bytes32(pid)).call(
                block_identifier="latest"
            )
        return MarketState.from_chain(pid, raw)

    @status_tuple
    async def get_market_state(self, pool_id: str | None = None) -> MarketState:
        return await self._read_market_state(self._pool_id(pool_id))

    async def _read_market(self, market_id: str, registry: Registry) -> Market:
        async with web3_from_chain_id(self.chain_id) as web3:
            contract = web3.eth.contract(
                address=self._registry_address(registry), abi=MARKET_REGISTRY_ABI
            )
            raw = await contract.functions.getMarket(
                normalize_bytes32(market_id)
            ).call(block_identifier="latest")
        return Market.from_chain(market_id, raw)

    @status_tuple
    async def get_market(
        self, market_id: str | None = None, registry: Registry = "market_manager"
    ) -> Market:
        return await self._read_market(self._pool_id(market_id), registry)

    async def _read_key_manager(self, account: str, registry: Registry) -> bool:
        async with web3_from_chain_id(self.chain_id) as web3:
            contract = web3.eth.contract(
                address=self._registry_address(registry), abi=MARKET_REGISTRY_ABI
            )
            return bool(
                await contract.functions.keyManagers(
                    web3.to_checksum_address(account)
                ).call(block_identifier="latest")
            )

    async def _read_registry_owner(self, registry: Registry) -> str:
        async with web3_from_chain_id(self.chain_id) as web3:
            contract = web3.eth.contract(
                address=self._registry_address(registry), abi=MARKET_REGISTRY_ABI
            )
            owner = await contract.functions.owner().call(block_identifier="latest")
        return to_checksum_address(owner)

    @status_tuple
    async def is_key_manager(
        self, account: str, registry: Registry = "position_factory"
    ) -> bool:
        return await self._read_key_manager(account, registry)

    async def _send(self, target: str, abi: list, fn_name: str, args: list) -> str:
        return await call_and_send(
            target=target,
            abi=abi,
            fn_name=fn_name,
            args=args,
            from_address=self.wallet_address,
            chain_id=self.chain_id,
            sign_callback=self.sign_callback,
        )

    def _market_args(
        self,
        market_id: str,
        base_asset: str | None,
        quote_asset: str | None,
        pool_address: str | None,
    ) -> list[Any]:
        return [
            normalize_bytes32(market_id),
            to_checksum_address(base_asset or self.default_pool.base_asset),
            to_checksum_address(quote_asset or self.default_pool.quote_asset),
            to_checksum_address(pool_address or self.deployment.perps_hook),
        ]

    @require_wallet
    @status_tuple
    async def add_market(
        self,
        market_id: str | None = None,
        base_asset: str | None = None,
        quote_asset: str | None = None,
        pool_address: str | None = None,
    ) -> str:
        """Register a market through PositionManager (forwards to PositionFactory)."""
        mid = self._pool_id(market_id)
        existing = await self._read_market(mid, "position_factory")
        if existing.exists:
            raise PreconditionError(f"Market {mid} already exists")
        return await self._send(
            self.deployment.position_manager,
            POSITION_MANAGER_ABI,
            "addMarket",
            self._market_args(mid, base_asset, quote_asset, pool_address),
        )

    @require_wallet
    @status_tuple
    async def add_key_manager(
        self, account: str | None = None, registry: Registry = "position_factory"
    ) -> str | None:
        """Grant ``account`` (default: PositionManager) the key-manager role.

        PositionManager needs the role on PositionFactory before it can
        forward ``addMarket``. Returns ``None`` when the role is already set.
        """
        manager = to_checksum_address(account or self.deployment.position_manager)
        if await self._read_key_manager(manager, registry):
            self.logger.info(f"{manager} is already a key manager on {registry}")
            return None
        owner = await self._read_registry_owner(registry)
        if owner != to_checksum_address(self.wallet_address):
            raise PreconditionError(
                f"Only the {registry} owner ({owner}) can add key managers"
            )
        txn_hash = await self._send(
            self._registry_address(registry),
            MARKET_REGISTRY_ABI,
            "addKeyManager",
            [manager],
        )
        if not await self._read_key_manager(manager, registry):
            raise RuntimeError(
                f"{registry} did not record {manager} as key manager after {txn_hash}"
            )
        return txn_hash

    async def _read_vamm_hook(self, pool_id: str) -> str:
        async with web3_from_chain_id(self.chain_id) as web3:
            oracle = web3.eth.contract(
                address=self.deployment.funding_oracle, abi=FUNDING_ORACLE_ABI
            )
            hook = await oracle.functions.vammHooks(normalize_bytes32(pool_id)).call(
                block_identifier="latest"
            )
        return to_checksum_address(hook)

    async def _read_oracle_owner(self) -> str:
        async with web3_from_chain_id(self.chain_id) as web3:
            oracle = web3.eth.contract(
                address=self.deployment.funding_oracle, abi=FUNDING_ORACLE_ABI
            )
            owner = await oracle.functions.owner().call(block_identifier="latest")
        return to_checksum_address(owner)

    async def _add_to_funding_oracle(
        self, pool_id: str, hook: str, pyth_feed_id: str
    ) -> str:
        owner = await self._read_oracle_owner()
        if owner != to_checksum_address(self.wallet_address):
            raise PreconditionError(
                f"Only the FundingOracle owner ({owner}) can add markets"
            )
        txn_hash = await self._send(
            self.deployment.funding_oracle,
            FUNDING_ORACLE_ABI,
            "addMarket",
            [
                normalize_bytes32(pool_id),
                to_checksum_address(hook),
                normalize_bytes32(pyth_feed_id),
            ],
        )
        registered = await self._read_vamm_hook(pool_id)
        if registered == ZERO_ADDRESS:
            raise RuntimeError(
                f"FundingOracle did not record a vAMM hook for {pool_id} after {txn_hash}"
            )
        return txn_hash

    @require_wallet
    @status_tuple
    async def add_market_to_funding_oracle(
        self,
        pool_id: str | None = None,
        hook: str | None = None,
        pyth_feed_id: str = PYTH_ETH_USD_FEED_ID,
    ) -> str | None:
        """Returns ``None`` when the oracle already tracks the pool."""
        pid = self._pool_id(pool_id)
        if await self._read_vamm_hook(pid) != ZERO_ADDRESS:
            self.logger.info(f"FundingOracle already tracks {pid}")
            return None
        return await self._add_to_funding_oracle(
            pid, hook or self.deployment.perps_hook, pyth_feed_id
        )

    @require_wallet
    @status_tuple
    async def rebalance_vamm(
        self,
        virtual_base: int,
        virtual_quote: int,
        pool_id: str | None = None,
    ) -> dict[str, Any]:
        """Reset the hook's virtual reserves with ``emergencyRebalanceVAMM``."""
        if int(virtual_base) <= 0 or int(virtual_quote) <= 0:
            raise PreconditionError("Virtual reserves must be positive")
        pid = self._pool_id(pool_id)
        before = await self._read_market_state(pid)
        txn_hash = await self._send(
            self.deployment.perps_hook,
            PERPS_HOOK_ABI,
            "emergencyRebalanceVAMM",
            [normalize_bytes32(pid), int(virtual_base), int(virtual_quote)],
        )
        after = await self._read_market_state(pid)
        return {"txn_hash": txn_hash, "before": before, "state": after}

    async def _register_step(
        self,
        report: RegistrationReport,
        name: str,
        registry: Registry,
        market_args: list[Any],
        targets: list[tuple[str, list]],
    ) -> None:
        try:
            market = await self._read_market(report.market_id, registry)
        except Exception as exc:
            self.logger.warning(f"{name}: getMarket on {registry} failed: {exc}")
            report.steps.append(
                RegistrationStep(name=name, status="failed", error=describe_error(exc))
            )
            return
        if market.exists:
            report.steps.append(RegistrationStep(name=name, status="exists"))
            return

        errors: list[str] = []
        for target, abi in targets:
            try:
                txn_hash = await self._send(target, abi, "addMarket", market_args)
            except Exception as exc:
                # only a MarketAlreadyExists() revert proves the market is there
                if decode_revert_selector(exc) is ErrorKind.MARKET_EXISTS:
                    report.steps.append(RegistrationStep(name=name, status="exists"))
                    return
                self.logger.warning(f"{name}: addMarket via {target} failed: {exc}")
                errors.append(f"{target}: {describe_error(exc)}")
                continue
            report.steps.append(
                RegistrationStep(name=name, status="added", txn_hash=txn_hash)
            )
            return

        report.steps.append(
            RegistrationStep(name=name, status="failed", error="; ".join(errors))
        )

    @require_wallet
    @status_tuple
    async def register_market(
        self,
        market_id: str | None = None,
        base_asset: str | None = None,
        quote_asset: str | None = None,
        hook: str | None = None,
        pyth_feed_id: str = PYTH_ETH_USD_FEED_ID,
    ) -> RegistrationReport:
        """Register a market with every contract that needs to know about it.

        MarketManager, then PositionFactory (through PositionManager, falling
        back to the factory directly), then the FundingOracle. Steps already
        done on-chain are skipped. A failed step is logged as a warning and
        the remaining steps still run; nothing is rolled back.
        """
        mid = self._pool_id(market_id)
        hook_address = hook or self.deployment.perps_hook
        args = self._market_args(mid, base_asset, quote_asset, hook_address)
        report = RegistrationReport(market_id=mid)

        await self._register_step(
            report,
            "market_manager",
            "market_manager",
            args,
            [(self.deployment.market_manager, MARKET_REGISTRY_ABI)],
        )
        await self._register_step(
            report,
            "position_factory",
            "position_factory",
            args,
            [
                (self.deployment.position_manager, POSITION_MANAGER_ABI),
                (self.deployment.position_factory, MARKET_REGISTRY_ABI),
            ],
        )

        try:
            if await self._read_vamm_hook(mid) != ZERO_ADDRESS:
                report.steps.append(
                    RegistrationStep(name="funding_oracle", status="exists")
                )
            else:
                txn_hash = await self._add_to_funding_oracle(
                    mid, hook_address, pyth_feed_id
                )
                report.steps.append(
                    RegistrationStep(
                        name="funding_oracle", status="added", txn_hash=txn_hash
                    )
                )
        except Exception as exc:
            self.logger.warning(f"funding_oracle: registration failed: {exc}")
            report.steps.append(
                RegistrationStep(
                    name="funding_oracle", status="failed", error=describe_error(exc)
                )
            )

        if not report.ok:
            self.logger.warning(
                f"Market {mid} partially registered; earlier steps were kept"
            )
        return report
