from __future__ import annotations

import asyncio
from typing import Any

from eth_utils import to_checksum_address

from uniperp.core.adapters.BaseAdapter import BaseAdapter, require_wallet
from uniperp.core.adapters.decorators import status_tuple
from uniperp.core.adapters.models import MarginBalance
from uniperp.core.constants.base import ADAPTER_MARGIN, USDC_DECIMALS
from uniperp.core.constants.perps_abi import MARGIN_ACCOUNT_ABI
from uniperp.core.errors import PreconditionError
from uniperp.core.utils.tokens import ensure_allowance, get_token_balance
from uniperp.core.utils.transaction import SignCallback, call_and_send
from uniperp.core.utils.units import format_units
from uniperp.core.utils.web3 import web3_from_chain_id


class MarginAdapter(BaseAdapter):
    """MarginAccount collateral: USDC deposits, withdrawals and balance reads.

    Amounts are USDC base units (6 decimals).
    """

    adapter_type = ADAPTER_MARGIN

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        sign_callback: SignCallback | None = None,
        wallet_address: str | None = None,
        chain_id: int | None = None,
    ) -> None:
        super().__init__(
            "margin_adapter",
            config,
            sign_callback=sign_callback,
            wallet_address=wallet_address,
            chain_id=chain_id,
        )
        self.margin_account = self.deployment.margin_account
        self.usdc = self.deployment.usdc

    async def _read_balances(self, owner: str) -> MarginBalance:
        async with web3_from_chain_id(self.chain_id) as web3:
            account = web3.eth.contract(
                address=self.margin_account, abi=MARGIN_ACCOUNT_ABI
            )
            user = web3.to_checksum_address(owner)
            free, locked, total = await asyncio.gather(
                account.functions.freeBalance(user).call(block_identifier="latest"),
                account.functions.lockedBalance(user).call(block_identifier="latest"),
                account.functions.getTotalBalance(user).call(
                    block_identifier="latest"
                ),
            )
        return MarginBalance(
            owner=user, free=int(free), locked=int(locked), total=int(total)
        )

    @status_tuple
    async def get_balances(self, owner: str | None = None) -> MarginBalance:
        owner = owner or self.wallet_address
        if not owner:
            raise ValueError("owner address is required")
        return await self._read_balances(owner)

    @status_tuple
    async def get_free_balance(self, owner: str | None = None) -> int:
        owner = owner or self.wallet_address
        if not owner:
            raise ValueError("owner address is required")
        return (await self._read_balances(owner)).free

    @status_tuple
    async def get_wallet_usdc_balance(self, owner: str | None = None) -> int:
        owner = owner or self.wallet_address
        if not owner:
            raise ValueError("owner address is required")
        return await get_token_balance(self.usdc, self.chain_id, owner)

    async def _deposit(self, amount: int) -> str:
        wallet_balance = await get_token_balance(
            self.usdc, self.chain_id, self.wallet_address
        )
        if wallet_balance < amount:
            raise PreconditionError(
                "Insufficient USDC balance: have "
                f"{format_units(wallet_balance, USDC_DECIMALS)}, need "
                f"{format_units(amount, USDC_DECIMALS)}"
            )

        _, approval = await ensure_allowance(
            token_address=self.usdc,
            owner=self.wallet_address,
            spender=self.margin_account,
            amount=amount,
            chain_id=self.chain_id,
            signing_callback=self.sign_callback,
        )
        if approval:
            self.logger.info(f"Approved MarginAccount for USDC: {approval}")

        return await call_and_send(
            target=self.margin_account,
            abi=MARGIN_ACCOUNT_ABI,
            fn_name="deposit",
            args=[int(amount)],
            from_address=self.wallet_address,
            chain_id=self.chain_id,
            sign_callback=self.sign_callback,
        )

    @require_wallet
    @status_tuple
    async def deposit(self, amount: int) -> dict[str, Any]:
        if amount <= 0:
            raise PreconditionError("Deposit amount must be greater than zero")
        txn_hash = await self._deposit(amount)
        balances = await self._read_balances(self.wallet_address)
        return {"txn_hash": txn_hash, "balances": balances}

    @require_wallet
    @status_tuple
    async def withdraw(self, amount: int) -> dict[str, Any]:
        if amount <= 0:
            raise PreconditionError("Withdraw amount must be greater than zero")
        before = await self._read_balances(self.wallet_address)
        if before.free < amount:
            raise PreconditionError(
                "Insufficient free margin: have "
                f"{format_units(before.free, USDC_DECIMALS)}, need "
                f"{format_units(amount, USDC_DECIMALS)}"
            )
        txn_hash = await call_and_send(
            target=self.margin_account,
            abi=MARGIN_ACCOUNT_ABI,
            fn_name="withdraw",
            args=[int(amount)],
            from_address=self.wallet_address,
            chain_id=self.chain_id,
            sign_callback=self.sign_callback,
        )
        after = await self._read_balances(self.wallet_address)
        return {"txn_hash": txn_hash, "before": before, "balances": after}

    @status_tuple
    async def is_authorized(self, contract_address: str) -> bool:
        async with web3_from_chain_id(self.chain_id) as web3:
            account = web3.eth.contract(
                address=self.margin_account, abi=MARGIN_ACCOUNT_ABI
            )
            return bool(
                await account.functions.authorizedContracts(
                    web3.to_checksum_address(contract_address)
                ).call(block_identifier="latest")
            )

    @require_wallet
    @status_tuple
    async def authorize_contract(self, contract_address: str) -> str | None:
        """Owner-only: let ``contract_address`` lock and release user margin.

        Returns ``None`` when the contract is already authorized.
        """
        ok, authorized = await self.is_authorized(contract_address)
        if ok and authorized:
            self.logger.info(f"{contract_address} already authorized")
            return None
        return await call_and_send(
            target=self.margin_account,
            abi=MARGIN_ACCOUNT_ABI,
            fn_name="addAuthorizedContract",
            args=[to_checksum_address(contract_address)],
            from_address=self.wallet_address,
            chain_id=self.chain_id,
            sign_callback=self.sign_callback,
        )
