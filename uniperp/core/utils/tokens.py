from typing import Any

from web3 import AsyncWeb3

from uniperp.core.constants.erc20_abi import ERC20_ABI
from uniperp.core.utils.transaction import SignCallback, call_and_send
from uniperp.core.utils.web3 import web3_from_chain_id


async def _erc20_call(
    token_address: str,
    chain_id: int,
    fn_name: str,
    *args: str,
    block_identifier: str | int = "latest",
) -> Any:
    async with web3_from_chain_id(chain_id) as web3:
        token = web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token_address), abi=ERC20_ABI
        )
        checksummed = [AsyncWeb3.to_checksum_address(a) for a in args]
        return await getattr(token.functions, fn_name)(*checksummed).call(
            block_identifier=block_identifier
        )


async def get_token_balance(
    token_address: str,
    chain_id: int,
    wallet_address: str,
    *,
    block_identifier: str | int = "latest",
) -> int:
    return int(
        await _erc20_call(
            token_address,
            chain_id,
            "balanceOf",
            wallet_address,
            block_identifier=block_identifier,
        )
    )


async def get_token_allowance(
    token_address: str, chain_id: int, owner_address: str, spender_address: str
) -> int:
    # pending so an approval still in the mempool counts
    return int(
        await _erc20_call(
            token_address,
            chain_id,
            "allowance",
            owner_address,
            spender_address,
            block_identifier="pending",
        )
    )


async def ensure_allowance(
    *,
    token_address: str,
    owner: str,
    spender: str,
    amount: int,
    chain_id: int,
    signing_callback: SignCallback,
    approval_amount: int | None = None,
) -> tuple[bool, Any]:
    """Approve ``spender`` when the current allowance is below ``amount``.

    Returns ``(True, {})`` when no approval was needed, otherwise
    ``(True, txn_hash)`` of the confirmed approval.
    """
    allowance = await get_token_allowance(token_address, chain_id, owner, spender)
    if allowance >= amount:
        return True, {}

    txn_hash = await call_and_send(
        target=token_address,
        abi=ERC20_ABI,
        fn_name="approve",
        args=[
            AsyncWeb3.to_checksum_address(spender),
            approval_amount if approval_amount is not None else amount,
        ],
        from_address=owner,
        chain_id=chain_id,
        sign_callback=signing_callback,
    )
    return True, txn_hash
