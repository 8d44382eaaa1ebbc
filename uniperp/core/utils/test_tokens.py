from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from uniperp.core.constants.contracts import DEPLOYMENTS
from uniperp.core.utils.tokens import ensure_allowance, get_token_balance

MODULE = "uniperp.core.utils.tokens"
OWNER = "0x1234567890123456789012345678901234567890"
USDC = DEPLOYMENTS[1301].usdc
SPENDER = DEPLOYMENTS[1301].margin_account


def _erc20_web3(*, balance=0, allowance=0):
    token = MagicMock()
    token.functions.balanceOf = MagicMock(
        return_value=MagicMock(call=AsyncMock(return_value=balance))
    )
    token.functions.allowance = MagicMock(
        return_value=MagicMock(call=AsyncMock(return_value=allowance))
    )
    web3 = MagicMock()
    web3.eth.contract = MagicMock(return_value=token)

    @asynccontextmanager
    async def ctx(_chain_id):
        yield web3

    return ctx, token


@pytest.mark.asyncio
async def test_balance_reads_checksummed_owner():
    ctx, token = _erc20_web3(balance=42)
    with patch(f"{MODULE}.web3_from_chain_id", ctx):
        assert await get_token_balance(USDC, 1301, OWNER) == 42
    token.functions.balanceOf.assert_called_once_with(OWNER)


@pytest.mark.asyncio
async def test_sufficient_allowance_skips_approval():
    ctx, token = _erc20_web3(allowance=10**6)
    send = AsyncMock()
    with patch(f"{MODULE}.web3_from_chain_id", ctx), patch(f"{MODULE}.call_and_send", send):
        ok, result = await ensure_allowance(
            token_address=USDC,
            owner=OWNER,
            spender=SPENDER,
            amount=10**6,
            chain_id=1301,
            signing_callback=AsyncMock(),
        )
    assert (ok, result) == (True, {})
    send.assert_not_awaited()
    token.functions.allowance.return_value.call.assert_awaited_once_with(
        block_identifier="pending"
    )


@pytest.mark.asyncio
async def test_low_allowance_approves_exact_amount():
    ctx, _ = _erc20_web3(allowance=5)
    send = AsyncMock(return_value="0xapprove")
    with patch(f"{MODULE}.web3_from_chain_id", ctx), patch(f"{MODULE}.call_and_send", send):
        ok, result = await ensure_allowance(
            token_address=USDC,
            owner=OWNER,
            spender=SPENDER,
            amount=10**6,
            chain_id=1301,
            signing_callback=AsyncMock(),
        )
    assert (ok, result) == (True, "0xapprove")
    kwargs = send.await_args.kwargs
    assert kwargs["fn_name"] == "approve"
    assert kwargs["args"] == [SPENDER, 10**6]
    assert kwargs["target"] == USDC
