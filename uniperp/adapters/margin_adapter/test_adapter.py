from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from eth_utils import to_checksum_address
from web3.exceptions import ContractLogicError

from uniperp.adapters.margin_adapter.adapter import MarginAdapter
from uniperp.core.constants.contracts import DEPLOYMENTS

FAKE_WALLET = "0x1234567890123456789012345678901234567890"
MODULE = "uniperp.adapters.margin_adapter.adapter"
DEPLOYMENT = DEPLOYMENTS[1301]


@pytest.fixture
def adapter():
    return MarginAdapter(
        sign_callback=AsyncMock(return_value=b"signed"),
        wallet_address=FAKE_WALLET,
        chain_id=1301,
    )


@pytest.fixture
def adapter_no_wallet():
    return MarginAdapter(chain_id=1301)


def _mock_call(return_value):
    return MagicMock(call=AsyncMock(return_value=return_value))


def _margin_web3(*, free=0, locked=0, authorized=False):
    contract = MagicMock()
    contract.functions.freeBalance = MagicMock(return_value=_mock_call(free))
    contract.functions.lockedBalance = MagicMock(return_value=_mock_call(locked))
    contract.functions.getTotalBalance = MagicMock(
        return_value=_mock_call(free + locked)
    )
    contract.functions.authorizedContracts = MagicMock(
        return_value=_mock_call(authorized)
    )
    web3 = MagicMock()
    web3.eth.contract = MagicMock(return_value=contract)
    web3.to_checksum_address = to_checksum_address

    @asynccontextmanager
    async def ctx(_chain_id):
        yield web3

    return ctx


# ---------------------------------------------------------------------------
# init / reads
# ---------------------------------------------------------------------------


def test_defaults(adapter):
    assert adapter.adapter_type == "MARGIN"
    assert adapter.margin_account == DEPLOYMENT.margin_account
    assert adapter.usdc == DEPLOYMENT.usdc


@pytest.mark.asyncio
async def test_get_balances(adapter):
    with patch(f"{MODULE}.web3_from_chain_id", _margin_web3(free=70, locked=30)):
        ok, balances = await adapter.get_balances()
    assert ok is True
    assert (balances.free, balances.locked, balances.total) == (70, 30, 100)
    assert balances.owner == FAKE_WALLET


@pytest.mark.asyncio
async def test_get_balances_requires_owner(adapter_no_wallet):
    ok, msg = await adapter_no_wallet.get_balances()
    assert ok is False
    assert "owner address" in msg


# ---------------------------------------------------------------------------
# deposit
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_deposit_requires_wallet(adapter_no_wallet):
    ok, msg = await adapter_no_wallet.deposit(1_000_000)
    assert ok is False
    assert "wallet address" in msg


@pytest.mark.asyncio
async def test_deposit_requires_signing_callback():
    adapter = MarginAdapter(wallet_address=FAKE_WALLET, chain_id=1301)
    ok, msg = await adapter.deposit(1_000_000)
    assert ok is False
    assert "signing callback" in msg


@pytest.mark.asyncio
async def test_deposit_rejects_zero(adapter):
    ok, msg = await adapter.deposit(0)
    assert ok is False
    assert "greater than zero" in msg


@pytest.mark.asyncio
async def test_deposit_insufficient_wallet_balance(adapter):
    send = AsyncMock()
    with (
        patch(f"{MODULE}.get_token_balance", AsyncMock(return_value=50_000_000)),
        patch(f"{MODULE}.ensure_allowance", AsyncMock()) as allowance,
        patch(f"{MODULE}.call_and_send", send),
    ):
        ok, msg = await adapter.deposit(100_000_000)

    assert ok is False
    assert msg == "Insufficient USDC balance: have 50, need 100"
    allowance.assert_not_awaited()
    send.assert_not_awaited()


@pytest.mark.asyncio
async def test_deposit_approves_then_deposits(adapter):
    send = AsyncMock(return_value="0xdeposit")
    allowance = AsyncMock(return_value=(True, "0xapprove"))
    with (
        patch(f"{MODULE}.get_token_balance", AsyncMock(return_value=500_000_000)),
        patch(f"{MODULE}.ensure_allowance", allowance),
        patch(f"{MODULE}.call_and_send", send),
        patch(f"{MODULE}.web3_from_chain_id", _margin_web3(free=100_000_000)),
    ):
        ok, result = await adapter.deposit(100_000_000)

    assert ok is True
    assert result["txn_hash"] == "0xdeposit"
    assert result["balances"].free == 100_000_000

    allowance_kwargs = allowance.await_args.kwargs
    assert allowance_kwargs["token_address"] == DEPLOYMENT.usdc
    assert allowance_kwargs["spender"] == DEPLOYMENT.margin_account
    assert allowance_kwargs["amount"] == 100_000_000

    send_kwargs = send.await_args.kwargs
    assert send_kwargs["target"] == DEPLOYMENT.margin_account
    assert send_kwargs["fn_name"] == "deposit"
    assert send_kwargs["args"] == [100_000_000]


# ---------------------------------------------------------------------------
# withdraw
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_withdraw_more_than_free(adapter):
    send = AsyncMock()
    with (
        patch(f"{MODULE}.web3_from_chain_id", _margin_web3(free=10_000_000)),
        patch(f"{MODULE}.call_and_send", send),
    ):
        ok, msg = await adapter.withdraw(20_000_000)
    assert ok is False
    assert "Insufficient free margin" in msg
    send.assert_not_awaited()


@pytest.mark.asyncio
async def test_withdraw(adapter):
    send = AsyncMock(return_value="0xwithdraw")
    with (
        patch(f"{MODULE}.web3_from_chain_id", _margin_web3(free=30_000_000)),
        patch(f"{MODULE}.call_and_send", send),
    ):
        ok, result = await adapter.withdraw(20_000_000)
    assert ok is True
    assert result["txn_hash"] == "0xwithdraw"
    assert send.await_args.kwargs["fn_name"] == "withdraw"
    assert send.await_args.kwargs["args"] == [20_000_000]


@pytest.mark.asyncio
async def test_withdraw_revert_is_reported(adapter):
    send = AsyncMock(side_effect=ContractLogicError("execution reverted: insufficient margin"))
    with (
        patch(f"{MODULE}.web3_from_chain_id", _margin_web3(free=30_000_000)),
        patch(f"{MODULE}.call_and_send", send),
    ):
        ok, msg = await adapter.withdraw(20_000_000)
    assert ok is False
    assert msg.startswith("insufficient margin for this action")


# ---------------------------------------------------------------------------
# authorization
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_authorize_skips_when_already_authorized(adapter):
    send = AsyncMock()
    with (
        patch(f"{MODULE}.web3_from_chain_id", _margin_web3(authorized=True)),
        patch(f"{MODULE}.call_and_send", send),
    ):
        ok, result = await adapter.authorize_contract(DEPLOYMENT.position_manager)
    assert ok is True
    assert result is None
    send.assert_not_awaited()


@pytest.mark.asyncio
async def test_authorize_contract(adapter):
    send = AsyncMock(return_value="0xauth")
    with (
        patch(f"{MODULE}.web3_from_chain_id", _margin_web3(authorized=False)),
        patch(f"{MODULE}.call_and_send", send),
    ):
        ok, result = await adapter.authorize_contract(
            DEPLOYMENT.position_manager.lower()
        )
    assert ok is True
    assert result == "0xauth"
    assert send.await_args.kwargs["fn_name"] == "addAuthorizedContract"
    assert send.await_args.kwargs["args"] == [DEPLOYMENT.position_manager]
