import math
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError

from uniperp.core.constants.base import GAS_BUFFER_MULTIPLIER
from uniperp.core.utils.transaction import (
    TransactionRevertedError,
    _get_transaction_from_address,
    prepare_transaction,
    send_transaction,
    wait_for_transaction_receipt,
)
from uniperp.core.utils.web3 import get_transaction_chain_id

FROM = "0x1234567890123456789012345678901234567890"
MODULE = "uniperp.core.utils.transaction"


def _ctx(mock_ctx: MagicMock, web3: MagicMock) -> None:
    mock_ctx.return_value.__aenter__.return_value = web3


def _chain_web3(*, estimate=100_000, nonce=7, base_fee=100, rewards=((10,), (20,))):
    web3 = MagicMock()
    web3.eth.estimate_gas = AsyncMock(return_value=estimate)
    web3.eth.get_transaction_count = AsyncMock(return_value=nonce)
    web3.eth.get_block = AsyncMock(return_value={"baseFeePerGas": base_fee})
    web3.eth.fee_history = AsyncMock(
        return_value=MagicMock(reward=[list(r) for r in rewards])
    )
    return web3


class TestGetChainId:
    def test_returns_int(self):
        assert get_transaction_chain_id({"chainId": "1301"}) == 1301

    def test_raises_without_chain_id(self):
        with pytest.raises(ValueError, match="chainId"):
            get_transaction_chain_id({})


class TestGetFromAddress:
    def test_checksums_address(self):
        lower = "0xcfe240be5c918d18dac233da08c9a3b71adf7d18"
        assert _get_transaction_from_address({"from": lower}) == (
            AsyncWeb3.to_checksum_address(lower)
        )

    def test_raises_without_from(self):
        with pytest.raises(ValueError, match="from address"):
            _get_transaction_from_address({"chainId": 1301})


@pytest.mark.asyncio
class TestPrepareTransaction:
    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_fills_gas_nonce_and_fees(self, mock_ctx):
        web3 = _chain_web3()
        _ctx(mock_ctx, web3)

        tx = {"chainId": 1301, "from": FROM, "gas": 1}
        result = await prepare_transaction(tx)

        assert result["gas"] == int(math.ceil(100_000 * GAS_BUFFER_MULTIPLIER))
        assert result["nonce"] == 7
        assert result["maxPriorityFeePerGas"] == 22
        assert result["maxFeePerGas"] == 222
        assert "gasPrice" not in result
        assert tx == {"chainId": 1301, "from": FROM, "gas": 1}

        estimate_tx = web3.eth.estimate_gas.await_args.args[0]
        assert "gas" not in estimate_tx
        web3.eth.get_transaction_count.assert_awaited_once_with(
            FROM, block_identifier="pending"
        )
        mock_ctx.assert_called_once_with(1301)

    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_empty_fee_history_means_zero_tip(self, mock_ctx):
        _ctx(mock_ctx, _chain_web3(base_fee=50, rewards=()))

        result = await prepare_transaction({"chainId": 1301, "from": FROM})

        assert result["maxPriorityFeePerGas"] == 0
        assert result["maxFeePerGas"] == 100

    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_revert_surfaces_before_nonce(self, mock_ctx):
        web3 = _chain_web3()
        web3.eth.estimate_gas = AsyncMock(
            side_effect=ContractLogicError("execution reverted", data="0x41c092a9")
        )
        _ctx(mock_ctx, web3)

        with pytest.raises(ContractLogicError):
            await prepare_transaction({"chainId": 1301, "from": FROM})
        web3.eth.get_transaction_count.assert_not_awaited()

    async def test_requires_from(self):
        with pytest.raises(ValueError, match="from address"):
            await prepare_transaction({"chainId": 1301})


@pytest.mark.asyncio
class TestReceipt:
    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_status_zero_raises(self, mock_ctx):
        web3 = MagicMock()
        web3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 0, "blockNumber": 5}
        )
        _ctx(mock_ctx, web3)

        with pytest.raises(TransactionRevertedError) as exc_info:
            await wait_for_transaction_receipt(1301, "abcd")
        assert exc_info.value.txn_hash == "0xabcd"

    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_success_returns_receipt(self, mock_ctx):
        async def _block_number():
            return 5

        web3 = MagicMock()
        web3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 1, "blockNumber": 5}
        )
        web3.eth.block_number = _block_number()
        _ctx(mock_ctx, web3)

        receipt = await wait_for_transaction_receipt(1301, "0xabcd")
        assert receipt["status"] == 1


@pytest.mark.asyncio
class TestSendTransaction:
    async def test_requires_sign_callback(self):
        with pytest.raises(ValueError, match="sign_callback"):
            await send_transaction({"chainId": 1301, "from": FROM}, None)

    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_signs_prepared_tx_and_prefixes_hash(self, mock_ctx):
        web3 = MagicMock()
        web3.eth.send_raw_transaction = AsyncMock(return_value=bytes.fromhex("beef"))
        _ctx(mock_ctx, web3)
        prepared = {"chainId": 1301, "from": FROM, "gas": 50_000, "nonce": 3}
        sign = AsyncMock(return_value=b"signed")

        with (
            patch(f"{MODULE}.prepare_transaction", AsyncMock(return_value=prepared)),
            patch(
                f"{MODULE}.wait_for_transaction_receipt",
                AsyncMock(return_value={"status": 1, "blockNumber": 9}),
            ) as wait,
        ):
            txn_hash = await send_transaction({"chainId": 1301, "from": FROM}, sign)

        assert txn_hash == "0xbeef"
        sign.assert_awaited_once_with(prepared)
        web3.eth.send_raw_transaction.assert_awaited_once_with(b"signed")
        wait.assert_awaited_once_with(1301, "0xbeef")

    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_revert_reports_gas_usage(self, mock_ctx):
        web3 = MagicMock()
        web3.eth.send_raw_transaction = AsyncMock(return_value="0xbeef")
        _ctx(mock_ctx, web3)
        prepared = {"chainId": 1301, "from": FROM, "gas": 21_000}
        revert = TransactionRevertedError("0xbeef", {"gasUsed": 21_000, "status": 0})

        with (
            patch(f"{MODULE}.prepare_transaction", AsyncMock(return_value=prepared)),
            patch(
                f"{MODULE}.wait_for_transaction_receipt",
                AsyncMock(side_effect=revert),
            ),
        ):
            with pytest.raises(TransactionRevertedError, match="likely out of gas"):
                await send_transaction(
                    {"chainId": 1301, "from": FROM}, AsyncMock(return_value=b"x")
                )
