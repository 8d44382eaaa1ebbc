import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger
from web3 import AsyncWeb3

from uniperp.core.constants.base import (
    DEFAULT_CONFIRMATIONS,
    DEFAULT_TRANSACTION_TIMEOUT,
    GAS_BUFFER_MULTIPLIER,
    MAX_BASE_FEE_GROWTH_MULTIPLIER,
    SUGGESTED_GAS_PRICE_MULTIPLIER,
    SUGGESTED_PRIORITY_FEE_MULTIPLIER,
)
from uniperp.core.constants.chains import PRE_EIP_1559_CHAIN_IDS
from uniperp.core.utils.web3 import get_transaction_chain_id, web3_from_chain_id

SignCallback = Callable[[dict], Awaitable[bytes]]

_FEE_HISTORY_BLOCKS = 10
_FEE_HISTORY_PERCENTILE = 80


class TransactionRevertedError(RuntimeError):
    def __init__(
        self,
        txn_hash: str,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.txn_hash = txn_hash
        self.receipt = receipt or {}
        super().__init__(message or f"Transaction reverted: {txn_hash}")

    @classmethod
    def with_gas_report(
        cls, txn_hash: str, receipt: dict[str, Any], gas_limit: int
    ) -> "TransactionRevertedError":
        gas_used = int(receipt.get("gasUsed") or 0)
        message = f"Transaction reverted (status=0): {txn_hash}"
        if gas_used or gas_limit:
            message += f" gasUsed={gas_used} gasLimit={gas_limit}"
        if gas_used and gas_limit and gas_used >= gas_limit:
            message += " (likely out of gas)"
        return cls(txn_hash, receipt, message=message)


def _hex_hash(txn_hash: Any) -> str:
    text = txn_hash.hex() if isinstance(txn_hash, (bytes, bytearray)) else str(txn_hash)
    return text if text.startswith("0x") else f"0x{text}"


def _get_transaction_from_address(transaction: dict) -> str:
    if "from" not in transaction:
        raise ValueError("Transaction does not contain from address")
    return AsyncWeb3.to_checksum_address(transaction["from"])


async def _estimate_gas(web3: AsyncWeb3, transaction: dict) -> int:
    # a stale "gas" field would cap the estimate
    estimate_tx = {k: v for k, v in transaction.items() if k != "gas"}
    estimate = await web3.eth.estimate_gas(estimate_tx, block_identifier="latest")
    return int(math.ceil(estimate * GAS_BUFFER_MULTIPLIER))


async def _pending_nonce(web3: AsyncWeb3, from_address: str) -> int:
    return await web3.eth.get_transaction_count(
        from_address, block_identifier="pending"
    )


async def _fee_fields(web3: AsyncWeb3, chain_id: int) -> dict[str, int]:
    if chain_id in PRE_EIP_1559_CHAIN_IDS:
        gas_price = await web3.eth.gas_price
        return {"gasPrice": int(gas_price * SUGGESTED_GAS_PRICE_MULTIPLIER)}

    latest_block, history = await asyncio.gather(
        web3.eth.get_block("latest"),
        web3.eth.fee_history(
            _FEE_HISTORY_BLOCKS, "latest", [_FEE_HISTORY_PERCENTILE]
        ),
    )
    rewards = [r[0] for r in history.reward]
    priority_fee = sum(rewards) // len(rewards) if rewards else 0
    tip = priority_fee * SUGGESTED_PRIORITY_FEE_MULTIPLIER
    return {
        "maxFeePerGas": int(
            latest_block["baseFeePerGas"] * MAX_BASE_FEE_GROWTH_MULTIPLIER + tip
        ),
        "maxPriorityFeePerGas": int(tip),
    }


async def prepare_transaction(transaction: dict) -> dict:
    """Fill gas limit, pending nonce and fee fields over one RPC connection.

    Gas is estimated first so a call that would revert fails here, before
    anything is signed.
    """
    chain_id = get_transaction_chain_id(transaction)
    from_address = _get_transaction_from_address(transaction)
    async with web3_from_chain_id(chain_id) as web3:
        gas = await _estimate_gas(web3, transaction)
        nonce, fees = await asyncio.gather(
            _pending_nonce(web3, from_address), _fee_fields(web3, chain_id)
        )
    return {**transaction, "gas": gas, "nonce": nonce, **fees}


async def wait_for_transaction_receipt(
    chain_id: int,
    txn_hash: str,
    poll_interval: float = 0.5,
    timeout: int = DEFAULT_TRANSACTION_TIMEOUT,
    confirmations: int = DEFAULT_CONFIRMATIONS,
) -> dict:
    txn_hash = _hex_hash(txn_hash)
    async with web3_from_chain_id(chain_id) as web3:
        receipt = dict(
            await web3.eth.wait_for_transaction_receipt(
                txn_hash, poll_latency=poll_interval, timeout=timeout
            )
        )
        if receipt.get("status") == 0:
            raise TransactionRevertedError(txn_hash, receipt)

        target_block = receipt["blockNumber"] + confirmations - 1
        while await web3.eth.block_number < target_block:
            await asyncio.sleep(poll_interval)
    return receipt


async def send_transaction(
    transaction: dict, sign_callback: SignCallback | None, wait_for_receipt=True
) -> str:
    if sign_callback is None:
        raise ValueError("sign_callback must be provided to send transaction")

    chain_id = get_transaction_chain_id(transaction)
    prepared = await prepare_transaction(transaction)
    logger.debug(f"Prepared transaction {prepared}")
    signed = await sign_callback(prepared)

    async with web3_from_chain_id(chain_id) as web3:
        txn_hash = _hex_hash(await web3.eth.send_raw_transaction(signed))
    logger.info(f"Transaction broadcasted: {txn_hash}")

    if wait_for_receipt:
        try:
            receipt = await wait_for_transaction_receipt(chain_id, txn_hash)
        except TransactionRevertedError as exc:
            raise TransactionRevertedError.with_gas_report(
                txn_hash, exc.receipt, int(prepared.get("gas") or 0)
            ) from exc
        logger.info(f"Transaction confirmed in block {receipt.get('blockNumber')}")
    return txn_hash


async def encode_call(
    *,
    target: str,
    abi: list[dict[str, Any]],
    fn_name: str,
    args: list[Any],
    from_address: str,
    chain_id: int,
    value: int = 0,
) -> dict[str, Any]:
    """Unsigned transaction dict for ``fn_name(*args)`` on ``target``."""
    to_address = AsyncWeb3.to_checksum_address(target)
    async with web3_from_chain_id(chain_id) as web3:
        contract = web3.eth.contract(address=to_address, abi=abi)
        try:
            data = contract.encode_abi(fn_name, args)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Failed to encode {fn_name}: {exc}") from exc

    return {
        "chainId": int(chain_id),
        "from": AsyncWeb3.to_checksum_address(from_address),
        "to": to_address,
        "data": data,
        "value": int(value),
    }


async def call_and_send(
    *,
    target: str,
    abi: list[dict[str, Any]],
    fn_name: str,
    args: list[Any],
    from_address: str,
    chain_id: int,
    sign_callback: SignCallback | None,
) -> str:
    """Encode ``fn_name(*args)`` on ``target``, sign, broadcast and await the receipt."""
    tx = await encode_call(
        target=target,
        abi=abi,
        fn_name=fn_name,
        args=args,
        from_address=from_address,
        chain_id=chain_id,
    )
    return await send_transaction(tx, sign_callback)
