from __future__ import annotations

from enum import Enum
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak
from web3.exceptions import ContractCustomError, ContractLogicError, Web3RPCError

from uniperp.core.constants.perps_abi import PERPS_ERROR_SIGNATURES


class PreconditionError(ValueError):
    """Raised when a pre-flight read shows the action would fail on-chain."""


class ErrorKind(str, Enum):
    INSUFFICIENT_MARGIN = "insufficient_margin"
    UNAUTHORIZED = "unauthorized"
    POOL_NOT_INITIALIZED = "pool_not_initialized"
    HOOK_REVERT = "hook_revert"
    NOT_POSITION_OWNER = "not_position_owner"
    MARKET_NOT_ACTIVE = "market_not_active"
    MARKET_EXISTS = "market_exists"
    NOT_LIQUIDATABLE = "not_liquidatable"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NOT_OWNER = "not_owner"
    UNKNOWN = "unknown"


_SIGNATURE_KINDS: dict[str, ErrorKind] = {
    "InsufficientMargin()": ErrorKind.INSUFFICIENT_MARGIN,
    "Unauthorized()": ErrorKind.UNAUTHORIZED,
    "PoolNotInitialized()": ErrorKind.POOL_NOT_INITIALIZED,
    "WrappedError(address,bytes4,bytes,bytes)": ErrorKind.HOOK_REVERT,
    "NotPositionOwner()": ErrorKind.NOT_POSITION_OWNER,
    "MarketNotActive()": ErrorKind.MARKET_NOT_ACTIVE,
    "MarketAlreadyExists()": ErrorKind.MARKET_EXISTS,
    "PositionNotLiquidatable()": ErrorKind.NOT_LIQUIDATABLE,
    "ERC20InsufficientAllowance(address,uint256,uint256)": (
        ErrorKind.INSUFFICIENT_ALLOWANCE
    ),
    "ERC20InsufficientBalance(address,uint256,uint256)": (
        ErrorKind.INSUFFICIENT_BALANCE
    ),
    "OwnableUnauthorizedAccount(address)": ErrorKind.NOT_OWNER,
}


def error_selector(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


SELECTOR_KINDS: dict[str, ErrorKind] = {
    error_selector(sig): _SIGNATURE_KINDS[sig] for sig in PERPS_ERROR_SIGNATURES
}
# Undecoded selector the margin checks revert with on the deployed contracts.
SELECTOR_KINDS["0x41c092a9"] = ErrorKind.INSUFFICIENT_MARGIN

ERROR_STRING_SELECTOR = error_selector("Error(string)")
_REVERT_PREFIX = "execution reverted:"

# Matched against a decoded Error(string) reason only, in order.
_REASON_MARKERS: tuple[tuple[str, ErrorKind], ...] = (
    ("insufficient margin", ErrorKind.INSUFFICIENT_MARGIN),
    ("not position owner", ErrorKind.NOT_POSITION_OWNER),
    ("market not active", ErrorKind.MARKET_NOT_ACTIVE),
    ("market already exists", ErrorKind.MARKET_EXISTS),
    ("market exists", ErrorKind.MARKET_EXISTS),
    ("position not liquidatable", ErrorKind.NOT_LIQUIDATABLE),
    ("ownable: caller is not the owner", ErrorKind.NOT_OWNER),
    ("unauthorized", ErrorKind.UNAUTHORIZED),
)


def revert_data(exc: BaseException) -> str | None:
    """Hex revert payload carried by a web3 error, if any."""
    if not isinstance(exc, (ContractLogicError, Web3RPCError)):
        return None
    data: Any = getattr(exc, "data", None)
    rpc_response = getattr(exc, "rpc_response", None)
    if data is None and isinstance(rpc_response, dict):
        data = (rpc_response.get("error") or {}).get("data")
    if data is None and exc.args:
        # Web3RPCError carries the JSON-RPC error dict as its first arg
        first = exc.args[0]
        if isinstance(first, dict):
            data = first.get("data")
    if isinstance(data, dict):
        data = data.get("data")
    if isinstance(data, (bytes, bytearray)):
        data = "0x" + bytes(data).hex()
    if isinstance(data, str) and data.startswith("0x") and len(data) >= 10:
        return data.lower()
    return None


def decode_selector(data: str | bytes | None) -> ErrorKind:
    if data is None:
        return ErrorKind.UNKNOWN
    if isinstance(data, (bytes, bytearray)):
        data = "0x" + bytes(data).hex()
    return SELECTOR_KINDS.get(str(data)[:10].lower(), ErrorKind.UNKNOWN)


def revert_reason(exc: BaseException) -> str | None:
    """The ``Error(string)`` reason of a contract revert.

    Taken from ABI-encoded revert data when present, otherwise from the
    ``execution reverted: <reason>`` message web3 builds for plain reverts.
    JSON-RPC transport errors never carry a reason.
    """
    data = revert_data(exc)
    if data is not None and data.startswith(ERROR_STRING_SELECTOR):
        try:
            (reason,) = abi_decode(["string"], bytes.fromhex(data[10:]))
        except (DecodingError, ValueError):
            return None
        return str(reason)
    if not isinstance(exc, ContractLogicError) or isinstance(exc, ContractCustomError):
        return None
    message = getattr(exc, "message", None) or (exc.args[0] if exc.args else "")
    if isinstance(message, str) and message.lower().startswith(_REVERT_PREFIX):
        return message[len(_REVERT_PREFIX) :].strip() or None
    return None


def decode_reason(reason: str | None) -> ErrorKind:
    if not reason:
        return ErrorKind.UNKNOWN
    text = reason.lower()
    for marker, kind in _REASON_MARKERS:
        if marker in text:
            return kind
    return ErrorKind.UNKNOWN


def decode_revert_selector(exc: BaseException) -> ErrorKind:
    """Kind of a custom-error revert, from the selector in its revert data."""
    return decode_selector(revert_data(exc))


def decode_error(exc: BaseException) -> ErrorKind:
    """Classify a revert raised by web3 into an :class:`ErrorKind`."""
    kind = decode_revert_selector(exc)
    if kind is not ErrorKind.UNKNOWN:
        return kind
    return decode_reason(revert_reason(exc))


def describe_error(exc: BaseException) -> str:
    text = str(getattr(exc, "message", None) or exc)
    if isinstance(exc, PreconditionError):
        return str(exc)
    match decode_error(exc):
        case ErrorKind.INSUFFICIENT_MARGIN:
            diagnosis = "insufficient margin for this action"
        case ErrorKind.UNAUTHORIZED:
            diagnosis = "caller is not authorized on the target contract"
        case ErrorKind.POOL_NOT_INITIALIZED:
            diagnosis = "the pool has not been initialized"
        case ErrorKind.HOOK_REVERT:
            diagnosis = "the pool hook reverted"
        case ErrorKind.NOT_POSITION_OWNER:
            diagnosis = "you do not own this position"
        case ErrorKind.MARKET_NOT_ACTIVE:
            diagnosis = "the market is not active"
        case ErrorKind.MARKET_EXISTS:
            diagnosis = "the market is already registered"
        case ErrorKind.NOT_LIQUIDATABLE:
            diagnosis = "the position is not liquidatable"
        case ErrorKind.INSUFFICIENT_ALLOWANCE:
            diagnosis = "token allowance is too low"
        case ErrorKind.INSUFFICIENT_BALANCE:
            diagnosis = "token balance is too low"
        case ErrorKind.NOT_OWNER:
            diagnosis = "caller is not the contract owner"
        case ErrorKind.UNKNOWN:
            return text
    return f"{diagnosis} ({text})"
