from __future__ import annotations

from typing import NamedTuple

from eth_abi import encode as abi_encode
from eth_utils import keccak, to_checksum_address

from uniperp.core.constants.base import (
    DEFAULT_POOL_FEE,
    DEFAULT_SQRT_PRICE_X96,
    DEFAULT_TICK_SPACING,
)
from uniperp.core.constants.contracts import Deployment

_MAX_UINT24 = 2**24 - 1
_MIN_INT24 = -(2**23)
_MAX_INT24 = 2**23 - 1
_MAX_UINT160 = 2**160 - 1


class PoolKey(NamedTuple):
    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str


class PoolInfo(NamedTuple):
    key: PoolKey
    pool_id: str
    base_asset: str
    quote_asset: str
    base_is_currency0: bool


def _checksum(address: str) -> str:
    try:
        return to_checksum_address(address)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Malformed address: {address!r}") from exc


def sort_currencies(currency_a: str, currency_b: str) -> tuple[str, str]:
    a = _checksum(currency_a)
    b = _checksum(currency_b)
    return (a, b) if int(a, 16) < int(b, 16) else (b, a)


def build_pool_key(
    *,
    currency_a: str,
    currency_b: str,
    fee: int,
    tick_spacing: int,
    hooks: str,
) -> PoolKey:
    c0, c1 = sort_currencies(currency_a, currency_b)
    if c0 == c1:
        raise ValueError("Pool currencies must differ")
    fee = int(fee)
    tick_spacing = int(tick_spacing)
    if not 0 <= fee <= _MAX_UINT24:
        raise ValueError(f"fee out of uint24 range: {fee}")
    if not _MIN_INT24 <= tick_spacing <= _MAX_INT24:
        raise ValueError(f"tickSpacing out of int24 range: {tick_spacing}")
    return PoolKey(c0, c1, fee, tick_spacing, _checksum(hooks))


def pool_id(key: PoolKey) -> str:
    c0, c1, fee, tick_spacing, hooks = key
    encoded = abi_encode(
        ["address", "address", "uint24", "int24", "address"],
        [
            _checksum(c0),
            _checksum(c1),
            int(fee),
            int(tick_spacing),
            _checksum(hooks),
        ],
    )
    return "0x" + keccak(encoded).hex()


def compute_pool_id(
    currency_a: str,
    currency_b: str,
    fee: int = DEFAULT_POOL_FEE,
    tick_spacing: int = DEFAULT_TICK_SPACING,
    hooks: str = "0x0000000000000000000000000000000000000000",
) -> str:
    return pool_id(
        build_pool_key(
            currency_a=currency_a,
            currency_b=currency_b,
            fee=fee,
            tick_spacing=tick_spacing,
            hooks=hooks,
        )
    )


def pool_info(
    *,
    base_asset: str,
    quote_asset: str,
    hooks: str,
    fee: int = DEFAULT_POOL_FEE,
    tick_spacing: int = DEFAULT_TICK_SPACING,
) -> PoolInfo:
    key = build_pool_key(
        currency_a=base_asset,
        currency_b=quote_asset,
        fee=fee,
        tick_spacing=tick_spacing,
        hooks=hooks,
    )
    base = _checksum(base_asset)
    return PoolInfo(
        key=key,
        pool_id=pool_id(key),
        base_asset=base,
        quote_asset=_checksum(quote_asset),
        base_is_currency0=key.currency0 == base,
    )


def default_pool_info(deployment: Deployment) -> PoolInfo:
    """The VETH/USDC market pool hooked by the deployment's PerpsHook."""
    return pool_info(
        base_asset=deployment.veth,
        quote_asset=deployment.usdc,
        hooks=deployment.perps_hook,
    )


def pool_key_tuple(key: PoolKey) -> tuple[str, str, int, int, str]:
    return (key.currency0, key.currency1, key.fee, key.tick_spacing, key.hooks)


def validate_sqrt_price_x96(sqrt_price_x96: int = DEFAULT_SQRT_PRICE_X96) -> int:
    value = int(sqrt_price_x96)
    if not 0 < value <= _MAX_UINT160:
        raise ValueError(f"sqrtPriceX96 out of range: {sqrt_price_x96}")
    return value


def normalize_bytes32(value: str | bytes) -> bytes:
    """Accept a 0x-prefixed 32-byte hex id (pool id / market id) or raw bytes."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        text = str(value).strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"Malformed bytes32 value: {value!r}") from exc
    if len(raw) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(raw)}: {value!r}")
    return raw
