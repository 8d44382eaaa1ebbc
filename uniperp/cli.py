"""Operator CLI for the perps deployment.

Usage:
  uniperp pool-id 0xTokenA 0xTokenB
  uniperp deposit-margin 100
  uniperp open-long 100 5
  uniperp close-position 3 25
  uniperp scan-liquidations --max-token-id 50
  uniperp rebalance-vamm 2000

Secrets come from the environment: PRIVATE_KEY for anything that signs,
RPC_URL / UNICHAIN_SEPOLIA_RPC_URL and CHAIN_ID to pick the network.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Coroutine
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

import click
from loguru import logger
from pydantic import BaseModel

from uniperp.adapters.liquidation_adapter.adapter import LiquidationAdapter
from uniperp.adapters.margin_adapter.adapter import MarginAdapter
from uniperp.adapters.market_adapter.adapter import MarketAdapter
from uniperp.adapters.pool_adapter.adapter import PoolAdapter
from uniperp.adapters.position_adapter.adapter import PositionAdapter
from uniperp.core.config import get_chain_id, load_config
from uniperp.core.constants.base import (
    DEFAULT_INSURANCE_FEE_BPS,
    DEFAULT_LIQUIDATION_FEE_BPS,
    DEFAULT_MAINTENANCE_MARGIN_BPS,
    DEFAULT_POOL_FEE,
    DEFAULT_SCAN_MAX_TOKEN_ID,
    DEFAULT_SQRT_PRICE_X96,
    DEFAULT_TICK_SPACING,
    PRICE_DECIMALS,
    USDC_DECIMALS,
    VETH_DECIMALS,
)
from uniperp.core.constants.chains import get_explorer_tx_url
from uniperp.core.constants.contracts import PYTH_ETH_USD_FEED_ID, get_deployment
from uniperp.core.utils.pool import build_pool_key, pool_id
from uniperp.core.utils.position_math import (
    parse_percent,
    vamm_price,
    virtual_base_for_price,
)
from uniperp.core.utils.units import format_units, parse_positive_amount
from uniperp.core.utils.wallets import load_account, make_sign_callback
from uniperp.core.utils.web3 import web3_session


@dataclass
class CliContext:
    chain_id: int
    as_json: bool = False

    def signer(self) -> tuple[str, Any]:
        try:
            account = load_account()
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc
        return account.address, make_sign_callback(account)

    def reader_address(self) -> str | None:
        try:
            return load_account().address
        except ValueError:
            return None

    def adapter(self, cls: type, *, write: bool = False, **kwargs: Any) -> Any:
        if write:
            wallet_address, sign_callback = self.signer()
        else:
            wallet_address, sign_callback = self.reader_address(), None
        return cls(
            sign_callback=sign_callback,
            wallet_address=wallet_address,
            chain_id=self.chain_id,
            **kwargs,
        )


def _echo_json(data: Any) -> None:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]
    click.echo(json.dumps(data, indent=2, default=str))


R = TypeVar("R")
T = TypeVar("T")


async def _in_session(coro: Coroutine[Any, Any, R]) -> R:
    async with web3_session():
        return await coro


def _run(coro: Coroutine[Any, Any, tuple[bool, T | str]]) -> T:
    ok, result = asyncio.run(_in_session(coro))
    if not ok:
        raise click.ClickException(str(result))
    return result  # type: ignore[return-value]


def _usdc(value: str) -> int:
    try:
        return parse_positive_amount(value, USDC_DECIMALS)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def _leverage(value: str) -> Decimal:
    try:
        lev = Decimal(value.strip())
    except InvalidOperation as exc:
        raise click.BadParameter(f"Invalid leverage: {value}") from exc
    if not lev.is_finite() or lev <= 0:
        raise click.BadParameter("leverage must be positive")
    return lev


def _usdc_str(raw: int) -> str:
    return f"{format_units(raw, USDC_DECIMALS, 2)} USDC"


def _price_str(raw: int) -> str:
    return format_units(raw, PRICE_DECIMALS, 4)


def _veth_str(raw: int) -> str:
    return f"{format_units(abs(raw), VETH_DECIMALS, 6)} VETH"


def _echo_tx(ctx: CliContext, label: str, txn_hash: str | None) -> None:
    if not txn_hash:
        return
    url = get_explorer_tx_url(ctx.chain_id, txn_hash)
    click.echo(f"{label}: {txn_hash}" + (f" ({url})" if url else ""))


def _echo_balances(balances: Any) -> None:
    click.echo(f"Free margin:   {_usdc_str(balances.free)}")
    click.echo(f"Locked margin: {_usdc_str(balances.locked)}")
    click.echo(f"Total margin:  {_usdc_str(balances.total)}")


@click.group(name="uniperp", help="Operator commands for the perps deployment.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
@click.option("--chain-id", type=int, default=None, help="Overrides CHAIN_ID.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a config.json with rpc_urls / contracts overrides.",
)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: str,
    chain_id: int | None,
    config_path: str | None,
    as_json: bool,
) -> None:
    logger.remove()
    logger.add(sys.stderr, level=str(log_level).upper())
    try:
        if config_path:
            load_config(config_path, require_exists=True)
        resolved_chain_id = chain_id if chain_id is not None else get_chain_id()
        get_deployment(resolved_chain_id)
    except (ValueError, FileNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = CliContext(chain_id=resolved_chain_id, as_json=as_json)


# ---------------------------------------------------------------------------
# Pools
# ---------------------------------------------------------------------------


@cli.command(name="pool-id", help="Derive the v4 pool id for a token pair.")
@click.argument("token_a")
@click.argument("token_b")
@click.option("--fee", type=int, default=DEFAULT_POOL_FEE, show_default=True)
@click.option(
    "--tick-spacing", type=int, default=DEFAULT_TICK_SPACING, show_default=True
)
@click.option("--hooks", default=None, help="Hook address (default: PerpsHook).")
@click.pass_obj
def pool_id_cmd(
    ctx: CliContext,
    token_a: str,
    token_b: str,
    fee: int,
    tick_spacing: int,
    hooks: str | None,
) -> None:
    hooks = hooks or get_deployment(ctx.chain_id).perps_hook
    try:
        key = build_pool_key(
            currency_a=token_a,
            currency_b=token_b,
            fee=fee,
            tick_spacing=tick_spacing,
            hooks=hooks,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    pid = pool_id(key)
    if ctx.as_json:
        _echo_json({"pool_id": pid, "key": key._asdict()})
        return
    click.echo(f"currency0:   {key.currency0}")
    click.echo(f"currency1:   {key.currency1}")
    click.echo(f"fee:         {key.fee}")
    click.echo(f"tickSpacing: {key.tick_spacing}")
    click.echo(f"hooks:       {key.hooks}")
    click.echo(f"poolId:      {pid}")


@cli.command(name="check-pool", help="Show slot0 for a pool.")
@click.argument("pool_id_hex", required=False)
@click.pass_obj
def check_pool_cmd(ctx: CliContext, pool_id_hex: str | None) -> None:
    adapter = ctx.adapter(PoolAdapter)
    slot0 = _run(adapter.get_slot0(pool_id_hex))
    if ctx.as_json:
        _echo_json(slot0)
        return
    click.echo(f"Pool {slot0.pool_id}")
    if not slot0.is_initialized:
        click.echo("Not initialized")
        return
    click.echo(f"sqrtPriceX96: {slot0.sqrt_price_x96}")
    click.echo(f"tick:         {slot0.tick}")
    click.echo(f"lpFee:        {slot0.lp_fee}")
    click.echo(f"protocolFee:  {slot0.protocol_fee}")


@cli.command(name="initialize-pool", help="Initialize the default market pool.")
@click.option(
    "--sqrt-price-x96",
    type=int,
    default=DEFAULT_SQRT_PRICE_X96,
    show_default=True,
)
@click.pass_obj
def initialize_pool_cmd(ctx: CliContext, sqrt_price_x96: int) -> None:
    adapter = ctx.adapter(PoolAdapter, write=True)
    result = _run(adapter.initialize_pool(sqrt_price_x96=sqrt_price_x96))
    _echo_tx(ctx, "Initialized", result["txn_hash"])
    click.echo(f"Pool {result['pool_id']} tick={result['slot0'].tick}")


# ---------------------------------------------------------------------------
# Margin
# ---------------------------------------------------------------------------


@cli.command(name="balance", help="Show MarginAccount balances.")
@click.argument("owner", required=False)
@click.pass_obj
def balance_cmd(ctx: CliContext, owner: str | None) -> None:
    adapter = ctx.adapter(MarginAdapter)
    if not (owner or adapter.wallet_address):
        raise click.UsageError("Pass an OWNER address or set PRIVATE_KEY")
    balances = _run(adapter.get_balances(owner))
    if ctx.as_json:
        _echo_json(balances)
        return
    click.echo(f"Account {balances.owner}")
    _echo_balances(balances)


@cli.command(name="deposit-margin", help="Deposit USDC into the MarginAccount.")
@click.argument("amount")
@click.pass_obj
def deposit_margin_cmd(ctx: CliContext, amount: str) -> None:
    raw = _usdc(amount)
    adapter = ctx.adapter(MarginAdapter, write=True)
    result = _run(adapter.deposit(raw))
    _echo_tx(ctx, "Deposited", result["txn_hash"])
    _echo_balances(result["balances"])


@cli.command(name="withdraw-margin", help="Withdraw free USDC from the MarginAccount.")
@click.argument("amount")
@click.pass_obj
def withdraw_margin_cmd(ctx: CliContext, amount: str) -> None:
    raw = _usdc(amount)
    adapter = ctx.adapter(MarginAdapter, write=True)
    result = _run(adapter.withdraw(raw))
    click.echo(f"Free margin before: {_usdc_str(result['before'].free)}")
    _echo_tx(ctx, "Withdrew", result["txn_hash"])
    _echo_balances(result["balances"])


@cli.command(name="authorize", help="Authorize a contract on the MarginAccount.")
@click.argument("contract_address", required=False)
@click.pass_obj
def authorize_cmd(ctx: CliContext, contract_address: str | None) -> None:
    adapter = ctx.adapter(MarginAdapter, write=True)
    target = contract_address or adapter.deployment.position_manager
    txn_hash = _run(adapter.authorize_contract(target))
    if txn_hash is None:
        click.echo(f"{target} is already authorized")
    else:
        _echo_tx(ctx, f"Authorized {target}", txn_hash)


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


def _open(ctx: CliContext, margin: str, leverage: str, is_long: bool) -> None:
    leverage_x = _leverage(leverage)
    raw_margin = _usdc(margin)
    adapter = ctx.adapter(PositionAdapter, write=True)
    result = _run(adapter.open_at_mark(raw_margin, leverage_x, is_long))
    _echo_tx(ctx, "Opened", result["txn_hash"])
    click.echo(f"Token id:    {result['token_id']}")
    click.echo(f"Side:        {'LONG' if is_long else 'SHORT'}")
    click.echo(f"Size:        {_veth_str(result['size_base'])}")
    click.echo(f"Entry price: {_price_str(result['entry_price'])}")
    click.echo(f"Margin:      {_usdc_str(raw_margin)}")


@cli.command(name="open-long", help="Open a long at the oracle mark price.")
@click.argument("margin")
@click.argument("leverage")
@click.pass_obj
def open_long_cmd(ctx: CliContext, margin: str, leverage: str) -> None:
    _open(ctx, margin, leverage, is_long=True)


@cli.command(name="open-short", help="Open a short at the oracle mark price.")
@click.argument("margin")
@click.argument("leverage")
@click.pass_obj
def open_short_cmd(ctx: CliContext, margin: str, leverage: str) -> None:
    _open(ctx, margin, leverage, is_long=False)


@cli.command(name="close-position", help="Close all or part of a position.")
@click.argument("token_id", type=int)
@click.argument("percent", default="100")
@click.pass_obj
def close_position_cmd(ctx: CliContext, token_id: int, percent: str) -> None:
    try:
        pct = parse_percent(percent)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    adapter = ctx.adapter(PositionAdapter, write=True)
    result = _run(adapter.close_position(token_id, pct))
    _echo_tx(ctx, f"Closed {pct}% of position {token_id}", result["txn_hash"])
    if result["remaining_size"]:
        click.echo(f"Remaining size:   {_veth_str(result['remaining_size'])}")
        click.echo(f"Remaining margin: {_usdc_str(result['remaining_margin'])}")
    released = result["free_margin_after"] - result["free_margin_before"]
    click.echo(f"Free margin change: {_usdc_str(released)}")


@cli.command(name="add-margin", help="Add USDC margin to a position.")
@click.argument("token_id", type=int)
@click.argument("amount")
@click.pass_obj
def add_margin_cmd(ctx: CliContext, token_id: int, amount: str) -> None:
    raw = _usdc(amount)
    adapter = ctx.adapter(PositionAdapter, write=True)
    result = _run(adapter.add_margin(token_id, raw))
    _echo_tx(ctx, "Deposited", result["deposit_txn_hash"])
    _echo_tx(ctx, "Added margin", result["txn_hash"])
    click.echo(f"New margin:   {_usdc_str(result['new_margin'])}")
    click.echo(f"New leverage: {result['new_leverage']:.2f}x")


@cli.command(name="remove-margin", help="Remove USDC margin from a position.")
@click.argument("token_id", type=int)
@click.argument("amount")
@click.pass_obj
def remove_margin_cmd(ctx: CliContext, token_id: int, amount: str) -> None:
    raw = _usdc(amount)
    adapter = ctx.adapter(PositionAdapter, write=True)
    result = _run(adapter.remove_margin(token_id, raw))
    _echo_tx(ctx, "Removed margin", result["txn_hash"])
    click.echo(f"New margin:   {_usdc_str(result['new_margin'])}")
    click.echo(f"New leverage: {result['new_leverage']:.2f}x")


def _echo_position(view: Any) -> None:
    p = view.position
    click.echo(f"Position #{p.token_id} ({p.side})")
    click.echo(f"  Owner:       {p.owner}")
    click.echo(f"  Market:      {p.market_id}")
    click.echo(f"  Size:        {_veth_str(p.size_base)}")
    click.echo(f"  Margin:      {_usdc_str(p.margin)}")
    click.echo(f"  Entry price: {_price_str(p.entry_price)}")
    click.echo(f"  Mark price:  {_price_str(view.mark_price)}")
    click.echo(f"  Notional:    {_usdc_str(view.notional)}")
    click.echo(f"  Leverage:    {view.leverage:.2f}x")
    click.echo(f"  PnL:         {_usdc_str(view.unrealized_pnl)} ({view.pnl_percent:.2f}%)")


@cli.command(name="get-position", help="Show one position with unrealized PnL.")
@click.argument("token_id", type=int)
@click.pass_obj
def get_position_cmd(ctx: CliContext, token_id: int) -> None:
    adapter = ctx.adapter(PositionAdapter)
    view = _run(adapter.get_position_with_pnl(token_id))
    if ctx.as_json:
        _echo_json(view)
        return
    if not view.position.is_active:
        click.echo(f"Position #{token_id} is not active")
        return
    _echo_position(view)


@cli.command(name="show-positions", help="List every open position of an account.")
@click.argument("owner", required=False)
@click.pass_obj
def show_positions_cmd(ctx: CliContext, owner: str | None) -> None:
    adapter = ctx.adapter(PositionAdapter)
    if not (owner or adapter.wallet_address):
        raise click.UsageError("Pass an OWNER address or set PRIVATE_KEY")
    views = _run(adapter.get_portfolio(owner))
    if ctx.as_json:
        _echo_json(views)
        return
    if not views:
        click.echo("No open positions")
        return
    for view in views:
        _echo_position(view)
    total_pnl = sum(v.unrealized_pnl for v in views)
    total_margin = sum(v.position.margin for v in views)
    click.echo(f"Total margin: {_usdc_str(total_margin)}")
    click.echo(f"Total PnL:    {_usdc_str(total_pnl)}")


# ---------------------------------------------------------------------------
# Markets
# ---------------------------------------------------------------------------


@cli.command(name="mark-price", help="Show the FundingOracle and hook mark prices.")
@click.argument("pool_id_hex", required=False)
@click.pass_obj
def mark_price_cmd(ctx: CliContext, pool_id_hex: str | None) -> None:
    adapter = ctx.adapter(MarketAdapter)
    oracle_price = _run(adapter.get_mark_price(pool_id_hex))
    ok, hook_price = asyncio.run(
        _in_session(adapter.get_hook_mark_price(pool_id_hex))
    )
    if ctx.as_json:
        _echo_json({"oracle": oracle_price, "hook": hook_price if ok else None})
        return
    click.echo(f"Oracle mark price: {_price_str(oracle_price)}")
    if ok:
        click.echo(f"Hook mark price:   {_price_str(hook_price)}")
    else:
        click.echo(f"Hook mark price unavailable: {hook_price}")


@cli.command(name="market-state", help="Show the vAMM state of a market.")
@click.argument("pool_id_hex", required=False)
@click.pass_obj
def market_state_cmd(ctx: CliContext, pool_id_hex: str | None) -> None:
    adapter = ctx.adapter(MarketAdapter)
    state = _run(adapter.get_market_state(pool_id_hex))
    if ctx.as_json:
        _echo_json(state)
        return
    click.echo(f"Market {state.pool_id} ({'active' if state.is_active else 'inactive'})")
    click.echo(f"  Virtual base:  {format_units(state.virtual_base, VETH_DECIMALS, 6)}")
    click.echo(f"  Virtual quote: {format_units(state.virtual_quote, USDC_DECIMALS, 2)}")
    click.echo(f"  Long OI:       {format_units(state.total_long_oi, VETH_DECIMALS, 6)}")
    click.echo(f"  Short OI:      {format_units(state.total_short_oi, VETH_DECIMALS, 6)}")
    price = vamm_price(state.virtual_base, state.virtual_quote)
    click.echo(f"  vAMM price:    {_price_str(price)}")
    click.echo(f"  Funding index: {state.global_funding_index}")


@cli.command(name="add-market", help="Register a market through PositionManager.")
@click.option("--market-id", default=None, help="Default: the VETH/USDC pool id.")
@click.option("--base-asset", default=None)
@click.option("--quote-asset", default=None)
@click.option("--pool-address", default=None, help="Default: PerpsHook.")
@click.pass_obj
def add_market_cmd(
    ctx: CliContext,
    market_id: str | None,
    base_asset: str | None,
    quote_asset: str | None,
    pool_address: str | None,
) -> None:
    adapter = ctx.adapter(MarketAdapter, write=True)
    txn_hash = _run(
        adapter.add_market(market_id, base_asset, quote_asset, pool_address)
    )
    _echo_tx(ctx, "Market added", txn_hash)


@cli.command(
    name="add-market-to-oracle", help="Register a market with the FundingOracle."
)
@click.option("--pool-id", "pool_id_hex", default=None)
@click.option("--hook", default=None, help="Default: PerpsHook.")
@click.option("--pyth-feed-id", default=PYTH_ETH_USD_FEED_ID, show_default=True)
@click.pass_obj
def add_market_to_oracle_cmd(
    ctx: CliContext, pool_id_hex: str | None, hook: str | None, pyth_feed_id: str
) -> None:
    adapter = ctx.adapter(MarketAdapter, write=True)
    txn_hash = _run(adapter.add_market_to_funding_oracle(pool_id_hex, hook, pyth_feed_id))
    if txn_hash is None:
        click.echo("FundingOracle already tracks this market")
    else:
        _echo_tx(ctx, "Market added to FundingOracle", txn_hash)


@cli.command(
    name="add-key-manager",
    help="Grant an account (default: PositionManager) the market key-manager role.",
)
@click.argument("account", required=False)
@click.option(
    "--registry",
    type=click.Choice(["position_factory", "market_manager"]),
    default="position_factory",
    show_default=True,
)
@click.pass_obj
def add_key_manager_cmd(ctx: CliContext, account: str | None, registry: str) -> None:
    adapter = ctx.adapter(MarketAdapter, write=True)
    manager = account or adapter.deployment.position_manager
    txn_hash = _run(adapter.add_key_manager(manager, registry))
    if txn_hash is None:
        click.echo(f"{manager} is already a key manager on {registry}")
    else:
        _echo_tx(ctx, f"Key manager {manager} added", txn_hash)


@cli.command(
    name="rebalance-vamm",
    help="Reset the vAMM reserves so the mark price equals TARGET_PRICE (USDC).",
)
@click.argument("target_price")
@click.option(
    "--virtual-liquidity",
    default="1000000",
    show_default=True,
    help="Virtual quote reserve in USDC.",
)
@click.option("--pool-id", "pool_id_hex", default=None)
@click.pass_obj
def rebalance_vamm_cmd(
    ctx: CliContext, target_price: str, virtual_liquidity: str, pool_id_hex: str | None
) -> None:
    virtual_quote = _usdc(virtual_liquidity)
    try:
        virtual_base = virtual_base_for_price(virtual_quote, target_price)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    adapter = ctx.adapter(MarketAdapter, write=True)
    result = _run(adapter.rebalance_vamm(virtual_base, virtual_quote, pool_id_hex))
    before, after = result["before"], result["state"]
    old_price = vamm_price(before.virtual_base, before.virtual_quote)
    click.echo(f"vAMM price before: {_price_str(old_price)}")
    _echo_tx(ctx, "Rebalanced", result["txn_hash"])
    click.echo(f"Virtual base:  {format_units(after.virtual_base, VETH_DECIMALS, 6)}")
    click.echo(f"Virtual quote: {format_units(after.virtual_quote, USDC_DECIMALS, 2)}")
    new_price = vamm_price(after.virtual_base, after.virtual_quote)
    click.echo(f"vAMM price:    {_price_str(new_price)}")


@cli.command(
    name="register-market",
    help="Register a market with MarketManager, PositionFactory and FundingOracle.",
)
@click.option("--market-id", default=None)
@click.option("--base-asset", default=None)
@click.option("--quote-asset", default=None)
@click.option("--hook", default=None)
@click.option("--pyth-feed-id", default=PYTH_ETH_USD_FEED_ID, show_default=True)
@click.pass_obj
def register_market_cmd(
    ctx: CliContext,
    market_id: str | None,
    base_asset: str | None,
    quote_asset: str | None,
    hook: str | None,
    pyth_feed_id: str,
) -> None:
    adapter = ctx.adapter(MarketAdapter, write=True)
    report = _run(
        adapter.register_market(market_id, base_asset, quote_asset, hook, pyth_feed_id)
    )
    if ctx.as_json:
        _echo_json(report)
    else:
        click.echo(f"Market {report.market_id}")
        for step in report.steps:
            line = f"  {step.name:<17} {step.status}"
            if step.txn_hash:
                line += f" {step.txn_hash}"
            if step.error:
                line += f" ({step.error})"
            click.echo(line)
    if not report.ok:
        raise click.ClickException("market registration incomplete")


# ---------------------------------------------------------------------------
# Liquidations
# ---------------------------------------------------------------------------


@cli.command(name="setup-liquidation", help="Configure liquidation for a market.")
@click.option("--pool-id", "pool_id_hex", default=None)
@click.option(
    "--maintenance-margin-bps",
    type=int,
    default=DEFAULT_MAINTENANCE_MARGIN_BPS,
    show_default=True,
)
@click.option(
    "--liquidation-fee-bps",
    type=int,
    default=DEFAULT_LIQUIDATION_FEE_BPS,
    show_default=True,
)
@click.option(
    "--insurance-fee-bps",
    type=int,
    default=DEFAULT_INSURANCE_FEE_BPS,
    show_default=True,
)
@click.option("--active/--inactive", default=True, show_default=True)
@click.pass_obj
def setup_liquidation_cmd(
    ctx: CliContext,
    pool_id_hex: str | None,
    maintenance_margin_bps: int,
    liquidation_fee_bps: int,
    insurance_fee_bps: int,
    active: bool,
) -> None:
    adapter = ctx.adapter(LiquidationAdapter, write=True)
    result = _run(
        adapter.configure_liquidation(
            pool_id_hex,
            maintenance_margin_bps,
            liquidation_fee_bps,
            insurance_fee_bps,
            active,
        )
    )
    _echo_tx(ctx, "Configured", result["txn_hash"])
    config = result["config"]
    click.echo(f"Maintenance margin: {config.maintenance_margin_bps / 100}%")
    click.echo(f"Liquidation fee:    {config.liquidation_fee_bps / 100}%")
    click.echo(f"Insurance fee:      {config.insurance_fee_bps / 100}%")
    click.echo(f"Active:             {config.is_active}")


@cli.command(name="scan-liquidations", help="Rank open positions by liquidation risk.")
@click.option(
    "--max-token-id", type=int, default=DEFAULT_SCAN_MAX_TOKEN_ID, show_default=True
)
@click.option("--pool-id", "pool_id_hex", default=None)
@click.pass_obj
def scan_liquidations_cmd(
    ctx: CliContext, max_token_id: int, pool_id_hex: str | None
) -> None:
    adapter = ctx.adapter(LiquidationAdapter)
    risks = _run(adapter.scan_positions(max_token_id, pool_id_hex))
    if ctx.as_json:
        _echo_json(risks)
        return
    if not risks:
        click.echo("No open positions found")
        return
    for r in risks:
        click.echo(
            f"#{r.token_id:<4} {r.risk.value:<12} {r.side:<5} "
            f"size={_veth_str(r.size_base)} margin={_usdc_str(r.margin)} "
            f"hf={format_units(r.health_factor, PRICE_DECIMALS, 3)} "
            f"pnl={_usdc_str(r.unrealized_pnl)} "
            f"liq~{_price_str(r.liquidation_price)}"
        )
    counts: dict[str, int] = {}
    for r in risks:
        counts[r.risk.value] = counts.get(r.risk.value, 0) + 1
    click.echo(", ".join(f"{k}: {v}" for k, v in counts.items()))


@cli.command(name="liquidate", help="Liquidate a position that is below maintenance.")
@click.argument("token_id", type=int)
@click.pass_obj
def liquidate_cmd(ctx: CliContext, token_id: int) -> None:
    adapter = ctx.adapter(LiquidationAdapter, write=True)
    txn_hash = _run(adapter.liquidate(token_id))
    _echo_tx(ctx, f"Liquidated position {token_id}", txn_hash)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
