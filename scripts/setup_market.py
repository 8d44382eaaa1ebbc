from __future__ import annotations

import argparse
import asyncio
import sys

from loguru import logger

from uniperp.adapters.liquidation_adapter.adapter import LiquidationAdapter
from uniperp.adapters.margin_adapter.adapter import MarginAdapter
from uniperp.adapters.market_adapter.adapter import MarketAdapter
from uniperp.adapters.pool_adapter.adapter import PoolAdapter
from uniperp.core.config import get_chain_id
from uniperp.core.constants.base import (
    DEFAULT_INSURANCE_FEE_BPS,
    DEFAULT_LIQUIDATION_FEE_BPS,
    DEFAULT_MAINTENANCE_MARGIN_BPS,
    DEFAULT_SQRT_PRICE_X96,
)
from uniperp.core.utils.wallets import load_account, make_sign_callback
from uniperp.core.utils.web3 import web3_session


async def _run_setup(
    *,
    chain_id: int,
    sqrt_price_x96: int,
    maintenance_margin_bps: int,
    liquidation_fee_bps: int,
    insurance_fee_bps: int,
) -> bool:
    account = load_account()
    sign_callback = make_sign_callback(account)
    kwargs = {
        "sign_callback": sign_callback,
        "wallet_address": account.address,
        "chain_id": chain_id,
    }
    pools = PoolAdapter(**kwargs)
    margin = MarginAdapter(**kwargs)
    markets = MarketAdapter(**kwargs)
    liquidations = LiquidationAdapter(**kwargs)

    print(f"Operator: {account.address}")
    print(f"Market pool: {pools.default_pool.pool_id}")

    ok, initialized = await pools.is_initialized()
    if not ok:
        raise SystemExit(f"Could not read pool state: {initialized}")
    if initialized:
        print("1. Pool already initialized")
    else:
        ok, result = await pools.initialize_pool(sqrt_price_x96=sqrt_price_x96)
        if not ok:
            raise SystemExit(f"Pool initialization failed: {result}")
        print(f"1. Pool initialized: {result['txn_hash']}")

    # Steps below are independent; a failure is reported and the rest still run.
    all_ok = True

    ok, result = await margin.authorize_contract(markets.deployment.position_manager)
    if ok:
        print(f"2. PositionManager authorized on MarginAccount: {result or 'already'}")
    else:
        all_ok = False
        logger.warning(f"Authorization failed: {result}")

    ok, result = await markets.add_key_manager(markets.deployment.position_manager)
    if ok:
        print(f"3. PositionManager key manager on PositionFactory: {result or 'already'}")
    else:
        all_ok = False
        logger.warning(f"Key manager setup failed: {result}")

    ok, report = await markets.register_market()
    if ok:
        for step in report.steps:
            print(f"4. {step.name}: {step.status} {step.txn_hash or step.error or ''}")
        all_ok = all_ok and report.ok
    else:
        all_ok = False
        logger.warning(f"Market registration failed: {report}")

    ok, result = await liquidations.configure_liquidation(
        maintenance_margin_bps=maintenance_margin_bps,
        liquidation_fee_bps=liquidation_fee_bps,
        insurance_fee_bps=insurance_fee_bps,
    )
    if ok:
        print(f"5. Liquidation configured: {result['txn_hash']}")
    else:
        all_ok = False
        logger.warning(f"Liquidation setup failed: {result}")

    return all_ok


async def run_setup(**kwargs) -> bool:
    async with web3_session():
        return await _run_setup(**kwargs)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Initialize the VETH/USDC pool and wire the market into every perps contract."
    )
    parser.add_argument("--chain-id", type=int, default=None)
    parser.add_argument("--sqrt-price-x96", type=int, default=DEFAULT_SQRT_PRICE_X96)
    parser.add_argument(
        "--maintenance-margin-bps", type=int, default=DEFAULT_MAINTENANCE_MARGIN_BPS
    )
    parser.add_argument(
        "--liquidation-fee-bps", type=int, default=DEFAULT_LIQUIDATION_FEE_BPS
    )
    parser.add_argument("--insurance-fee-bps", type=int, default=DEFAULT_INSURANCE_FEE_BPS)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.debug else "INFO")

    try:
        chain_id = args.chain_id if args.chain_id is not None else get_chain_id()
        all_ok = asyncio.run(
            run_setup(
                chain_id=chain_id,
                sqrt_price_x96=args.sqrt_price_x96,
                maintenance_margin_bps=args.maintenance_margin_bps,
                liquidation_fee_bps=args.liquidation_fee_bps,
                insurance_fee_bps=args.insurance_fee_bps,
            )
        )
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    if not all_ok:
        raise SystemExit("Setup finished with failed steps (see warnings above)")
    print("Setup complete")


if __name__ == "__main__":
    main()
