from __future__ import annotations

from dataclasses import dataclass, fields, replace

from eth_utils import to_checksum_address

from uniperp.core.config import get_contract_overrides
from uniperp.core.constants.chains import CHAIN_ID_UNICHAIN_SEPOLIA


@dataclass(frozen=True)
class Deployment:
    chain_id: int
    perps_router: str
    position_manager: str
    margin_account: str
    market_manager: str
    funding_oracle: str
    perps_hook: str
    usdc: str
    veth: str
    insurance_fund: str
    liquidation_engine: str
    position_factory: str
    position_nft: str
    pool_manager: str
    uniswap_position_manager: str
    pool_swap_test: str
    pool_modify_liquidity_test: str


DEPLOYMENTS: dict[int, Deployment] = {
    CHAIN_ID_UNICHAIN_SEPOLIA: Deployment(
        chain_id=CHAIN_ID_UNICHAIN_SEPOLIA,
        perps_router=to_checksum_address("0x0B5B1aF93438455940F548bAc210A16e6A27669C"),
        position_manager=to_checksum_address(
            "0xcFe240bE5C918d18DaC233DA08C9a3b71Adf7D18"
        ),
        margin_account=to_checksum_address(
            "0xaCF00c49717E0CF51CD7Bc8F2fcC17E6647c5148"
        ),
        market_manager=to_checksum_address(
            "0x77B6C376b88fA602026e6ba1cD81aD9F8C867a8B"
        ),
        funding_oracle=to_checksum_address(
            "0x006694437063034c29d8e8c41D56486a902B9BD2"
        ),
        perps_hook=to_checksum_address("0xca17bc76e3882Dc2df766D9A1b6690a57449Dac8"),
        usdc=to_checksum_address("0x022d625B4B8dcA331afdE3879A2FD1A5b66239e1"),
        veth=to_checksum_address("0x8CB741567B4dEaE5c78A9ca9284b6B807974f72f"),
        insurance_fund=to_checksum_address(
            "0x066DeF0AC376E6363763272ae0Aa1aE4012E4a42"
        ),
        liquidation_engine=to_checksum_address(
            "0x877A9334ca7323544065FCed5a351b7D057Cf826"
        ),
        position_factory=to_checksum_address(
            "0xd1a79AA958dad1D89b6Ba94EFe597dE0cA380dD3"
        ),
        position_nft=to_checksum_address("0x25F273b73Db9f7EcA7aa9C7BBc6f1acfD4A6D22f"),
        pool_manager=to_checksum_address("0x00B036B58a818B1BC34d502D3fE730Db729e62AC"),
        uniswap_position_manager=to_checksum_address(
            "0xf969aee60879c54baaed9f3ed26147db216fd664"
        ),
        pool_swap_test=to_checksum_address(
            "0x9140a78c1a137c7ff1c151ec8231272af78a99a4"
        ),
        pool_modify_liquidity_test=to_checksum_address(
            "0x5fa728c0a5cfd51bee4b060773f50554c0c8a7ab"
        ),
    ),
}

# Pyth ETH/USD price feed id
PYTH_ETH_USD_FEED_ID = (
    "0xff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace"
)

_ADDRESS_FIELDS = {f.name for f in fields(Deployment)} - {"chain_id"}


def get_deployment(chain_id: int) -> Deployment:
    """Contract addresses for ``chain_id`` with config.json overrides applied.

    Overrides live under ``contracts.<chain_id>`` and use the field names of
    :class:`Deployment` (e.g. ``{"contracts": {"1301": {"perps_hook": "0x..."}}}``).
    """
    base = DEPLOYMENTS.get(int(chain_id))
    if base is None:
        raise ValueError(f"No contracts mapping for chain {chain_id}")

    overrides = get_contract_overrides(int(chain_id))
    if not overrides:
        return base

    unknown = set(overrides) - _ADDRESS_FIELDS
    if unknown:
        raise ValueError(f"Unknown contract override(s): {', '.join(sorted(unknown))}")
    return replace(
        base, **{k: to_checksum_address(v) for k, v in overrides.items()}
    )
