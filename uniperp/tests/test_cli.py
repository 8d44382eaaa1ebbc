import json
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from uniperp.adapters.margin_adapter.adapter import MarginAdapter
from uniperp.adapters.market_adapter.adapter import MarketAdapter
from uniperp.adapters.position_adapter.adapter import PositionAdapter
from uniperp.cli import cli
from uniperp.core.adapters.models import (
    MarginBalance,
    MarketState,
    RegistrationReport,
    RegistrationStep,
)
from uniperp.core.constants.contracts import DEPLOYMENTS
from uniperp.core.utils.pool import compute_pool_id

# Well-known hardhat test key; never funded on a real network.
TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

USDC = "0x" + "aa" * 20
VETH = "0x" + "bb" * 20
HOOKS = "0x" + "cc" * 20


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def signer_env(monkeypatch):
    monkeypatch.setenv("PRIVATE_KEY", TEST_KEY)


# ---------------------------------------------------------------------------
# pool-id
# ---------------------------------------------------------------------------


def test_pool_id_prints_sorted_key(runner):
    result = runner.invoke(cli, ["pool-id", VETH, USDC, "--hooks", HOOKS])
    assert result.exit_code == 0, result.output
    expected = compute_pool_id(USDC, VETH, 3000, 60, HOOKS)
    assert f"poolId:      {expected}" in result.output
    lines = result.output.splitlines()
    assert lines[0].lower().endswith(USDC)
    assert lines[1].lower().endswith(VETH)


def test_pool_id_json(runner):
    result = runner.invoke(cli, ["--json", "pool-id", USDC, VETH, "--hooks", HOOKS])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["pool_id"] == compute_pool_id(USDC, VETH, 3000, 60, HOOKS)
    assert data["key"]["fee"] == 3000


def test_pool_id_malformed_address(runner):
    result = runner.invoke(cli, ["pool-id", "0x1234", USDC])
    assert result.exit_code == 2
    assert "Malformed address" in result.output


def test_unknown_chain(runner):
    result = runner.invoke(cli, ["--chain-id", "1", "pool-id", USDC, VETH])
    assert result.exit_code == 1
    assert "No contracts mapping for chain 1" in result.output


def test_missing_config_file(runner, tmp_path):
    result = runner.invoke(
        cli, ["--config", str(tmp_path / "missing.json"), "pool-id", USDC, VETH]
    )
    assert result.exit_code == 1
    assert "Config file not found" in result.output


# ---------------------------------------------------------------------------
# margin
# ---------------------------------------------------------------------------


def test_deposit_requires_private_key(runner):
    result = runner.invoke(cli, ["deposit-margin", "100"])
    assert result.exit_code == 1
    assert "PRIVATE_KEY missing" in result.output


def test_deposit_rejects_bad_amount(runner, signer_env):
    result = runner.invoke(cli, ["deposit-margin", "-5"])
    assert result.exit_code == 2


def test_deposit(runner, signer_env):
    balances = MarginBalance(
        owner=TEST_ADDRESS, free=100_000_000, locked=0, total=100_000_000
    )
    deposit = AsyncMock(return_value=(True, {"txn_hash": "0xabc", "balances": balances}))
    with patch.object(MarginAdapter, "deposit", deposit):
        result = runner.invoke(cli, ["deposit-margin", "100.5"])

    assert result.exit_code == 0, result.output
    deposit.assert_awaited_once_with(100_500_000)
    assert "Deposited: 0xabc (https://sepolia.uniscan.xyz/tx/0xabc)" in result.output
    assert "Free margin:   100.00 USDC" in result.output


def test_adapter_failure_exits_nonzero(runner, signer_env):
    withdraw = AsyncMock(return_value=(False, "Insufficient free margin: have 1, need 5"))
    with patch.object(MarginAdapter, "withdraw", withdraw):
        result = runner.invoke(cli, ["withdraw-margin", "5"])
    assert result.exit_code == 1
    assert "Insufficient free margin" in result.output


# ---------------------------------------------------------------------------
# positions
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("percent", ["0", "150", "abc"])
def test_close_rejects_bad_percent(runner, signer_env, percent):
    close = AsyncMock()
    with patch.object(PositionAdapter, "close_position", close):
        result = runner.invoke(cli, ["close-position", "3", percent])
    assert result.exit_code == 2
    close.assert_not_awaited()


def test_close_partial(runner, signer_env):
    close = AsyncMock(
        return_value=(
            True,
            {
                "txn_hash": "0xclose",
                "percent": Decimal(25),
                "remaining_size": 75 * 10**16,
                "remaining_margin": 150_000_000,
                "free_margin_before": 0,
                "free_margin_after": 50_000_000,
            },
        )
    )
    with patch.object(PositionAdapter, "close_position", close):
        result = runner.invoke(cli, ["close-position", "3", "25"])

    assert result.exit_code == 0, result.output
    close.assert_awaited_once_with(3, Decimal(25))
    assert "Remaining size:   0.750000 VETH" in result.output
    assert "Free margin change: 50.00 USDC" in result.output


def test_close_not_owner(runner, signer_env):
    close = AsyncMock(return_value=(False, "You do not own this position"))
    with patch.object(PositionAdapter, "close_position", close):
        result = runner.invoke(cli, ["close-position", "3"])
    assert result.exit_code == 1
    assert "You do not own this position" in result.output


def test_open_rejects_bad_leverage(runner, signer_env):
    result = runner.invoke(cli, ["open-long", "100", "abc"])
    assert result.exit_code == 2
    assert "Invalid leverage" in result.output


def test_open_short(runner, signer_env):
    open_at_mark = AsyncMock(
        return_value=(
            True,
            {
                "txn_hash": "0xopen",
                "token_id": 9,
                "size_base": -25 * 10**16,
                "entry_price": 2000 * 10**18,
            },
        )
    )
    with patch.object(PositionAdapter, "open_at_mark", open_at_mark):
        result = runner.invoke(cli, ["open-short", "100", "5"])

    assert result.exit_code == 0, result.output
    open_at_mark.assert_awaited_once_with(100_000_000, Decimal(5), False)
    assert "Token id:    9" in result.output
    assert "Side:        SHORT" in result.output


# ---------------------------------------------------------------------------
# markets
# ---------------------------------------------------------------------------


def test_register_market_incomplete(runner, signer_env):
    report = RegistrationReport(
        market_id="0x" + "11" * 32,
        steps=[
            RegistrationStep(name="market_manager", status="exists"),
            RegistrationStep(name="position_factory", status="added", txn_hash="0x1"),
            RegistrationStep(name="funding_oracle", status="failed", error="not owner"),
        ],
    )
    with patch.object(
        MarketAdapter, "register_market", AsyncMock(return_value=(True, report))
    ):
        result = runner.invoke(cli, ["register-market"])

    assert result.exit_code == 1
    assert "position_factory  added 0x1" in result.output
    assert "funding_oracle    failed (not owner)" in result.output
    assert "market registration incomplete" in result.output


def test_add_key_manager_defaults_to_position_manager(runner, signer_env):
    add = AsyncMock(return_value=(True, "0xkey"))
    with patch.object(MarketAdapter, "add_key_manager", add):
        result = runner.invoke(cli, ["add-key-manager"])

    assert result.exit_code == 0, result.output
    manager, registry = add.await_args.args
    assert manager == DEPLOYMENTS[1301].position_manager
    assert registry == "position_factory"
    assert "0xkey" in result.output


def test_add_key_manager_already_set(runner, signer_env):
    add = AsyncMock(return_value=(True, None))
    with patch.object(MarketAdapter, "add_key_manager", add):
        result = runner.invoke(
            cli, ["add-key-manager", TEST_ADDRESS, "--registry", "market_manager"]
        )
    assert result.exit_code == 0, result.output
    assert f"{TEST_ADDRESS} is already a key manager on market_manager" in result.output


def test_rebalance_vamm_computes_reserves(runner, signer_env):
    state = MarketState.from_chain(
        "0x" + "11" * 32,
        (500 * 10**18, 10**12, 0, 0, 0, 0, 0, 0, "0x" + "00" * 20, True),
    )
    rebalance = AsyncMock(
        return_value=(True, {"txn_hash": "0xre", "before": state, "state": state})
    )
    with patch.object(MarketAdapter, "rebalance_vamm", rebalance):
        result = runner.invoke(cli, ["rebalance-vamm", "2000"])

    assert result.exit_code == 0, result.output
    rebalance.assert_awaited_once_with(500 * 10**18, 10**12, None)
    assert "vAMM price:    2,000.0000" in result.output


@pytest.mark.parametrize("price", ["0", "abc"])
def test_rebalance_vamm_rejects_bad_price(runner, signer_env, price):
    rebalance = AsyncMock()
    with patch.object(MarketAdapter, "rebalance_vamm", rebalance):
        result = runner.invoke(cli, ["rebalance-vamm", price])
    assert result.exit_code == 2
    rebalance.assert_not_awaited()
