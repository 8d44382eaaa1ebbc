from decimal import Decimal

import pytest

from uniperp.core.utils.position_math import (
    RiskLevel,
    classify_risk,
    estimate_liquidation_price,
    leverage,
    notional_value,
    parse_percent,
    pnl_percent,
    position_size_for_margin,
    remaining_after_close,
    side_label,
    unrealized_pnl,
    vamm_price,
    virtual_base_for_price,
)

ONE_VETH = 10**18
PRICE_2000 = 2000 * 10**18


class TestRemainingAfterClose:
    def test_quarter_close_keeps_three_quarters(self):
        size, margin = remaining_after_close(ONE_VETH, 200_000_000, 25)
        assert size == 75 * 10**16
        assert margin == 150_000_000

    def test_full_close_leaves_exactly_zero(self):
        assert remaining_after_close(ONE_VETH, 200_000_000, 100) == (0, 0)
        assert remaining_after_close(-ONE_VETH, 200_000_000, "100") == (0, 0)

    def test_short_keeps_sign(self):
        size, margin = remaining_after_close(-ONE_VETH, 100_000_000, 50)
        assert size == -5 * 10**17
        assert margin == 50_000_000

    def test_truncates_toward_zero(self):
        assert remaining_after_close(3, 3, 50) == (1, 1)
        assert remaining_after_close(-3, 3, 50) == (-1, 1)

    @pytest.mark.parametrize("percent", [1, 10, 33, 50, 99])
    def test_matches_integer_formula(self, percent):
        size = 123_456_789_012_345_678
        margin = 987_654_321
        assert remaining_after_close(size, margin, percent) == (
            size * (100 - percent) // 100,
            margin * (100 - percent) // 100,
        )

    @pytest.mark.parametrize("bad", [0, 101, -5, "abc", "nan"])
    def test_rejects_out_of_range_percent(self, bad):
        with pytest.raises(ValueError):
            remaining_after_close(ONE_VETH, 1, bad)

    def test_parse_percent_message(self):
        with pytest.raises(ValueError, match="greater than 0 and at most 100"):
            parse_percent(150)

    def test_fractional_percent_below_one(self):
        assert parse_percent("0.5") == Decimal("0.5")
        size, margin = remaining_after_close(ONE_VETH, 200_000_000, "0.5")
        assert size == 995 * 10**15
        assert margin == 199_000_000


class TestPnl:
    def test_long_and_short_pnl(self):
        mark = 2100 * 10**18
        assert unrealized_pnl(ONE_VETH, PRICE_2000, mark) == 100_000_000
        assert unrealized_pnl(-ONE_VETH, PRICE_2000, mark) == -100_000_000

    def test_pnl_truncates_toward_zero(self):
        # 1 wei of size times 1 wei of price move is far below one quote unit
        assert unrealized_pnl(-1, PRICE_2000, PRICE_2000 + 1) == 0

    def test_notional_and_leverage(self):
        notional = notional_value(2 * ONE_VETH, PRICE_2000)
        assert notional == 4000_000_000
        assert leverage(notional, 800_000_000) == Decimal(5)

    def test_leverage_requires_margin(self):
        with pytest.raises(ValueError):
            leverage(1, 0)

    def test_pnl_percent(self):
        assert pnl_percent(50_000_000, 200_000_000) == Decimal(25)
        assert pnl_percent(1, 0) == Decimal(0)

    def test_side_label(self):
        assert side_label(1) == "LONG"
        assert side_label(-1) == "SHORT"


class TestSizing:
    def test_size_for_margin_and_leverage(self):
        assert position_size_for_margin(100_000_000, 5, PRICE_2000) == 25 * 10**16

    @pytest.mark.parametrize(
        ("lev", "price"), [(0, PRICE_2000), ("-2", PRICE_2000), (2, 0)]
    )
    def test_rejects_bad_inputs(self, lev, price):
        with pytest.raises(ValueError):
            position_size_for_margin(100_000_000, lev, price)


class TestLiquidationPrice:
    def test_long_below_entry(self):
        price = estimate_liquidation_price(ONE_VETH, PRICE_2000, 200_000_000, 500)
        assert 1894 * 10**18 < price < 1895 * 10**18

    def test_short_above_entry(self):
        price = estimate_liquidation_price(-ONE_VETH, PRICE_2000, 200_000_000, 500)
        assert 2095 * 10**18 < price < 2096 * 10**18

    def test_empty_position(self):
        assert estimate_liquidation_price(0, PRICE_2000, 1, 500) == 0

    def test_overcollateralized_long_floors_at_zero(self):
        assert estimate_liquidation_price(ONE_VETH, PRICE_2000, 5000_000_000, 500) == 0


class TestClassifyRisk:
    @pytest.mark.parametrize(
        ("liquidatable", "health", "expected"),
        [
            (True, 5 * 10**18, RiskLevel.LIQUIDATABLE),
            (False, 105 * 10**16, RiskLevel.DANGER),
            (False, 110 * 10**16, RiskLevel.WARNING),
            (False, 149 * 10**16, RiskLevel.WARNING),
            (False, 150 * 10**16, RiskLevel.SAFE),
        ],
    )
    def test_buckets(self, liquidatable, health, expected):
        assert classify_risk(liquidatable, health) is expected

    def test_rank_orders_riskiest_first(self):
        levels = [RiskLevel.SAFE, RiskLevel.LIQUIDATABLE, RiskLevel.WARNING, RiskLevel.DANGER]
        assert sorted(levels, key=lambda r: r.rank) == [
            RiskLevel.LIQUIDATABLE,
            RiskLevel.DANGER,
            RiskLevel.WARNING,
            RiskLevel.SAFE,
        ]


class TestVammReserves:
    def test_reserves_for_2000(self):
        virtual_quote = 1_000_000 * 10**6
        base = virtual_base_for_price(virtual_quote, 2000)
        assert base == 500 * ONE_VETH
        assert vamm_price(base, virtual_quote) == PRICE_2000

    def test_fractional_price_rounds_down(self):
        assert virtual_base_for_price(10**6, "3") == 333_333_333_333_333_333

    def test_empty_reserves_have_no_price(self):
        assert vamm_price(0, 10**12) == 0

    @pytest.mark.parametrize(("quote", "price"), [(10**12, 0), (10**12, "x"), (0, 2000)])
    def test_rejects_bad_inputs(self, quote, price):
        with pytest.raises(ValueError):
            virtual_base_for_price(quote, price)
