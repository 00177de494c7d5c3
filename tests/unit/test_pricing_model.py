"""Tests for tz_pricing.domain.model — pure pricing functions."""

import pytest

from src.tz_common.enums import Direction
from src.tz_pricing.domain.model import (
    DEFAULT_VOLATILITY,
    MAX_VOLATILITY,
    MIN_VOLATILITY,
    base_leverage,
    direction_for,
    expected_profit,
    profit,
    recent_volatility,
    required_leverage,
    time_factor,
    volatility_factor,
    win_zone,
    winning_pnl_micro,
)


class TestRecentVolatility:
    def test_default_with_fewer_than_three_prices(self) -> None:
        assert recent_volatility([]) == DEFAULT_VOLATILITY
        assert recent_volatility([100.0, 101.0]) == DEFAULT_VOLATILITY

    def test_flat_market_clamps_to_minimum(self) -> None:
        assert recent_volatility([100.0, 100.0, 100.0, 100.0]) == MIN_VOLATILITY

    def test_wild_market_clamps_to_maximum(self) -> None:
        assert recent_volatility([100.0, 150.0, 80.0, 160.0]) == MAX_VOLATILITY

    def test_blend_weights(self) -> None:
        # returns: +0.002, +0.002 -> avg_abs 0.002, stdev 0, last 0.002
        prices = [100.0, 100.2, 100.2 * 1.002]
        assert recent_volatility(prices) == pytest.approx(0.002 * 4 + 0.002 * 3)

    def test_non_positive_prior_prices_skipped(self) -> None:
        assert recent_volatility([0.0, 0.0, 0.0]) == DEFAULT_VOLATILITY

    def test_always_within_bounds(self) -> None:
        for prices in ([1.0, 2.0, 1.0], [100.0, 100.01, 100.02], [5.0, 5.0, 5.5, 5.0]):
            v = recent_volatility(prices)
            assert MIN_VOLATILITY <= v <= MAX_VOLATILITY


class TestBaseLeverage:
    def test_tier_starts(self) -> None:
        assert base_leverage(0.0) == pytest.approx(5.0)
        assert base_leverage(0.002) == pytest.approx(10.0)
        assert base_leverage(0.005) == pytest.approx(20.0)
        assert base_leverage(0.008) == pytest.approx(35.0)

    def test_interpolates_within_tier(self) -> None:
        assert base_leverage(0.001) == pytest.approx(7.5)
        assert base_leverage(0.0035) == pytest.approx(15.0)

    def test_tail_capped(self) -> None:
        assert base_leverage(0.01) == pytest.approx(35.0 + 0.002 * 300)
        assert base_leverage(0.5) == pytest.approx(50.0)


class TestFactors:
    def test_time_factor_clamped(self) -> None:
        assert time_factor(30) == pytest.approx(1.0)
        assert time_factor(10) == pytest.approx(1.2)
        assert time_factor(120) == pytest.approx(0.5)

    def test_time_factor_zero_uses_upper_clamp(self) -> None:
        assert time_factor(0) == 1.2

    def test_time_factor_negative_follows_formula(self) -> None:
        assert time_factor(-5) == 0.5

    def test_volatility_factor_clamped(self) -> None:
        assert volatility_factor(0.005) == pytest.approx(1.0)
        assert volatility_factor(0.0035) == pytest.approx(1.3)
        assert volatility_factor(0.06) == pytest.approx(0.7)
        assert volatility_factor(0) == 1.3

    def test_volatility_factor_negative_follows_formula(self) -> None:
        assert volatility_factor(-0.01) == 0.7


class TestRequiredLeverage:
    def test_small_move_thirty_seconds(self) -> None:
        # 7.5 base x 1.0 time x 1.3 vol = 9.75 -> 10
        assert required_leverage(100.0, 100.1, 30, 0.0035) == 10

    def test_default_volatility(self) -> None:
        assert required_leverage(100.0, 100.1, 30) == 10

    def test_invalid_prices_give_minimum(self) -> None:
        assert required_leverage(0.0, 100.0, 30) == 5
        assert required_leverage(100.0, -1.0, 30) == 5

    def test_clamped_to_range(self) -> None:
        assert required_leverage(100.0, 100.0, 120, 0.06) == 5
        assert required_leverage(100.0, 150.0, 5, 0.002) == 50

    def test_direction_does_not_matter(self) -> None:
        assert required_leverage(100.0, 100.4, 20) == required_leverage(100.0, 99.6, 20)

    def test_deterministic(self) -> None:
        results = {required_leverage(142.37, 143.1, 17, 0.0041) for _ in range(50)}
        assert len(results) == 1

    def test_always_within_bounds(self) -> None:
        for target in (50.0, 99.0, 99.9, 100.05, 100.5, 101.0, 200.0):
            for seconds in (1, 10, 30, 60):
                for vol in (0.002, 0.0035, 0.02, 0.06):
                    lev = required_leverage(100.0, target, seconds, vol)
                    assert 5 <= lev <= 50


class TestProfit:
    def test_profit_sign_follows_move(self) -> None:
        assert profit(10.0, 35, 0.006) == pytest.approx(2.1)
        assert profit(10.0, 35, -0.006) == pytest.approx(-2.1)

    def test_expected_profit_is_unsigned(self) -> None:
        up = expected_profit(100.0, 100.6, 10.0, 35)
        down = expected_profit(100.0, 99.4, 10.0, 35)
        assert up == pytest.approx(2.1)
        assert down == pytest.approx(2.1)

    def test_expected_profit_invalid_current(self) -> None:
        assert expected_profit(0.0, 100.0, 10.0, 35) == 0.0

    def test_winning_pnl_micro(self) -> None:
        assert winning_pnl_micro(10_000_000, 35, 100.0, 100.6) == 2_100_000

    def test_winning_pnl_never_negative(self) -> None:
        assert winning_pnl_micro(10_000_000, 35, 100.0, 99.4) == 2_100_000
        assert winning_pnl_micro(10_000_000, 35, 0.0, 99.4) == 0


class TestZoneAndDirection:
    def test_zone_centred_on_target(self) -> None:
        low, high = win_zone(100.0)
        assert low == pytest.approx(99.9)
        assert high == pytest.approx(100.1)

    def test_zone_custom_cell(self) -> None:
        low, high = win_zone(200.0, cell_pct=0.01)
        assert (low, high) == (pytest.approx(199.0), pytest.approx(201.0))

    def test_direction(self) -> None:
        assert direction_for(100.0, 101.0) == Direction.UP
        assert direction_for(100.0, 99.0) == Direction.DOWN
        assert direction_for(100.0, 100.0) == Direction.DOWN
