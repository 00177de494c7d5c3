"""Pricing model — pure functions for volatility, leverage, PnL and win zones.

No I/O, no clock. Identical inputs always give identical outputs; quotes and
settlement disputes are replayed through these functions.
"""

import math
from collections.abc import Sequence

from src.tz_common.enums import Direction

DEFAULT_VOLATILITY = 0.0035
MIN_VOLATILITY = 0.002
MAX_VOLATILITY = 0.06

MIN_LEVERAGE = 5
MAX_LEVERAGE = 50

# (distance lower bound, upper bound, leverage at lower bound, leverage span)
_DISTANCE_TIERS: tuple[tuple[float, float, float, float], ...] = (
    (0.0, 0.002, 5.0, 5.0),
    (0.002, 0.005, 10.0, 10.0),
    (0.005, 0.008, 20.0, 15.0),
)
_TAIL_BASE = 35.0
_TAIL_SLOPE = 300.0
_TAIL_CAP = 15.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def recent_volatility(prices: Sequence[float]) -> float:
    """Blend of mean |return|, stdev of returns and the last |return| (4:2:3).

    Returns DEFAULT_VOLATILITY with fewer than 3 prices or no usable returns.
    Non-positive prior prices are skipped.
    """
    if len(prices) < 3:
        return DEFAULT_VOLATILITY

    returns: list[float] = []
    for prev, cur in zip(prices, prices[1:]):
        if prev <= 0:
            continue
        returns.append((cur - prev) / prev)

    if not returns:
        return DEFAULT_VOLATILITY

    n = len(returns)
    avg_abs = sum(abs(r) for r in returns) / n
    mean = sum(returns) / n
    std_dev = math.sqrt(sum((r - mean) ** 2 for r in returns) / n)
    last_move = abs(returns[-1])

    blended = avg_abs * 4 + std_dev * 2 + last_move * 3
    return _clamp(blended, MIN_VOLATILITY, MAX_VOLATILITY)


def base_leverage(distance: float) -> float:
    """Piecewise-linear leverage for a relative price distance (before factors)."""
    for lower, upper, base, span in _DISTANCE_TIERS:
        if distance < upper:
            return base + ((distance - lower) / (upper - lower)) * span
    return _TAIL_BASE + min(_TAIL_CAP, (distance - _DISTANCE_TIERS[-1][1]) * _TAIL_SLOPE)


def time_factor(seconds_to_expiry: float) -> float:
    # Less time to expiry -> higher factor; 30/0 tends to +inf
    if seconds_to_expiry == 0:
        return 1.2
    return _clamp(30.0 / seconds_to_expiry, 0.5, 1.2)


def volatility_factor(volatility: float) -> float:
    # Higher volatility -> lower factor
    if volatility == 0:
        return 1.3
    return _clamp(0.005 / volatility, 0.7, 1.3)


def required_leverage(
    current_price: float,
    target_price: float,
    seconds_to_expiry: float,
    volatility: float = DEFAULT_VOLATILITY,
) -> int:
    """Leverage in [5, 50] for reaching target_price from current_price in time.

    Rounds half up so results match the published leverage grid.
    """
    if current_price <= 0 or target_price <= 0:
        return MIN_LEVERAGE

    distance = abs(target_price - current_price) / current_price
    adjusted = (
        base_leverage(distance) * time_factor(seconds_to_expiry) * volatility_factor(volatility)
    )
    rounded = math.floor(adjusted + 0.5)
    return int(_clamp(rounded, MIN_LEVERAGE, MAX_LEVERAGE))


def profit(collateral: float, leverage: float, pct_change: float) -> float:
    """collateral x leverage x pct_change; sign follows pct_change."""
    return collateral * leverage * pct_change


def expected_profit(
    current_price: float, target_price: float, collateral: float, leverage: float
) -> float:
    """Profit if price reaches target — unsigned move, used for quotes."""
    if current_price <= 0:
        return 0.0
    pct_change = abs(target_price - current_price) / current_price
    return profit(collateral, leverage, pct_change)


def win_zone(target_price: float, cell_pct: float = 0.002) -> tuple[float, float]:
    """Zone bracketing the target: one grid cell tall, centred on target."""
    half_width = target_price * (cell_pct / 2)
    return target_price - half_width, target_price + half_width


def direction_for(current_price: float, target_price: float) -> Direction:
    return Direction.UP if target_price > current_price else Direction.DOWN


def winning_pnl_micro(collateral: int, leverage: int, entry_price: float, exit_price: float) -> int:
    """Realized PnL in micro-units for a win: always non-negative."""
    if entry_price <= 0:
        return 0
    pct_change = abs(exit_price - entry_price) / entry_price
    return int(round(profit(collateral, leverage, pct_change)))
