"""Integer arithmetic utilities for micro-unit balances.

All ledger amounts use int micro-units of the collateral token
(USDC has 6 decimals: 1 USDC = 1_000_000 micro). Prices stay float.
"""

MICRO_PER_UNIT = 1_000_000


def to_micro(amount: float) -> int:
    """Convert a token amount to micro-units, rounding to nearest: 12.1 -> 12_100_000."""
    return int(round(amount * MICRO_PER_UNIT))


def micro_to_display(micro: int) -> str:
    """Convert micro-units to a display string: 12_100_000 -> '$12.10', -10_000_000 -> '-$10.00'.

    Sub-cent remainders are truncated for display only.
    """
    if micro < 0:
        return "-" + micro_to_display(-micro)
    cents = micro // 10_000
    return f"${cents // 100:,}.{cents % 100:02d}"


def within_tolerance(actual: int, expected: int, tolerance_bps: int) -> bool:
    """True if |actual - expected| <= expected * tolerance_bps / 10000.

    Cross-multiplied so no float rounding enters the comparison.
    """
    return abs(actual - expected) * 10_000 <= expected * tolerance_bps
