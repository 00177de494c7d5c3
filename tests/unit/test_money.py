"""Tests for tz_common.money — micro-unit helpers."""

from src.tz_common.money import micro_to_display, to_micro, within_tolerance


class TestToMicro:
    def test_whole_units(self) -> None:
        assert to_micro(10) == 10_000_000

    def test_rounds_float_noise(self) -> None:
        assert to_micro(12.1) == 12_100_000
        assert to_micro(0.1 + 0.2) == 300_000


class TestMicroToDisplay:
    def test_basic(self) -> None:
        assert micro_to_display(12_100_000) == "$12.10"

    def test_zero(self) -> None:
        assert micro_to_display(0) == "$0.00"

    def test_thousands_separator(self) -> None:
        assert micro_to_display(1_500_000_000) == "$1,500.00"

    def test_negative(self) -> None:
        assert micro_to_display(-10_000_000) == "-$10.00"

    def test_sub_cent_truncated(self) -> None:
        assert micro_to_display(1_009_999) == "$1.00"


class TestWithinTolerance:
    def test_exact(self) -> None:
        assert within_tolerance(50_000_000, 50_000_000, 100)

    def test_at_boundary(self) -> None:
        assert within_tolerance(49_500_000, 50_000_000, 100)
        assert within_tolerance(50_500_000, 50_000_000, 100)

    def test_outside(self) -> None:
        assert not within_tolerance(49_499_999, 50_000_000, 100)
        assert not within_tolerance(60_000_000, 50_000_000, 100)
