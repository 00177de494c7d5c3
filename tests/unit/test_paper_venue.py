"""Unit tests for the paper venue and transfer executor."""

import pytest

from src.tz_common.enums import Direction
from src.tz_common.errors import VenueError
from src.tz_venue.infrastructure.paper import PaperChainVerifier, PaperTransferExecutor, PaperVenue


class TestPaperVenue:
    async def test_open_and_close(self) -> None:
        venue = PaperVenue(collateral=1_000_000_000)
        ref = await venue.open_position(Direction.UP, 100_000_000)
        assert await venue.open_position_refs() == [ref]

        close_ref = await venue.close_position(ref, 100_000_000)

        assert close_ref.startswith("close_")
        assert venue.open_positions == {}

    async def test_close_is_idempotent(self) -> None:
        venue = PaperVenue(collateral=1_000_000_000)
        ref = await venue.open_position(Direction.DOWN, 1_000_000)
        first = await venue.close_position(ref)
        assert await venue.close_position(ref) == first

    async def test_close_unknown(self) -> None:
        with pytest.raises(VenueError):
            await PaperVenue(collateral=0).close_position("paper_missing")

    async def test_rejects_non_positive_notional(self) -> None:
        with pytest.raises(VenueError):
            await PaperVenue(collateral=0).open_position(Direction.UP, 0)

    async def test_balance_reserves_margin(self) -> None:
        venue = PaperVenue(collateral=1_000_000_000)
        await venue.open_position(Direction.UP, 500_000_000)
        balance = await venue.account_balance()
        assert balance.total == 1_000_000_000
        assert balance.free == 950_000_000


class TestPaperTransfers:
    async def test_send_records_transfer(self) -> None:
        executor = PaperTransferExecutor()
        tx_ref = await executor.send_funds("Dest", 5_000_000)
        assert executor.sent == [("Dest", 5_000_000, tx_ref)]

    async def test_rejects_non_positive(self) -> None:
        with pytest.raises(VenueError):
            await PaperTransferExecutor().send_funds("Dest", 0)

    async def test_verifier_accepts_expected_amount(self) -> None:
        result = await PaperChainVerifier().verify_transfer("sig", 7_000_000, "Custody")
        assert result.verified and result.actual_amount == 7_000_000
