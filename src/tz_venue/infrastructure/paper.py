"""Paper (simulated) venue and transfer executor.

Used when no real venue is configured and by tests. Positions are tracked in
memory and closed at notional; collateral is a fixed pool so reconciliation
has something to compare the ledger against.
"""

import logging

from src.tz_common.enums import Direction
from src.tz_common.errors import VenueError
from src.tz_common.id_generator import generate_id
from src.tz_venue.domain.ports import VenueBalance, VerifiedTransfer

logger = logging.getLogger(__name__)


class PaperVenue:
    def __init__(self, collateral: int) -> None:
        self._collateral = collateral
        self._open: dict[str, tuple[Direction, int]] = {}  # venue_ref -> (direction, notional)
        self._closed: dict[str, str] = {}  # venue_ref -> close_ref

    @property
    def open_positions(self) -> dict[str, tuple[Direction, int]]:
        return dict(self._open)

    async def open_position(self, direction: Direction, notional: int) -> str:
        if notional <= 0:
            raise VenueError(f"notional must be > 0, got {notional}")
        venue_ref = generate_id("paper")
        self._open[venue_ref] = (direction, notional)
        logger.info("Paper open %s %s notional=%d", venue_ref, direction.value, notional)
        return venue_ref

    async def close_position(self, venue_ref: str, notional: int | None = None) -> str:
        if venue_ref in self._closed:
            return self._closed[venue_ref]
        if venue_ref not in self._open:
            raise VenueError(f"unknown venue position {venue_ref}")
        del self._open[venue_ref]
        close_ref = generate_id("close")
        self._closed[venue_ref] = close_ref
        logger.info("Paper close %s -> %s", venue_ref, close_ref)
        return close_ref

    async def account_balance(self) -> VenueBalance:
        # Margin in use is approximated as the sum of open notionals / 10
        used = sum(notional for _, notional in self._open.values()) // 10
        return VenueBalance(total=self._collateral, free=max(0, self._collateral - used))

    async def open_position_refs(self) -> list[str]:
        return list(self._open)


class PaperTransferExecutor:
    def __init__(self) -> None:
        self.sent: list[tuple[str, int, str]] = []

    async def send_funds(self, destination: str, amount: int) -> str:
        if amount <= 0:
            raise VenueError(f"transfer amount must be > 0, got {amount}")
        tx_ref = generate_id("papertx")
        self.sent.append((destination, amount, tx_ref))
        logger.info("Paper transfer %d -> %s (%s)", amount, destination, tx_ref)
        return tx_ref


class PaperChainVerifier:
    """Accepts every transfer at the expected amount. Paper mode only."""

    async def verify_transfer(
        self, tx_ref: str, expected_amount: int, expected_recipient: str
    ) -> VerifiedTransfer:
        return VerifiedTransfer(verified=True, actual_amount=expected_amount)
