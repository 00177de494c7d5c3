"""Ports to the outside world — the venue, the chain and the transfer executor.

Implementations live in tz_venue.infrastructure. Application services depend
on these Protocols only, so tests can pass AsyncMocks.
"""

from dataclasses import dataclass
from typing import Protocol

from src.tz_common.enums import Direction


@dataclass(frozen=True)
class VenueBalance:
    total: int  # micro
    free: int  # micro


@dataclass(frozen=True)
class VerifiedTransfer:
    verified: bool
    actual_amount: int = 0  # micro
    error: str | None = None
    sender: str | None = None


class VenueAdapter(Protocol):
    async def open_position(self, direction: Direction, notional: int) -> str:
        """Open a leveraged position; returns the venue reference."""
        ...

    async def close_position(self, venue_ref: str, notional: int | None = None) -> str:
        """Close (fully, or by notional). Idempotent when already flat."""
        ...

    async def account_balance(self) -> VenueBalance: ...

    async def open_position_refs(self) -> list[str]:
        """References of positions currently open on the venue."""
        ...


class ChainVerifier(Protocol):
    async def verify_transfer(
        self, tx_ref: str, expected_amount: int, expected_recipient: str
    ) -> VerifiedTransfer: ...


class TransferExecutor(Protocol):
    async def send_funds(self, destination: str, amount: int) -> str:
        """Send collateral out of custody; returns the transaction reference."""
        ...
