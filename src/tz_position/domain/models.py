"""Position domain model and its state machine.

State machine:
    ACTIVE -> WON    (price entered the zone)
    ACTIVE -> LOST   (expired without entering the zone)
and independently, once not ACTIVE:
    settled: False -> True   (venue closed and ledger updated, at most once)

No other transitions exist; positions are never reopened or deleted.
"""

from dataclasses import dataclass, replace
from datetime import datetime

from src.tz_common.enums import Direction, PositionStatus
from src.tz_common.errors import InvalidTransitionError


@dataclass(frozen=True)
class PriceSample:
    price: float
    observed_at: datetime
    confidence: float | None = None


@dataclass
class Position:
    id: str  # equals the ledger BetId
    user_id: str
    direction: Direction
    entry_price: float
    target_price: float
    zone_low: float
    zone_high: float
    collateral: int  # micro
    leverage: int
    placed_at: datetime
    expires_at: datetime
    status: PositionStatus = PositionStatus.ACTIVE
    settled: bool = False
    settlement_attempts: int = 0
    venue_ref: str | None = None
    close_ref: str | None = None
    realized_pnl: int | None = None
    resolved_at: datetime | None = None
    resolved_price: float | None = None
    last_settlement_error: str | None = None
    needs_manual_settlement: bool = False

    @property
    def notional(self) -> int:
        return self.collateral * self.leverage

    @property
    def is_active(self) -> bool:
        return self.status == PositionStatus.ACTIVE

    def in_zone(self, price: float) -> bool:
        low, high = sorted((self.zone_low, self.zone_high))
        return low <= price <= high

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    # ------------------------------------------------------------------
    # Transitions: return a new Position, never mutate self
    # ------------------------------------------------------------------

    def resolve(
        self, status: PositionStatus, price: float | None, pnl: int, at: datetime
    ) -> "Position":
        if status == PositionStatus.ACTIVE:
            raise InvalidTransitionError(self.id, "cannot resolve to ACTIVE")
        if not self.is_active:
            raise InvalidTransitionError(self.id, f"already {self.status.value}")
        return replace(
            self, status=status, realized_pnl=pnl, resolved_price=price, resolved_at=at
        )

    def settle(self, close_ref: str | None) -> "Position":
        if self.is_active:
            raise InvalidTransitionError(self.id, "cannot settle an ACTIVE position")
        if self.settled:
            raise InvalidTransitionError(self.id, "already settled")
        return replace(self, settled=True, close_ref=close_ref, last_settlement_error=None)

    def fail_settlement(self, error: str, max_attempts: int) -> "Position":
        if self.is_active or self.settled:
            raise InvalidTransitionError(self.id, "not awaiting settlement")
        attempts = self.settlement_attempts + 1
        return replace(
            self,
            settlement_attempts=attempts,
            last_settlement_error=error,
            needs_manual_settlement=attempts >= max_attempts,
        )


@dataclass(frozen=True)
class PositionStats:
    total_wins: int
    total_losses: int
    active: int
    realized_pnl: int  # micro
    total_volume: int  # micro, resolved positions only
    win_rate: float  # percent, 0 with no resolved positions
