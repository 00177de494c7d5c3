"""PositionStore — the authoritative set of positions.

All mutations run under one asyncio.Lock and are compare-and-set: a
transition is applied only if the position is still in the expected state,
so a position can never transition twice even when the detector, the expiry
sweep and the settlement pipeline race.

Mutations build the new Position, write it to the repository, and only then
swap it into memory. A repository failure propagates and leaves memory as it
was. Readers get copies.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime

from src.tz_common.enums import PositionStatus
from src.tz_common.errors import InvalidTransitionError, PositionNotFoundError
from src.tz_position.domain.models import Position, PositionStats
from src.tz_position.domain.repository import PositionRepositoryProtocol

logger = logging.getLogger(__name__)


class PositionStore:
    def __init__(self, repo: PositionRepositoryProtocol) -> None:
        self._repo = repo
        self._positions: dict[str, Position] = {}
        self._lock = asyncio.Lock()

    async def load(self) -> int:
        positions = await self._repo.load_all()
        async with self._lock:
            self._positions = {p.id: p for p in positions}
        logger.info("Position store loaded: %d positions", len(positions))
        return len(positions)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, position_id: str) -> Position | None:
        p = self._positions.get(position_id)
        return replace(p) if p else None

    def list_for_user(self, user_id: str) -> list[Position]:
        items = [replace(p) for p in self._positions.values() if p.user_id == user_id]
        items.sort(key=lambda p: p.placed_at, reverse=True)
        return items

    def active(self) -> list[Position]:
        return [replace(p) for p in self._positions.values() if p.is_active]

    def all(self) -> list[Position]:
        return [replace(p) for p in self._positions.values()]

    def pending_settlement(self, max_attempts: int) -> list[Position]:
        """Resolved, unsettled, under the retry cap and opened on the venue."""
        items = [
            replace(p)
            for p in self._positions.values()
            if not p.is_active
            and not p.settled
            and p.settlement_attempts < max_attempts
            and p.venue_ref is not None
        ]
        items.sort(key=lambda p: p.resolved_at or p.placed_at)
        return items

    def unsettled(self) -> list[Position]:
        return [replace(p) for p in self._positions.values() if not p.is_active and not p.settled]

    def needs_manual_settlement(self) -> list[Position]:
        return [replace(p) for p in self._positions.values() if p.needs_manual_settlement]

    def stats_for(self, user_id: str) -> PositionStats:
        wins = losses = active = 0
        pnl = volume = 0
        for p in self._positions.values():
            if p.user_id != user_id:
                continue
            if p.status == PositionStatus.WON:
                wins += 1
            elif p.status == PositionStatus.LOST:
                losses += 1
            else:
                active += 1
                continue
            pnl += p.realized_pnl or 0
            volume += p.collateral
        resolved = wins + losses
        return PositionStats(
            total_wins=wins,
            total_losses=losses,
            active=active,
            realized_pnl=pnl,
            total_volume=volume,
            win_rate=(wins / resolved) * 100 if resolved else 0.0,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add(self, position: Position) -> Position:
        async with self._lock:
            if position.id in self._positions:
                raise InvalidTransitionError(position.id, "position already exists")
            if not position.is_active or position.settled:
                raise InvalidTransitionError(position.id, "new positions must be ACTIVE")
            await self._repo.save(position)
            self._positions[position.id] = position
        return replace(position)

    async def resolve_won(
        self, position_id: str, price: float, pnl: int, at: datetime
    ) -> Position | None:
        return await self._resolve(position_id, PositionStatus.WON, price, pnl, at)

    async def resolve_lost(
        self, position_id: str, price: float | None, pnl: int, at: datetime
    ) -> Position | None:
        return await self._resolve(position_id, PositionStatus.LOST, price, pnl, at)

    async def mark_settled(self, position_id: str, close_ref: str | None) -> Position:
        async with self._lock:
            current = self._require(position_id)
            updated = current.settle(close_ref)
            await self._repo.save(updated)
            self._positions[position_id] = updated
        return replace(updated)

    async def record_settlement_failure(
        self, position_id: str, error: str, max_attempts: int
    ) -> Position:
        async with self._lock:
            current = self._require(position_id)
            updated = current.fail_settlement(error, max_attempts)
            await self._repo.save(updated)
            self._positions[position_id] = updated
        return replace(updated)

    async def _resolve(
        self,
        position_id: str,
        status: PositionStatus,
        price: float | None,
        pnl: int,
        at: datetime,
    ) -> Position | None:
        """Compare-and-set ACTIVE -> status. Returns None if no longer ACTIVE."""
        async with self._lock:
            current = self._require(position_id)
            if not current.is_active:
                return None
            updated = current.resolve(status, price, pnl, at)
            await self._repo.save(updated)
            self._positions[position_id] = updated
        return replace(updated)

    def _require(self, position_id: str) -> Position:
        p = self._positions.get(position_id)
        if p is None:
            raise PositionNotFoundError(position_id)
        return p
