"""Position repositories — concrete implementations of PositionRepositoryProtocol.

SqlPositionRepository upserts one row per position. Writes are serialized by
PositionStore's lock, so a plain upsert is sufficient.
"""

from dataclasses import replace

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.tz_common.enums import Direction, PositionStatus
from src.tz_position.domain.models import Position

_COLUMNS = """
    id, user_id, direction, entry_price, target_price, zone_low, zone_high,
    collateral, leverage, placed_at, expires_at, status, settled,
    settlement_attempts, venue_ref, close_ref, realized_pnl, resolved_at,
    resolved_price, last_settlement_error, needs_manual_settlement
"""

_LOAD_ALL_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM positions
    ORDER BY placed_at
""")

_UPSERT_SQL = text(f"""
    INSERT INTO positions ({_COLUMNS})
    VALUES (
        :id, :user_id, :direction, :entry_price, :target_price, :zone_low, :zone_high,
        :collateral, :leverage, :placed_at, :expires_at, :status, :settled,
        :settlement_attempts, :venue_ref, :close_ref, :realized_pnl, :resolved_at,
        :resolved_price, :last_settlement_error, :needs_manual_settlement
    )
    ON CONFLICT (id) DO UPDATE SET
        status = EXCLUDED.status,
        settled = EXCLUDED.settled,
        settlement_attempts = EXCLUDED.settlement_attempts,
        venue_ref = EXCLUDED.venue_ref,
        close_ref = EXCLUDED.close_ref,
        realized_pnl = EXCLUDED.realized_pnl,
        resolved_at = EXCLUDED.resolved_at,
        resolved_price = EXCLUDED.resolved_price,
        last_settlement_error = EXCLUDED.last_settlement_error,
        needs_manual_settlement = EXCLUDED.needs_manual_settlement
""")


def _row_to_position(row: object) -> Position:
    return Position(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        direction=Direction(row.direction),  # type: ignore[attr-defined]
        entry_price=float(row.entry_price),  # type: ignore[attr-defined]
        target_price=float(row.target_price),  # type: ignore[attr-defined]
        zone_low=float(row.zone_low),  # type: ignore[attr-defined]
        zone_high=float(row.zone_high),  # type: ignore[attr-defined]
        collateral=row.collateral,  # type: ignore[attr-defined]
        leverage=row.leverage,  # type: ignore[attr-defined]
        placed_at=row.placed_at,  # type: ignore[attr-defined]
        expires_at=row.expires_at,  # type: ignore[attr-defined]
        status=PositionStatus(row.status),  # type: ignore[attr-defined]
        settled=row.settled,  # type: ignore[attr-defined]
        settlement_attempts=row.settlement_attempts,  # type: ignore[attr-defined]
        venue_ref=row.venue_ref,  # type: ignore[attr-defined]
        close_ref=row.close_ref,  # type: ignore[attr-defined]
        realized_pnl=row.realized_pnl,  # type: ignore[attr-defined]
        resolved_at=row.resolved_at,  # type: ignore[attr-defined]
        resolved_price=(
            float(row.resolved_price) if row.resolved_price is not None else None  # type: ignore[attr-defined]
        ),
        last_settlement_error=row.last_settlement_error,  # type: ignore[attr-defined]
        needs_manual_settlement=row.needs_manual_settlement,  # type: ignore[attr-defined]
    )


def position_to_params(p: Position) -> dict:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "direction": p.direction.value,
        "entry_price": p.entry_price,
        "target_price": p.target_price,
        "zone_low": p.zone_low,
        "zone_high": p.zone_high,
        "collateral": p.collateral,
        "leverage": p.leverage,
        "placed_at": p.placed_at,
        "expires_at": p.expires_at,
        "status": p.status.value,
        "settled": p.settled,
        "settlement_attempts": p.settlement_attempts,
        "venue_ref": p.venue_ref,
        "close_ref": p.close_ref,
        "realized_pnl": p.realized_pnl,
        "resolved_at": p.resolved_at,
        "resolved_price": p.resolved_price,
        "last_settlement_error": p.last_settlement_error,
        "needs_manual_settlement": p.needs_manual_settlement,
    }


class SqlPositionRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load_all(self) -> list[Position]:
        async with self._session_factory() as db:
            result = await db.execute(_LOAD_ALL_SQL)
            return [_row_to_position(row) for row in result.fetchall()]

    async def save(self, position: Position) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                await db.execute(_UPSERT_SQL, position_to_params(position))


class InMemoryPositionRepository:
    def __init__(self) -> None:
        self._rows: dict[str, Position] = {}

    async def load_all(self) -> list[Position]:
        return [replace(p) for p in self._rows.values()]

    async def save(self, position: Position) -> None:
        self._rows[position.id] = replace(position)
