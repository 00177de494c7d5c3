"""Pydantic schemas for tz_position API."""

from pydantic import BaseModel, Field

from src.tz_common.datetime_utils import to_iso
from src.tz_common.money import micro_to_display
from src.tz_position.application.betting import BetQuote
from src.tz_position.domain.models import Position, PositionStats


class QuoteRequest(BaseModel):
    target_price: float = Field(..., gt=0)
    expires_in_seconds: float = Field(..., gt=0, description="Seconds until the bet expires")
    collateral_micro: int = Field(..., gt=0)


class PlaceBetRequest(QuoteRequest):
    user_id: str = Field(..., min_length=1, description="Wallet address of the bettor")


class QuoteResponse(BaseModel):
    current_price: float
    target_price: float
    direction: str
    leverage: int
    volatility: float
    zone_low: float
    zone_high: float
    collateral_micro: int
    notional_micro: int
    expected_profit_micro: int
    expected_profit_display: str

    @classmethod
    def from_quote(cls, q: BetQuote) -> "QuoteResponse":
        return cls(
            current_price=q.current_price,
            target_price=q.target_price,
            direction=q.direction.value,
            leverage=q.leverage,
            volatility=q.volatility,
            zone_low=q.zone_low,
            zone_high=q.zone_high,
            collateral_micro=q.collateral,
            notional_micro=q.notional,
            expected_profit_micro=q.expected_profit,
            expected_profit_display=micro_to_display(q.expected_profit),
        )


class PositionResponse(BaseModel):
    id: str
    user_id: str
    direction: str
    entry_price: float
    target_price: float
    zone_low: float
    zone_high: float
    collateral_micro: int
    leverage: int
    notional_micro: int
    placed_at: str
    expires_at: str
    status: str
    settled: bool
    settlement_attempts: int
    needs_manual_settlement: bool
    realized_pnl_micro: int | None
    resolved_price: float | None
    resolved_at: str | None
    last_settlement_error: str | None

    @classmethod
    def from_domain(cls, p: Position) -> "PositionResponse":
        return cls(
            id=p.id,
            user_id=p.user_id,
            direction=p.direction.value,
            entry_price=p.entry_price,
            target_price=p.target_price,
            zone_low=p.zone_low,
            zone_high=p.zone_high,
            collateral_micro=p.collateral,
            leverage=p.leverage,
            notional_micro=p.notional,
            placed_at=to_iso(p.placed_at) or "",
            expires_at=to_iso(p.expires_at) or "",
            status=p.status.value,
            settled=p.settled,
            settlement_attempts=p.settlement_attempts,
            needs_manual_settlement=p.needs_manual_settlement,
            realized_pnl_micro=p.realized_pnl,
            resolved_price=p.resolved_price,
            resolved_at=to_iso(p.resolved_at),
            last_settlement_error=p.last_settlement_error,
        )


class StatsResponse(BaseModel):
    user_id: str
    total_wins: int
    total_losses: int
    active: int
    realized_pnl_micro: int
    realized_pnl_display: str
    total_volume_micro: int
    win_rate: float

    @classmethod
    def from_stats(cls, user_id: str, s: PositionStats) -> "StatsResponse":
        return cls(
            user_id=user_id,
            total_wins=s.total_wins,
            total_losses=s.total_losses,
            active=s.active,
            realized_pnl_micro=s.realized_pnl,
            realized_pnl_display=micro_to_display(s.realized_pnl),
            total_volume_micro=s.total_volume,
            win_rate=round(s.win_rate, 2),
        )
