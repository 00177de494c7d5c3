"""BettingService — server-side bet placement.

    validate -> fresh price -> server leverage/zone -> ledger debit
             -> venue open (timeout) -> add ACTIVE position
                    |
                    +-- failure: ledger refund, TradeExecutionError

The client only chooses target, expiry and collateral. Leverage, zone and
direction are always computed here from the live feed.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from src.tz_common.datetime_utils import utc_now
from src.tz_common.enums import Direction
from src.tz_common.errors import InvalidBetError, PriceUnavailableError, TradeExecutionError
from src.tz_common.money import micro_to_display
from src.tz_common.timeouts import call_with_timeout
from src.tz_feed.application.price_service import PriceService
from src.tz_ledger.application.service import LedgerService
from src.tz_position.domain.models import Position, PriceSample
from src.tz_position.domain.store import PositionStore
from src.tz_pricing.domain.model import (
    direction_for,
    expected_profit,
    recent_volatility,
    required_leverage,
    win_zone,
)
from src.tz_venue.domain.ports import VenueAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BetQuote:
    current_price: float
    target_price: float
    direction: Direction
    leverage: int
    volatility: float
    zone_low: float
    zone_high: float
    collateral: int
    notional: int
    expected_profit: int  # micro


class BettingService:
    def __init__(
        self,
        ledger: LedgerService,
        store: PositionStore,
        prices: PriceService,
        venue: VenueAdapter,
        min_seconds: int = 10,
        max_seconds: int = 60,
        zone_cell_pct: float = 0.002,
        volatility_window: int = 120,
        max_price_age_seconds: float = 10.0,
        call_timeout: float = 15.0,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._prices = prices
        self._venue = venue
        self._min_seconds = min_seconds
        self._max_seconds = max_seconds
        self._zone_cell_pct = zone_cell_pct
        self._volatility_window = volatility_window
        self._max_price_age = max_price_age_seconds
        self._call_timeout = call_timeout

    def quote(self, target_price: float, expires_in_seconds: float, collateral: int) -> BetQuote:
        """Price a bet without side effects."""
        self._validate(target_price, expires_in_seconds, collateral)
        latest = self._current_sample()

        current = latest.price
        volatility = recent_volatility(self._prices.recent_prices(self._volatility_window))
        leverage = required_leverage(current, target_price, expires_in_seconds, volatility)
        zone_low, zone_high = win_zone(target_price, self._zone_cell_pct)
        return BetQuote(
            current_price=current,
            target_price=target_price,
            direction=direction_for(current, target_price),
            leverage=leverage,
            volatility=volatility,
            zone_low=zone_low,
            zone_high=zone_high,
            collateral=collateral,
            notional=collateral * leverage,
            expected_profit=int(round(expected_profit(current, target_price, collateral, leverage))),
        )

    async def place_bet(
        self,
        user_id: str,
        target_price: float,
        expires_in_seconds: float,
        collateral: int,
    ) -> Position:
        q = self.quote(target_price, expires_in_seconds, collateral)

        bet_id = await self._ledger.debit_for_bet(user_id, collateral)
        try:
            venue_ref = await call_with_timeout(
                self._venue.open_position(q.direction, q.notional),
                self._call_timeout,
                "venue open",
            )
        except Exception as e:
            detail = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.error("Venue open failed for bet %s (%s): %s", bet_id, user_id, detail)
            await self._ledger.credit_refund(user_id, bet_id, collateral)
            raise TradeExecutionError(detail) from e

        now = utc_now()
        position = Position(
            id=bet_id,
            user_id=user_id,
            direction=q.direction,
            entry_price=q.current_price,
            target_price=target_price,
            zone_low=q.zone_low,
            zone_high=q.zone_high,
            collateral=collateral,
            leverage=q.leverage,
            placed_at=now,
            expires_at=now + timedelta(seconds=expires_in_seconds),
            venue_ref=venue_ref,
        )
        try:
            added = await self._store.add(position)
        except Exception as e:
            logger.error("Storing position %s failed, unwinding venue trade: %s", bet_id, e)
            await self._unwind(user_id, bet_id, collateral, venue_ref, q.notional)
            raise TradeExecutionError(f"position could not be recorded: {e}") from e

        logger.info(
            "Bet placed: %s %s %s x%d target=%.4f entry=%.4f venue=%s",
            bet_id,
            user_id,
            micro_to_display(collateral),
            q.leverage,
            target_price,
            q.current_price,
            venue_ref,
        )
        return added

    def _current_sample(self) -> PriceSample:
        latest = self._prices.latest()
        if latest is None:
            raise PriceUnavailableError()
        age = (utc_now() - latest.observed_at).total_seconds()
        if age > self._max_price_age:
            raise PriceUnavailableError(
                f"Latest price is {age:.0f}s old (limit {self._max_price_age:g}s)"
            )
        return latest

    def _validate(self, target_price: float, expires_in_seconds: float, collateral: int) -> None:
        if collateral <= 0:
            raise InvalidBetError("collateral must be positive")
        if target_price <= 0:
            raise InvalidBetError("target price must be positive")
        if not self._min_seconds <= expires_in_seconds <= self._max_seconds:
            raise InvalidBetError(
                f"expiry must be between {self._min_seconds}s and {self._max_seconds}s"
            )

    async def _unwind(
        self, user_id: str, bet_id: str, collateral: int, venue_ref: str, notional: int
    ) -> None:
        try:
            await call_with_timeout(
                self._venue.close_position(venue_ref, notional),
                self._call_timeout,
                "venue close",
            )
        except Exception:
            # Refund regardless; reconciliation reports the orphaned venue position
            logger.exception("Could not close orphaned venue position %s", venue_ref)
        await self._ledger.credit_refund(user_id, bet_id, collateral)
