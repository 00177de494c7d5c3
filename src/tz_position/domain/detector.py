"""Win/loss detection for active positions.

Per position, in order:
  1. price inside the zone      -> WON  (even past expires_at)
  2. otherwise now >= expires_at -> LOST
  3. otherwise                   -> no change

A repository failure while resolving one position is logged and that
position stays ACTIVE; the next sample or sweep retries it.
"""

import logging
from datetime import datetime

from src.tz_common.datetime_utils import utc_now
from src.tz_pricing.domain.model import winning_pnl_micro
from src.tz_position.domain.models import Position, PriceSample
from src.tz_position.domain.store import PositionStore

logger = logging.getLogger(__name__)


class WinLossDetector:
    def __init__(self, store: PositionStore) -> None:
        self._store = store

    async def on_price(self, sample: PriceSample) -> list[Position]:
        """Evaluate every ACTIVE position against one sample. Returns transitions."""
        if sample.price <= 0:
            logger.warning("Ignoring non-positive price sample: %s", sample.price)
            return []
        return await self._evaluate(sample.price, sample.observed_at, check_zone=True)

    async def sweep_expired(
        self, latest_price: float | None, now: datetime | None = None
    ) -> list[Position]:
        """Time-only pass: resolve expired positions as LOST on a flat feed."""
        now = now or utc_now()
        price = latest_price if latest_price and latest_price > 0 else None
        return await self._evaluate(price, now, check_zone=False)

    async def _evaluate(
        self, price: float | None, now: datetime, check_zone: bool
    ) -> list[Position]:
        transitions: list[Position] = []
        for position in self._store.active():
            if position.entry_price <= 0:
                logger.warning("Skipping position %s with invalid entry price", position.id)
                continue
            try:
                resolved = await self._check(position, price, now, check_zone)
            except Exception:
                logger.exception("Failed to resolve position %s; left ACTIVE", position.id)
                continue
            if resolved is not None:
                transitions.append(resolved)
        return transitions

    async def _check(
        self, position: Position, price: float | None, now: datetime, check_zone: bool
    ) -> Position | None:
        if check_zone and price is not None and position.in_zone(price):
            pnl = winning_pnl_micro(
                position.collateral, position.leverage, position.entry_price, price
            )
            resolved = await self._store.resolve_won(position.id, price, pnl, now)
            if resolved:
                logger.info(
                    "Position %s WON at %.4f (pnl %d micro)", position.id, price, pnl
                )
            return resolved

        if position.is_expired(now):
            resolved = await self._store.resolve_lost(
                position.id, price, -position.collateral, now
            )
            if resolved:
                logger.info("Position %s LOST at expiry (price %s)", position.id, price)
            return resolved

        return None
