"""SettlementPipeline — drains resolved-but-unsettled positions.

Per position (sequential, fixed delay between items):
  1. close the venue position (timeout)
  2. WON  -> ledger.settle_win(principal=collateral, pnl)
     LOST -> ledger.record_loss(pnl)
     BetAlreadyResolvedError means step 2 already happened before a crash
  3. store.mark_settled(close_ref)

The ledger is updated BEFORE mark_settled: if the process dies in between,
the next sweep repeats steps 1-3, the venue close is idempotent and the
ledger guard turns step 2 into a no-op, so nothing is credited twice.

Any failure is recorded on the position (attempts + 1); at the attempt cap
the position is flagged for manual settlement and never retried. Nothing
is raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from src.tz_common.enums import PositionStatus
from src.tz_common.errors import AppError, BetAlreadyResolvedError
from src.tz_common.timeouts import call_with_timeout
from src.tz_ledger.application.service import LedgerService
from src.tz_position.domain.models import Position
from src.tz_position.domain.store import PositionStore
from src.tz_settlement.domain.ports import SweepGuard
from src.tz_venue.domain.ports import VenueAdapter

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    skipped: bool = False
    settled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    permanently_failed: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.settled) + len(self.failed)


class SettlementPipeline:
    def __init__(
        self,
        store: PositionStore,
        ledger: LedgerService,
        venue: VenueAdapter,
        guard: SweepGuard,
        max_attempts: int = 5,
        item_delay_seconds: float = 0.5,
        call_timeout: float = 15.0,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._venue = venue
        self._guard = guard
        self._max_attempts = max_attempts
        self._item_delay = item_delay_seconds
        self._call_timeout = call_timeout

    async def sweep(self) -> SweepReport:
        if not await self._guard.try_acquire():
            logger.debug("Settlement sweep already in flight; skipping")
            return SweepReport(skipped=True)

        report = SweepReport()
        try:
            pending = self._store.pending_settlement(self._max_attempts)
            if pending:
                logger.info("Settlement sweep: %d positions pending", len(pending))
            for i, position in enumerate(pending):
                if i > 0:
                    if self._item_delay > 0:
                        await asyncio.sleep(self._item_delay)
                    if not await self._guard.refresh():
                        logger.error(
                            "Sweep lock lost; stopping sweep with %d positions left",
                            len(pending) - i,
                        )
                        break
                await self._settle_one(position, report)
        finally:
            await self._guard.release()

        if report.processed:
            logger.info(
                "Settlement sweep done: %d settled, %d failed, %d need manual settlement",
                len(report.settled),
                len(report.failed),
                len(report.permanently_failed),
            )
        return report

    async def _settle_one(self, position: Position, report: SweepReport) -> None:
        try:
            close_ref = await call_with_timeout(
                self._venue.close_position(position.venue_ref, position.notional),  # type: ignore[arg-type]
                self._call_timeout,
                "venue close",
            )
            await self._apply_to_ledger(position)
            await self._store.mark_settled(position.id, close_ref)
        except Exception as e:
            await self._record_failure(position, e, report)
            return

        report.settled.append(position.id)
        logger.info(
            "Settled %s (%s, pnl %s micro) close_ref=%s",
            position.id,
            position.status.value,
            position.realized_pnl,
            close_ref,
        )

    async def _apply_to_ledger(self, position: Position) -> None:
        pnl = position.realized_pnl or 0
        try:
            if position.status == PositionStatus.WON:
                await self._ledger.settle_win(
                    position.user_id, position.id, principal=position.collateral, pnl=pnl
                )
            else:
                await self._ledger.record_loss(position.user_id, position.id, pnl)
        except BetAlreadyResolvedError:
            logger.warning("Ledger already reflects %s; marking settled", position.id)

    async def _record_failure(self, position: Position, error: Exception, report: SweepReport) -> None:
        detail = error.message if isinstance(error, AppError) else (str(error) or type(error).__name__)
        try:
            updated = await self._store.record_settlement_failure(
                position.id, detail, self._max_attempts
            )
        except Exception:
            logger.exception("Could not record settlement failure for %s", position.id)
            report.failed.append(position.id)
            return

        report.failed.append(position.id)
        if updated.needs_manual_settlement:
            report.permanently_failed.append(position.id)
            logger.error(
                "Position %s needs MANUAL settlement after %d attempts: %s",
                position.id,
                updated.settlement_attempts,
                detail,
            )
        else:
            logger.warning(
                "Settlement attempt %d/%d failed for %s: %s",
                updated.settlement_attempts,
                self._max_attempts,
                position.id,
                detail,
            )
