"""Reconciliation — compares the ledger and position store with the venue.

Produces a report; it never raises on a mismatch. A liquidity shortfall
(users are owed more than the venue holds) is logged at ERROR and returned
as an alert value for the operator.

`close_orphaned()` closes venue positions no stored position accounts for,
one at a time, and reports each failure instead of stopping.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from src.tz_common.money import micro_to_display
from src.tz_common.timeouts import call_with_timeout
from src.tz_ledger.application.service import LedgerService
from src.tz_position.domain.store import PositionStore
from src.tz_venue.domain.ports import VenueAdapter, VenueBalance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiquidityShortfall:
    liabilities: int  # micro
    venue_total: int  # micro

    @property
    def shortfall(self) -> int:
        return self.liabilities - self.venue_total


@dataclass
class ReconciliationReport:
    total_liabilities: int
    venue: VenueBalance
    active_positions: int
    unsettled_positions: list[str]
    needs_manual_settlement: list[str]
    orphaned_venue_refs: list[str]
    missing_venue_refs: list[str]
    shortfall: LiquidityShortfall | None = None
    recommendations: list[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return (
            self.shortfall is None
            and not self.needs_manual_settlement
            and not self.orphaned_venue_refs
            and not self.missing_venue_refs
        )


@dataclass
class OrphanCleanup:
    closed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # no longer orphaned


@dataclass(frozen=True)
class SystemMetrics:
    total_users: int
    total_deposits: int
    total_withdrawals: int
    total_balances: int
    pending_withdrawals: int
    total_bet_volume: int
    total_winnings: int
    house_pnl: int
    active_positions: int
    needs_manual_settlement: int


class ReconciliationService:
    def __init__(
        self,
        ledger: LedgerService,
        store: PositionStore,
        venue: VenueAdapter,
        call_timeout: float = 15.0,
        item_delay_seconds: float = 0.5,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._venue = venue
        self._call_timeout = call_timeout
        self._item_delay = item_delay_seconds

    async def reconcile(self) -> ReconciliationReport:
        venue_balance = await call_with_timeout(
            self._venue.account_balance(), self._call_timeout, "venue balance"
        )
        venue_refs = await self._venue_refs()

        liabilities = self._ledger.total_liabilities()
        active = self._store.active()
        unsettled = self._store.unsettled()
        manual = self._store.needs_manual_settlement()

        orphaned = sorted(venue_refs - self._expected_refs())
        missing = sorted(
            p.venue_ref for p in active if p.venue_ref and p.venue_ref not in venue_refs
        )

        shortfall = None
        if liabilities > venue_balance.total:
            shortfall = LiquidityShortfall(liabilities=liabilities, venue_total=venue_balance.total)
            logger.error(
                "LIQUIDITY SHORTFALL: users are owed %s, venue holds %s (short %s)",
                micro_to_display(liabilities),
                micro_to_display(venue_balance.total),
                micro_to_display(shortfall.shortfall),
            )

        report = ReconciliationReport(
            total_liabilities=liabilities,
            venue=venue_balance,
            active_positions=len(active),
            unsettled_positions=[p.id for p in unsettled],
            needs_manual_settlement=[p.id for p in manual],
            orphaned_venue_refs=orphaned,
            missing_venue_refs=missing,
            shortfall=shortfall,
        )
        report.recommendations = _recommendations(report)
        if not report.healthy:
            logger.warning("Reconciliation found issues: %s", "; ".join(report.recommendations))
        return report

    async def close_orphaned(self, refs: list[str] | None = None) -> OrphanCleanup:
        """Close orphaned venue positions, all of them when `refs` is None.

        Orphans are recomputed first: a ref that a stored position now
        accounts for, or that is no longer open, is skipped rather than closed.
        """
        orphaned = await self._venue_refs() - self._expected_refs()
        targets = sorted(orphaned) if refs is None else list(dict.fromkeys(refs))

        result = OrphanCleanup()
        attempted = 0
        for ref in targets:
            if ref not in orphaned:
                result.skipped.append(ref)
                continue
            if attempted > 0 and self._item_delay > 0:
                await asyncio.sleep(self._item_delay)
            attempted += 1
            try:
                await call_with_timeout(
                    self._venue.close_position(ref), self._call_timeout, "venue close"
                )
            except Exception as e:
                detail = getattr(e, "message", None) or str(e) or type(e).__name__
                logger.error("Failed to close orphaned venue position %s: %s", ref, detail)
                result.failed.append(ref)
                result.errors.append(f"{ref}: {detail}")
                continue
            result.closed.append(ref)
            logger.info("Closed orphaned venue position %s", ref)

        if result.skipped:
            logger.warning("Skipped %d refs that are not orphaned", len(result.skipped))
        logger.info(
            "Orphan cleanup done: %d closed, %d failed", len(result.closed), len(result.failed)
        )
        return result

    async def _venue_refs(self) -> set[str]:
        return set(
            await call_with_timeout(
                self._venue.open_position_refs(), self._call_timeout, "venue positions"
            )
        )

    def _expected_refs(self) -> set[str]:
        """Venue refs whose position is active or still awaiting settlement."""
        positions = self._store.active() + self._store.unsettled()
        return {p.venue_ref for p in positions if p.venue_ref}

    def system_metrics(self) -> SystemMetrics:
        accounts = self._ledger.all_accounts()
        deposits = sum(a.total_deposits for a in accounts)
        withdrawals = sum(a.total_withdrawals for a in accounts)
        balances = sum(a.balance for a in accounts)
        pending = sum(a.pending_withdrawals for a in accounts)
        return SystemMetrics(
            total_users=len(accounts),
            total_deposits=deposits,
            total_withdrawals=withdrawals,
            total_balances=balances,
            pending_withdrawals=pending,
            total_bet_volume=sum(a.total_bet_volume for a in accounts),
            total_winnings=sum(a.total_winnings for a in accounts),
            # Money in minus money still owed or already paid out
            house_pnl=deposits - withdrawals - balances - pending,
            active_positions=len(self._store.active()),
            needs_manual_settlement=len(self._store.needs_manual_settlement()),
        )


def _recommendations(report: ReconciliationReport) -> list[str]:
    recs: list[str] = []
    if report.shortfall is not None:
        recs.append(
            f"Top up venue collateral by at least {micro_to_display(report.shortfall.shortfall)}"
        )
    if report.orphaned_venue_refs:
        recs.append(f"Close {len(report.orphaned_venue_refs)} orphaned venue positions")
    if report.missing_venue_refs:
        recs.append(
            f"Investigate {len(report.missing_venue_refs)} active positions missing on the venue"
        )
    if report.needs_manual_settlement:
        recs.append(f"Settle {len(report.needs_manual_settlement)} positions manually")
    retryable = len(report.unsettled_positions) - len(report.needs_manual_settlement)
    if retryable > 0:
        recs.append(f"{retryable} positions awaiting settlement retry")
    if not recs:
        recs.append("All positions tracked and settled")
    return recs
