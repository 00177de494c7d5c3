"""TradingRuntime — owns the long-running tasks of the engine.

  price feed -> PriceService -> queue -> consumer (single writer) -> detector
                                                    |
                                   transitions -> settlement sweep (background)
  timers: expiry sweep, settlement sweep, reconciliation

All components are injected; build_runtime() in bootstrap.py assembles them
from settings.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from src.tz_feed.application.price_service import PriceService, Subscription
from src.tz_ledger.application.funds import FundsService
from src.tz_ledger.application.service import LedgerService
from src.tz_position.application.betting import BettingService
from src.tz_position.domain.detector import WinLossDetector
from src.tz_position.domain.models import Position, PriceSample
from src.tz_position.domain.store import PositionStore
from src.tz_settlement.application.pipeline import SettlementPipeline, SweepReport
from src.tz_settlement.application.reconciliation import ReconciliationService

logger = logging.getLogger(__name__)

_QUEUE_SIZE = 1000


class TradingRuntime:
    def __init__(
        self,
        *,
        ledger: LedgerService,
        funds: FundsService,
        positions: PositionStore,
        detector: WinLossDetector,
        betting: BettingService,
        pipeline: SettlementPipeline,
        reconciliation: ReconciliationService,
        prices: PriceService,
        expiry_interval: float = 2.0,
        settlement_interval: float = 2.0,
        reconcile_interval: float = 10.0,
    ) -> None:
        self.ledger = ledger
        self.funds = funds
        self.positions = positions
        self.detector = detector
        self.betting = betting
        self.pipeline = pipeline
        self.reconciliation = reconciliation
        self.prices = prices
        self._intervals = {
            "expiry-sweep": expiry_interval,
            "settlement-sweep": settlement_interval,
            "reconcile": reconcile_interval,
        }
        self._queue: asyncio.Queue[PriceSample] = asyncio.Queue(maxsize=_QUEUE_SIZE)
        self._subscription: Subscription | None = None
        self._tasks: list[asyncio.Task] = []
        self._sweeps: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def load(self) -> None:
        await self.ledger.load()
        await self.positions.load()

    async def start(self) -> None:
        if self.running:
            return
        await self.load()
        self._subscription = self.prices.subscribe(self._enqueue)
        self._tasks = [
            asyncio.create_task(self._consume(), name="price-consumer"),
            asyncio.create_task(
                self._every("expiry-sweep", self.run_expiry_sweep), name="expiry-sweep"
            ),
            asyncio.create_task(
                self._every("settlement-sweep", self.pipeline.sweep), name="settlement-sweep"
            ),
            asyncio.create_task(
                self._every("reconcile", self.reconciliation.reconcile), name="reconcile"
            ),
        ]
        logger.info("Trading runtime started")

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        tasks = self._tasks + list(self._sweeps)
        self._tasks = []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.prices.stop()
        logger.info("Trading runtime stopped")

    # ------------------------------------------------------------------
    # Price samples
    # ------------------------------------------------------------------

    def _enqueue(self, sample: PriceSample) -> None:
        try:
            self._queue.put_nowait(sample)
        except asyncio.QueueFull:
            logger.warning("Price queue full; dropping sample %.4f", sample.price)

    async def _consume(self) -> None:
        while True:
            sample = await self._queue.get()
            try:
                await self.handle_sample(sample)
            except Exception:
                logger.exception("Price sample handling failed")
            finally:
                self._queue.task_done()

    async def handle_sample(self, sample: PriceSample) -> list[Position]:
        transitions = await self.detector.on_price(sample)
        if transitions:
            self.trigger_settlement()
        return transitions

    async def run_expiry_sweep(self) -> list[Position]:
        latest = self.prices.latest()
        transitions = await self.detector.sweep_expired(latest.price if latest else None)
        if transitions:
            self.trigger_settlement()
        return transitions

    def trigger_settlement(self) -> asyncio.Task[SweepReport]:
        """Start a sweep in the background; the guard drops it if one is running."""
        task = asyncio.create_task(self.pipeline.sweep(), name="settlement-trigger")
        self._sweeps.add(task)
        task.add_done_callback(self._sweep_done)
        return task

    def _sweep_done(self, task: asyncio.Task) -> None:
        self._sweeps.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Triggered settlement sweep failed: %s", task.exception())

    async def _every(self, name: str, fn: Callable[[], Awaitable[object]]) -> None:
        interval = self._intervals[name]
        while True:
            await asyncio.sleep(interval)
            try:
                await fn()
            except Exception:
                logger.exception("Periodic task %s failed", name)
