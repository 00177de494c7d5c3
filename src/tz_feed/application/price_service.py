"""PriceService — explicit, injectable price hub with reference counting.

    sub = prices.subscribe(callback)   # first subscriber starts the feed task
    ...
    sub.unsubscribe()                  # last unsubscribe stops it; idempotent

Samples are kept in a bounded history for volatility and `latest()`.
A feed that fails or ends is restarted with capped exponential backoff for
as long as there are subscribers.
A failing subscriber callback is logged and does not affect the others.
"""

import asyncio
import inspect
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from src.tz_feed.domain.ports import PriceFeed
from src.tz_position.domain.models import PriceSample

logger = logging.getLogger(__name__)

PriceCallback = Callable[[PriceSample], Awaitable[None] | None]


class Subscription:
    def __init__(self, service: "PriceService", key: int) -> None:
        self._service = service
        self._key = key
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._service._release(self._key)


class PriceService:
    def __init__(
        self,
        feed: PriceFeed | None = None,
        history_size: int = 200,
        restart_delay: float = 1.0,
        max_restart_delay: float = 30.0,
    ) -> None:
        self._feed = feed
        self._restart_delay = restart_delay
        self._max_restart_delay = max_restart_delay
        self._history: deque[PriceSample] = deque(maxlen=history_size)
        self._subscribers: dict[int, PriceCallback] = {}
        self._keys = itertools.count(1)
        self._task: asyncio.Task | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: PriceCallback) -> Subscription:
        key = next(self._keys)
        self._subscribers[key] = callback
        if len(self._subscribers) == 1:
            self._start_feed()
        return Subscription(self, key)

    def _release(self, key: int) -> None:
        self._subscribers.pop(key, None)
        if not self._subscribers and self._task is not None:
            logger.info("Last price subscriber left; stopping feed")
            self._task.cancel()
            self._task = None

    def _start_feed(self) -> None:
        if self._feed is None or self.is_running:
            return
        logger.info("First price subscriber; starting feed")
        self._task = asyncio.create_task(self._run(), name="price-feed")

    def restart_backoff(self, failures: int) -> float:
        return min(self._restart_delay * (2 ** (failures - 1)), self._max_restart_delay)

    async def _run(self) -> None:
        """Drive the feed; restart it after a failure while anyone is subscribed."""
        feed = self._feed
        if feed is None:
            return
        failures = 0
        while self._subscribers:
            try:
                async for sample in feed.stream():
                    failures = 0
                    await self.publish(sample)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Price feed stopped with an error")
            else:
                logger.warning("Price feed stream ended")

            failures += 1
            delay = self.restart_backoff(failures)
            logger.info("Restarting price feed in %.1fs (restart %d)", delay, failures)
            await asyncio.sleep(delay)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def publish(self, sample: PriceSample) -> None:
        if sample.price <= 0:
            logger.warning("Dropping non-positive price %s", sample.price)
            return
        self._history.append(sample)
        for key, callback in list(self._subscribers.items()):
            try:
                result = callback(sample)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Price subscriber %d failed", key)

    def latest(self) -> PriceSample | None:
        return self._history[-1] if self._history else None

    def recent_prices(self, n: int) -> list[float]:
        if n <= 0:
            return []
        return [s.price for s in list(self._history)[-n:]]
