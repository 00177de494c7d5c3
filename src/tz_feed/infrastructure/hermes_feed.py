"""Pyth Hermes websocket price feed.

Subscribes to one price id and yields PriceSamples. Reconnects with
exponential backoff (base_delay * 2^(n-1)); gives up after `max_attempts`
consecutive failed connections. A successful connect resets the counter.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

import websockets

from src.tz_common.datetime_utils import utc_now
from src.tz_position.domain.models import PriceSample

logger = logging.getLogger(__name__)


def _normalize_id(price_id: str) -> str:
    return price_id.lower().removeprefix("0x")


def parse_price_update(message: str | bytes, price_id: str) -> PriceSample | None:
    """Parse one Hermes message; None for acks, other feeds and malformed data."""
    try:
        data: dict[str, Any] = json.loads(message)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict) or data.get("type") != "price_update":
        return None

    feed = data.get("price_feed") or {}
    if _normalize_id(str(feed.get("id", ""))) != _normalize_id(price_id):
        return None

    quote = feed.get("price") or {}
    try:
        expo = int(quote["expo"])
        price = int(quote["price"]) * (10 ** expo)
        conf = int(quote["conf"]) * (10 ** expo) if "conf" in quote else None
    except (KeyError, ValueError, TypeError):
        return None

    publish_time = quote.get("publish_time")
    observed_at = (
        datetime.fromtimestamp(int(publish_time), tz=timezone.utc)
        if publish_time is not None
        else utc_now()
    )
    return PriceSample(price=float(price), observed_at=observed_at, confidence=conf)


class HermesPriceFeed:
    def __init__(
        self,
        ws_url: str,
        price_id: str,
        max_attempts: int = 5,
        base_delay: float = 1.0,
    ) -> None:
        self._ws_url = ws_url
        self._price_id = price_id if price_id.startswith("0x") else f"0x{price_id}"
        self._max_attempts = max_attempts
        self._base_delay = base_delay

    def backoff_delay(self, attempt: int) -> float:
        return self._base_delay * (2 ** (attempt - 1))

    async def stream(self) -> AsyncIterator[PriceSample]:
        attempts = 0
        while True:
            try:
                async with websockets.connect(self._ws_url) as ws:
                    await ws.send(json.dumps({"type": "subscribe", "ids": [self._price_id]}))
                    logger.info("[HERMES] Connected, subscribed to %s", self._price_id)
                    attempts = 0
                    async for message in ws:
                        sample = parse_price_update(message, self._price_id)
                        if sample is not None:
                            yield sample
                logger.warning("[HERMES] Connection closed by server")
            except (OSError, websockets.WebSocketException) as e:
                logger.warning("[HERMES] Connection error: %s", e)

            attempts += 1
            if attempts > self._max_attempts:
                raise ConnectionError(
                    f"Hermes feed unreachable after {self._max_attempts} reconnect attempts"
                )
            delay = self.backoff_delay(attempts)
            logger.info("[HERMES] Reconnecting in %.1fs (attempt %d)", delay, attempts)
            await asyncio.sleep(delay)
