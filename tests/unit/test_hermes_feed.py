"""Unit tests for the Hermes price feed parser and reconnect policy."""

import json
from unittest.mock import MagicMock, patch

import pytest

from src.tz_feed.infrastructure.hermes_feed import HermesPriceFeed, parse_price_update

PRICE_ID = "0xef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d"


def _message(price: str = "15012345678", expo: int = -8, feed_id: str = PRICE_ID[2:]) -> str:
    return json.dumps({
        "type": "price_update",
        "price_feed": {
            "id": feed_id,
            "price": {
                "price": price,
                "conf": "1234567",
                "expo": expo,
                "publish_time": 1767268800,
            },
        },
    })


class _FakeConnection:
    def __init__(self, messages: list[str]) -> None:
        self._messages = messages
        self.sent: list[str] = []

    async def __aenter__(self) -> "_FakeConnection":
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    async def send(self, message: str) -> None:
        self.sent.append(message)

    def __aiter__(self) -> "_FakeConnection":
        return self

    async def __anext__(self) -> str:
        if not self._messages:
            raise StopAsyncIteration
        return self._messages.pop(0)


class TestParsePriceUpdate:
    def test_scales_by_exponent(self) -> None:
        sample = parse_price_update(_message(), PRICE_ID)
        assert sample is not None
        assert sample.price == pytest.approx(150.12345678)
        assert sample.confidence == pytest.approx(0.01234567)
        assert sample.observed_at.timestamp() == 1767268800

    def test_id_match_ignores_prefix_and_case(self) -> None:
        assert parse_price_update(_message(feed_id=PRICE_ID.upper()[2:]), PRICE_ID) is not None

    def test_other_feed_ignored(self) -> None:
        assert parse_price_update(_message(feed_id="ab" * 32), PRICE_ID) is None

    def test_non_update_messages_ignored(self) -> None:
        assert parse_price_update(json.dumps({"type": "response", "status": "success"}), PRICE_ID) is None
        assert parse_price_update("not json", PRICE_ID) is None

    def test_malformed_price_ignored(self) -> None:
        assert parse_price_update(_message(price="abc"), PRICE_ID) is None


class TestHermesPriceFeed:
    def test_backoff_doubles(self) -> None:
        feed = HermesPriceFeed("wss://example", PRICE_ID, base_delay=1.0)
        assert [feed.backoff_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    async def test_subscribes_and_yields_samples(self) -> None:
        conn = _FakeConnection([json.dumps({"type": "response"}), _message()])
        feed = HermesPriceFeed("wss://example", PRICE_ID)
        with patch(
            "src.tz_feed.infrastructure.hermes_feed.websockets.connect",
            MagicMock(return_value=conn),
        ):
            stream = feed.stream()
            sample = await stream.__anext__()
            await stream.aclose()

        assert sample.price == pytest.approx(150.12345678)
        assert json.loads(conn.sent[0]) == {"type": "subscribe", "ids": [PRICE_ID]}

    async def test_gives_up_after_max_attempts(self) -> None:
        connect = MagicMock(side_effect=OSError("connection refused"))
        feed = HermesPriceFeed("wss://example", PRICE_ID, max_attempts=2, base_delay=0)
        with patch("src.tz_feed.infrastructure.hermes_feed.websockets.connect", connect):
            with pytest.raises(ConnectionError):
                async for _ in feed.stream():
                    pass
        assert connect.call_count == 3
