"""Unit tests for BettingService: quoting and placement with compensation."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from src.tz_common.datetime_utils import utc_now
from src.tz_common.enums import BetResult, Direction, PositionStatus
from src.tz_common.errors import (
    InsufficientBalanceError,
    InvalidBetError,
    PriceUnavailableError,
    TradeExecutionError,
    VenueError,
)
from src.tz_feed.application.price_service import PriceService
from src.tz_ledger.application.service import LedgerService
from src.tz_ledger.infrastructure.persistence import InMemoryLedgerStore
from src.tz_position.application.betting import BettingService
from src.tz_position.domain.models import PriceSample
from src.tz_position.domain.store import PositionStore
from src.tz_position.infrastructure.persistence import InMemoryPositionRepository
from src.tz_venue.infrastructure.paper import PaperVenue

USER = "Wallet1111"
TEN = 10_000_000
FIFTY = 50_000_000


async def _make_service(
    venue: object | None = None,
    store: PositionStore | None = None,
    price: float | None = 100.0,
    price_age: float = 0.0,
) -> tuple[BettingService, LedgerService, PositionStore, object]:
    ledger = LedgerService(InMemoryLedgerStore())
    await ledger.credit_verified_deposit(USER, "sig-fund", FIFTY)
    store = store or PositionStore(InMemoryPositionRepository())
    prices = PriceService()
    if price is not None:
        await prices.publish(PriceSample(price=price, observed_at=utc_now() - timedelta(seconds=price_age)))
    venue = venue or PaperVenue(collateral=1_000_000_000_000)
    service = BettingService(ledger, store, prices, venue, call_timeout=1.0)  # type: ignore[arg-type]
    return service, ledger, store, venue


class TestQuote:
    async def test_quote_uses_server_pricing(self) -> None:
        service, ledger, store, _ = await _make_service()
        q = service.quote(100.1, 30, TEN)
        assert q.leverage == 10
        assert q.direction == Direction.UP
        assert q.notional == 100_000_000
        assert q.zone_low < 100.1 < q.zone_high
        assert q.expected_profit == 100_000

    async def test_quote_has_no_side_effects(self) -> None:
        service, ledger, store, _ = await _make_service()
        service.quote(100.1, 30, TEN)
        assert ledger.get_balance(USER) == FIFTY
        assert store.all() == []

    async def test_down_direction(self) -> None:
        service, *_ = await _make_service()
        assert service.quote(99.5, 30, TEN).direction == Direction.DOWN

    @pytest.mark.parametrize(
        "target,seconds,collateral",
        [(100.1, 5, TEN), (100.1, 61, TEN), (100.1, 30, 0), (0.0, 30, TEN)],
    )
    async def test_invalid_inputs(self, target: float, seconds: float, collateral: int) -> None:
        service, *_ = await _make_service()
        with pytest.raises(InvalidBetError):
            service.quote(target, seconds, collateral)

    async def test_no_price(self) -> None:
        service, *_ = await _make_service(price=None)
        with pytest.raises(PriceUnavailableError):
            service.quote(100.1, 30, TEN)

    async def test_stale_price_rejected(self) -> None:
        service, *_ = await _make_service(price_age=60.0)
        with pytest.raises(PriceUnavailableError, match="60s old"):
            service.quote(100.1, 30, TEN)

    async def test_recent_price_accepted(self) -> None:
        service, *_ = await _make_service(price_age=5.0)
        assert service.quote(100.1, 30, TEN).leverage == 10


class TestPlaceBet:
    async def test_place_bet(self) -> None:
        service, ledger, store, venue = await _make_service()
        position = await service.place_bet(USER, 100.1, 30, TEN)

        assert position.status == PositionStatus.ACTIVE
        assert position.leverage == 10
        assert position.entry_price == 100.0
        assert position.venue_ref in venue.open_positions  # type: ignore[attr-defined]
        assert (position.expires_at - position.placed_at).total_seconds() == 30
        assert ledger.get_balance(USER) == FIFTY - TEN
        assert ledger.get_or_create(USER).find_bet(position.id) is not None
        assert store.get(position.id) is not None

    async def test_insufficient_balance_opens_nothing(self) -> None:
        service, ledger, store, venue = await _make_service()
        with pytest.raises(InsufficientBalanceError):
            await service.place_bet(USER, 100.1, 30, FIFTY + 1)
        assert venue.open_positions == {}  # type: ignore[attr-defined]
        assert store.all() == []

    async def test_venue_failure_refunds(self) -> None:
        venue = AsyncMock()
        venue.open_position.side_effect = VenueError("insufficient margin")
        service, ledger, store, _ = await _make_service(venue=venue)

        with pytest.raises(TradeExecutionError):
            await service.place_bet(USER, 100.1, 30, TEN)

        account = ledger.get_or_create(USER)
        assert account.balance == FIFTY
        assert account.total_bet_volume == 0
        assert account.bets[0].result == BetResult.REFUNDED
        assert store.all() == []

    async def test_store_failure_unwinds_venue_and_refunds(self) -> None:
        repo = AsyncMock()
        repo.save.side_effect = OSError("db down")
        service, ledger, _, venue = await _make_service(store=PositionStore(repo))

        with pytest.raises(TradeExecutionError):
            await service.place_bet(USER, 100.1, 30, TEN)

        assert ledger.get_balance(USER) == FIFTY
        assert venue.open_positions == {}  # type: ignore[attr-defined]

    async def test_stale_price_debits_nothing(self) -> None:
        service, ledger, store, venue = await _make_service(price_age=60.0)
        with pytest.raises(PriceUnavailableError):
            await service.place_bet(USER, 100.1, 30, TEN)
        assert ledger.get_balance(USER) == FIFTY
        assert ledger.get_or_create(USER).bets == []
        assert venue.open_positions == {}  # type: ignore[attr-defined]
        assert store.all() == []
