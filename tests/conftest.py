"""Shared test fixtures.

The app is driven over ASGITransport, which does not run the lifespan; the
`client` fixture installs an in-memory runtime on app.state instead. Timers
are not started, so tests advance the engine explicitly.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from config.settings import Settings
from src.main import app
from src.tz_runtime.application.bootstrap import build_runtime
from src.tz_runtime.application.runtime import TradingRuntime


def memory_settings(**overrides: object) -> Settings:
    values: dict = dict(
        STORAGE_BACKEND="memory",
        SWEEP_LOCK_BACKEND="local",
        PRICE_FEED_ENABLED=False,
        UNIVERSAL_TOKEN_ACCOUNT="",
        SETTLEMENT_ITEM_DELAY_MS=0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
async def runtime() -> TradingRuntime:
    """Paper-mode runtime: in-memory stores, paper venue, no price feed."""
    return await build_runtime(memory_settings())


@pytest.fixture
async def client(runtime: TradingRuntime) -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    app.state.runtime = runtime
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.runtime
