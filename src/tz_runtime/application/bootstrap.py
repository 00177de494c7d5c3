"""Assemble a TradingRuntime from settings.

STORAGE_BACKEND=postgres uses the SQL stores; "memory" keeps everything in
process (paper trading, tests). The venue and transfer executor are always
the paper implementations; deposits are verified on chain when a custody
token account is configured.
"""

import logging

from config.settings import Settings
from src.tz_common.database import get_session_factory
from src.tz_common.redis_client import get_redis
from src.tz_feed.application.price_service import PriceService
from src.tz_feed.infrastructure.hermes_feed import HermesPriceFeed
from src.tz_ledger.application.funds import FundsService
from src.tz_ledger.application.service import LedgerService
from src.tz_ledger.infrastructure.persistence import InMemoryLedgerStore, SqlLedgerStore
from src.tz_position.application.betting import BettingService
from src.tz_position.domain.detector import WinLossDetector
from src.tz_position.domain.store import PositionStore
from src.tz_position.infrastructure.persistence import (
    InMemoryPositionRepository,
    SqlPositionRepository,
)
from src.tz_runtime.application.runtime import TradingRuntime
from src.tz_settlement.application.pipeline import SettlementPipeline
from src.tz_settlement.application.reconciliation import ReconciliationService
from src.tz_settlement.infrastructure.sweep_guard import LocalSweepGuard, RedisSweepGuard
from src.tz_venue.infrastructure.paper import (
    PaperChainVerifier,
    PaperTransferExecutor,
    PaperVenue,
)
from src.tz_venue.infrastructure.solana_rpc import SolanaRpcVerifier

logger = logging.getLogger(__name__)


async def build_runtime(cfg: Settings) -> TradingRuntime:
    if cfg.STORAGE_BACKEND == "postgres":
        session_factory = get_session_factory()
        ledger_store = SqlLedgerStore(session_factory)
        position_repo = SqlPositionRepository(session_factory)
    elif cfg.STORAGE_BACKEND == "memory":
        ledger_store = InMemoryLedgerStore()
        position_repo = InMemoryPositionRepository()
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {cfg.STORAGE_BACKEND!r}")

    if cfg.SWEEP_LOCK_BACKEND == "redis":
        guard = RedisSweepGuard(await get_redis(), ttl_seconds=cfg.SWEEP_LOCK_TTL_SECONDS)
    else:
        guard = LocalSweepGuard()

    if cfg.UNIVERSAL_TOKEN_ACCOUNT:
        verifier = SolanaRpcVerifier(
            cfg.SOLANA_RPC_URL, cfg.USDC_MINT, timeout=cfg.EXTERNAL_CALL_TIMEOUT_SECONDS
        )
    else:
        logger.warning("No custody token account configured; deposits are NOT verified on chain")
        verifier = PaperChainVerifier()

    feed = (
        HermesPriceFeed(cfg.PRICE_FEED_WS_URL, cfg.PRICE_FEED_ID)
        if cfg.PRICE_FEED_ENABLED
        else None
    )
    timeout = cfg.EXTERNAL_CALL_TIMEOUT_SECONDS
    venue = PaperVenue(cfg.PAPER_VENUE_COLLATERAL_MICRO)
    prices = PriceService(
        feed,
        history_size=cfg.PRICE_HISTORY_SIZE,
        restart_delay=cfg.PRICE_FEED_RESTART_DELAY_SECONDS,
        max_restart_delay=cfg.PRICE_FEED_MAX_RESTART_DELAY_SECONDS,
    )
    ledger = LedgerService(ledger_store)
    positions = PositionStore(position_repo)

    return TradingRuntime(
        ledger=ledger,
        funds=FundsService(
            ledger,
            verifier,
            PaperTransferExecutor(),
            custody_account=cfg.UNIVERSAL_TOKEN_ACCOUNT,
            tolerance_bps=cfg.DEPOSIT_TOLERANCE_BPS,
            call_timeout=timeout,
        ),
        positions=positions,
        detector=WinLossDetector(positions),
        betting=BettingService(
            ledger,
            positions,
            prices,
            venue,
            min_seconds=cfg.MIN_BET_SECONDS,
            max_seconds=cfg.MAX_BET_SECONDS,
            zone_cell_pct=cfg.ZONE_CELL_PCT,
            volatility_window=cfg.VOLATILITY_WINDOW,
            max_price_age_seconds=cfg.MAX_PRICE_AGE_SECONDS,
            call_timeout=timeout,
        ),
        pipeline=SettlementPipeline(
            positions,
            ledger,
            venue,
            guard,
            max_attempts=cfg.SETTLEMENT_MAX_ATTEMPTS,
            item_delay_seconds=cfg.SETTLEMENT_ITEM_DELAY_MS / 1000,
            call_timeout=timeout,
        ),
        reconciliation=ReconciliationService(
            ledger,
            positions,
            venue,
            call_timeout=timeout,
            item_delay_seconds=cfg.SETTLEMENT_ITEM_DELAY_MS / 1000,
        ),
        prices=prices,
        expiry_interval=cfg.EXPIRY_SWEEP_INTERVAL_SECONDS,
        settlement_interval=cfg.SETTLEMENT_INTERVAL_SECONDS,
        reconcile_interval=cfg.RECONCILE_INTERVAL_SECONDS,
    )
