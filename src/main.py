"""FastAPI application entry point.

Run with: uvicorn src.main:app --port 8000   (single worker unless
SWEEP_LOCK_BACKEND=redis)
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.tz_common.database import dispose_engine, get_engine
from src.tz_common.errors import AppError
from src.tz_common.redis_client import close_redis
from src.tz_common.request_log import RequestLogMiddleware
from src.tz_common.response import error_response
from src.tz_feed.api.router import router as price_router
from src.tz_ledger.api.router import router as account_router
from src.tz_position.api.router import router as bets_router
from src.tz_runtime.application.bootstrap import build_runtime
from src.tz_settlement.api.router import router as admin_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, build + start the runtime. Shutdown: stop, dispose."""
    if settings.STORAGE_BACKEND == "postgres":
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    runtime = await build_runtime(settings)
    await runtime.start()
    app.state.runtime = runtime
    yield
    await runtime.stop()
    await dispose_engine()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(account_router, prefix="/api/v1")
app.include_router(bets_router, prefix="/api/v1")
app.include_router(price_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health(request: Request) -> dict[str, object]:
    runtime = getattr(request.app.state, "runtime", None)
    return {
        "status": "ok",
        "version": "0.1.0",
        "runtime": bool(runtime and runtime.running),
    }
