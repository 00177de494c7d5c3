"""tz_position REST API — quote, place, inspect and summarise bets."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.tz_common.errors import PositionNotFoundError
from src.tz_common.response import ApiResponse, success_response
from src.tz_position.application.schemas import (
    PlaceBetRequest,
    PositionResponse,
    QuoteRequest,
    QuoteResponse,
    StatsResponse,
)
from src.tz_runtime.api.dependencies import get_runtime
from src.tz_runtime.application.runtime import TradingRuntime

router = APIRouter(prefix="/bets", tags=["bets"])


@router.post("/quote")
async def quote_bet(
    body: QuoteRequest,
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    q = runtime.betting.quote(body.target_price, body.expires_in_seconds, body.collateral_micro)
    return success_response(QuoteResponse.from_quote(q).model_dump(), request)


@router.post("", status_code=201)
async def place_bet(
    body: PlaceBetRequest,
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    position = await runtime.betting.place_bet(
        body.user_id, body.target_price, body.expires_in_seconds, body.collateral_micro
    )
    return success_response(PositionResponse.from_domain(position).model_dump(), request)


@router.get("")
async def list_bets(
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
    user_id: str = Query(..., min_length=1),
    limit: int = Query(50, ge=1, le=500),
) -> ApiResponse:
    positions = runtime.positions.list_for_user(user_id)[:limit]
    return success_response(
        {"items": [PositionResponse.from_domain(p).model_dump() for p in positions]}, request
    )


@router.get("/stats/{user_id}")
async def get_stats(
    user_id: str,
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    stats = runtime.positions.stats_for(user_id)
    return success_response(StatsResponse.from_stats(user_id, stats).model_dump(), request)


@router.get("/{bet_id}")
async def get_bet(
    bet_id: str,
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    position = runtime.positions.get(bet_id)
    if position is None:
        raise PositionNotFoundError(bet_id)
    return success_response(PositionResponse.from_domain(position).model_dump(), request)
