"""Operator API — reconciliation, orphan cleanup, metrics and stuck settlements."""

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.tz_common.money import micro_to_display
from src.tz_common.response import ApiResponse, success_response
from src.tz_position.application.schemas import PositionResponse
from src.tz_runtime.api.dependencies import get_runtime
from src.tz_runtime.application.runtime import TradingRuntime
from src.tz_settlement.application.schemas import CloseOrphansRequest

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/reconcile")
async def reconcile(
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    report = await runtime.reconciliation.reconcile()
    data = {
        "healthy": report.healthy,
        "total_liabilities_micro": report.total_liabilities,
        "venue_total_micro": report.venue.total,
        "venue_free_micro": report.venue.free,
        "active_positions": report.active_positions,
        "unsettled_positions": report.unsettled_positions,
        "needs_manual_settlement": report.needs_manual_settlement,
        "orphaned_venue_refs": report.orphaned_venue_refs,
        "missing_venue_refs": report.missing_venue_refs,
        "liquidity_shortfall_micro": report.shortfall.shortfall if report.shortfall else None,
        "recommendations": report.recommendations,
    }
    return success_response(data, request)


@router.post("/reconcile/close-orphans")
async def close_orphans(
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
    body: CloseOrphansRequest | None = None,
) -> ApiResponse:
    refs = body.venue_refs if body is not None else None
    result = await runtime.reconciliation.close_orphaned(refs)
    return success_response(asdict(result), request)


@router.get("/metrics")
async def metrics(
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    m = runtime.reconciliation.system_metrics()
    data = asdict(m)
    data["house_pnl_display"] = micro_to_display(m.house_pnl)
    return success_response(data, request)


@router.get("/settlements/failed")
async def failed_settlements(
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    items = runtime.positions.needs_manual_settlement()
    return success_response(
        {"items": [PositionResponse.from_domain(p).model_dump() for p in items]}, request
    )


@router.post("/settlements/sweep")
async def run_sweep(
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    report = await runtime.pipeline.sweep()
    return success_response(asdict(report), request)
