"""Price API — latest sample, volatility and current history depth."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.tz_common.datetime_utils import to_iso
from src.tz_common.errors import PriceUnavailableError
from src.tz_common.response import ApiResponse, success_response
from src.tz_pricing.domain.model import recent_volatility
from src.tz_runtime.api.dependencies import get_runtime
from src.tz_runtime.application.runtime import TradingRuntime

router = APIRouter(tags=["price"])


@router.get("/price")
async def get_price(
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    latest = runtime.prices.latest()
    if latest is None:
        raise PriceUnavailableError()
    history = runtime.prices.recent_prices(120)
    data = {
        "price": latest.price,
        "confidence": latest.confidence,
        "observed_at": to_iso(latest.observed_at),
        "volatility": recent_volatility(history),
        "samples": len(history),
    }
    return success_response(data, request)
