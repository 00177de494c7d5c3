"""tz_ledger REST API — balance, history, deposit, withdraw.

User keys are wallet addresses; wallet-signature authentication happens in
front of this service.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.tz_common.response import ApiResponse, success_response
from src.tz_ledger.application.schemas import (
    BalanceResponse,
    DepositRequest,
    HistoryResponse,
    WithdrawalItem,
    WithdrawRequest,
)
from src.tz_runtime.api.dependencies import get_runtime
from src.tz_runtime.application.runtime import TradingRuntime

router = APIRouter(prefix="/account", tags=["account"])


@router.get("/{user_id}/balance")
async def get_balance(
    user_id: str,
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    account = runtime.ledger.get_or_create(user_id)
    return success_response(BalanceResponse.from_account(account).model_dump(), request)


@router.get("/{user_id}/history")
async def get_history(
    user_id: str,
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
    limit: int = Query(50, ge=1, le=500, description="Max items per list"),
) -> ApiResponse:
    account = runtime.ledger.get_or_create(user_id)
    return success_response(HistoryResponse.from_account(account, limit).model_dump(), request)


@router.post("/{user_id}/deposit")
async def deposit(
    user_id: str,
    body: DepositRequest,
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    account = await runtime.funds.deposit(user_id, body.tx_ref, body.amount_micro)
    return success_response(BalanceResponse.from_account(account).model_dump(), request)


@router.post("/{user_id}/withdraw")
async def withdraw(
    user_id: str,
    body: WithdrawRequest,
    runtime: Annotated[TradingRuntime, Depends(get_runtime)],
    request: Request,
) -> ApiResponse:
    destination = body.destination or user_id
    withdrawal = await runtime.funds.withdraw(user_id, body.amount_micro, destination)
    return success_response(WithdrawalItem.from_domain(withdrawal).model_dump(), request)
