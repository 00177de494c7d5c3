"""Pydantic schemas for tz_ledger API."""

from pydantic import BaseModel, Field

from src.tz_common.datetime_utils import to_iso
from src.tz_common.money import micro_to_display
from src.tz_ledger.domain.models import LedgerAccount, Withdrawal

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    tx_ref: str = Field(..., min_length=1, description="On-chain transaction signature")
    amount_micro: int = Field(..., gt=0, description="Expected amount in micro-units")


class WithdrawRequest(BaseModel):
    amount_micro: int = Field(..., gt=0, description="Amount to withdraw in micro-units")
    destination: str | None = Field(
        None, description="Destination wallet; defaults to the account's own address"
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    balance_micro: int
    balance_display: str
    pending_withdrawals_micro: int
    total_deposits_micro: int
    total_withdrawals_micro: int
    total_bet_volume_micro: int
    total_winnings_micro: int

    @classmethod
    def from_account(cls, account: LedgerAccount) -> "BalanceResponse":
        return cls(
            user_id=account.user_id,
            balance_micro=account.balance,
            balance_display=micro_to_display(account.balance),
            pending_withdrawals_micro=account.pending_withdrawals,
            total_deposits_micro=account.total_deposits,
            total_withdrawals_micro=account.total_withdrawals,
            total_bet_volume_micro=account.total_bet_volume,
            total_winnings_micro=account.total_winnings,
        )


class WithdrawalItem(BaseModel):
    id: str
    amount_micro: int
    destination: str
    status: str
    tx_ref: str | None
    requested_at: str
    completed_at: str | None
    failure_reason: str | None

    @classmethod
    def from_domain(cls, w: Withdrawal) -> "WithdrawalItem":
        return cls(
            id=w.id,
            amount_micro=w.amount,
            destination=w.destination,
            status=w.status.value,
            tx_ref=w.tx_ref,
            requested_at=to_iso(w.requested_at) or "",
            completed_at=to_iso(w.completed_at),
            failure_reason=w.failure_reason,
        )


class DepositItem(BaseModel):
    tx_ref: str
    amount_micro: int
    verified: bool
    created_at: str


class BetItem(BaseModel):
    bet_id: str
    amount_micro: int
    placed_at: str
    result: str | None
    pnl_micro: int | None


class HistoryResponse(BaseModel):
    user_id: str
    deposits: list[DepositItem]
    withdrawals: list[WithdrawalItem]
    bets: list[BetItem]

    @classmethod
    def from_account(cls, account: LedgerAccount, limit: int) -> "HistoryResponse":
        # Newest first
        return cls(
            user_id=account.user_id,
            deposits=[
                DepositItem(
                    tx_ref=d.tx_ref,
                    amount_micro=d.amount,
                    verified=d.verified,
                    created_at=to_iso(d.created_at) or "",
                )
                for d in reversed(account.deposits[-limit:])
            ],
            withdrawals=[
                WithdrawalItem.from_domain(w) for w in reversed(account.withdrawals[-limit:])
            ],
            bets=[
                BetItem(
                    bet_id=b.bet_id,
                    amount_micro=b.amount,
                    placed_at=to_iso(b.placed_at) or "",
                    result=b.result.value if b.result else None,
                    pnl_micro=b.pnl,
                )
                for b in reversed(account.bets[-limit:])
            ],
        )
