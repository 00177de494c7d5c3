"""Domain models for tz_ledger — pure dataclasses, no SQLAlchemy dependency.

All amounts are int micro-units (see tz_common.money).
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime

from src.tz_common.enums import BetResult, WithdrawalStatus


@dataclass
class Deposit:
    tx_ref: str
    amount: int
    verified: bool
    created_at: datetime
    verified_at: datetime | None = None


@dataclass
class Withdrawal:
    id: str
    amount: int
    destination: str
    status: WithdrawalStatus
    requested_at: datetime
    tx_ref: str | None = None          # set once the transfer is confirmed
    completed_at: datetime | None = None
    failure_reason: str | None = None


@dataclass
class BetRecord:
    bet_id: str
    amount: int
    placed_at: datetime
    result: BetResult | None = None
    pnl: int | None = None
    resolved_at: datetime | None = None


@dataclass
class LedgerAccount:
    user_id: str
    balance: int = 0
    total_deposits: int = 0
    total_withdrawals: int = 0
    total_bet_volume: int = 0
    total_winnings: int = 0
    deposits: list[Deposit] = field(default_factory=list)
    withdrawals: list[Withdrawal] = field(default_factory=list)
    bets: list[BetRecord] = field(default_factory=list)
    updated_at: datetime | None = None

    def clone(self) -> "LedgerAccount":
        return copy.deepcopy(self)

    def find_bet(self, bet_id: str) -> BetRecord | None:
        for bet in self.bets:
            if bet.bet_id == bet_id:
                return bet
        return None

    def find_withdrawal(self, withdrawal_id: str) -> Withdrawal | None:
        for w in self.withdrawals:
            if w.id == withdrawal_id:
                return w
        return None

    @property
    def pending_withdrawals(self) -> int:
        return sum(w.amount for w in self.withdrawals if w.status == WithdrawalStatus.PENDING)
