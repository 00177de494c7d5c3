"""LedgerService — per-user balances and history behind the server boundary.

Atomicity model:
  - One asyncio.Lock per user key; operations on different users interleave.
  - Deposit de-duplication is system-wide, so credits also take a single
    deposit lock (always acquired BEFORE the account lock).
  - Every mutation works on a clone, is written to the store, and only then
    replaces the in-memory account. A failed write leaves memory untouched.

Returned accounts are snapshots; mutating them has no effect on the ledger.
"""

import asyncio
import logging
from collections import defaultdict

from src.tz_common.datetime_utils import utc_now
from src.tz_common.enums import BetResult, WithdrawalStatus
from src.tz_common.errors import (
    BetAlreadyResolvedError,
    BetNotFoundError,
    DuplicateDepositError,
    InsufficientBalanceError,
    WithdrawalNotFoundError,
    WithdrawalNotPendingError,
)
from src.tz_common.id_generator import generate_id
from src.tz_common.money import micro_to_display
from src.tz_ledger.domain.models import BetRecord, Deposit, LedgerAccount, Withdrawal
from src.tz_ledger.domain.repository import LedgerStoreProtocol

logger = logging.getLogger(__name__)


def _require_positive(amount: int, what: str) -> None:
    if amount <= 0:
        raise ValueError(f"{what} must be > 0, got {amount}")


class LedgerService:
    def __init__(self, store: LedgerStoreProtocol) -> None:
        self._store = store
        self._accounts: dict[str, LedgerAccount] = {}
        self._account_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._deposit_lock = asyncio.Lock()
        self._deposit_refs: dict[str, str] = {}  # tx_ref -> user_id

    async def load(self) -> int:
        """Load all persisted accounts and rebuild the deposit index."""
        accounts = await self._store.load_all()
        self._accounts = dict(accounts)
        self._deposit_refs = {
            d.tx_ref: acc.user_id for acc in accounts.values() for d in acc.deposits
        }
        logger.info(
            "Ledger loaded: %d accounts, %d deposits", len(accounts), len(self._deposit_refs)
        )
        return len(accounts)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_or_create(self, user_id: str) -> LedgerAccount:
        """The user's account, or an empty one. Only a committed mutation stores it."""
        account = self._accounts.get(user_id)
        if account is None:
            return LedgerAccount(user_id=user_id, updated_at=utc_now())
        return account.clone()

    def get_balance(self, user_id: str) -> int:
        account = self._accounts.get(user_id)
        return account.balance if account else 0

    def has_deposit(self, tx_ref: str) -> bool:
        return tx_ref in self._deposit_refs

    def all_accounts(self) -> list[LedgerAccount]:
        return [acc.clone() for acc in self._accounts.values()]

    def total_liabilities(self) -> int:
        """Funds owed to users: balances plus withdrawals not yet transferred."""
        return sum(acc.balance + acc.pending_withdrawals for acc in self._accounts.values())

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------

    async def credit_verified_deposit(
        self, user_id: str, tx_ref: str, amount: int
    ) -> LedgerAccount:
        _require_positive(amount, "deposit amount")
        async with self._deposit_lock:
            if tx_ref in self._deposit_refs:
                raise DuplicateDepositError(tx_ref)
            async with self._account_locks[user_id]:
                account = self._working_copy(user_id)
                now = utc_now()
                account.deposits.append(
                    Deposit(tx_ref=tx_ref, amount=amount, verified=True,
                            created_at=now, verified_at=now)
                )
                account.balance += amount
                account.total_deposits += amount
                snapshot = await self._commit(account)
            self._deposit_refs[tx_ref] = user_id

        logger.info("Deposit credited: %s +%s (%s)", user_id, micro_to_display(amount), tx_ref)
        return snapshot

    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    async def debit_for_bet(self, user_id: str, amount: int) -> str:
        """Debit collateral before the venue trade is placed. Returns the BetId."""
        _require_positive(amount, "bet amount")
        bet_id = generate_id("bet")
        async with self._account_locks[user_id]:
            account = self._working_copy(user_id)
            if account.balance < amount:
                raise InsufficientBalanceError(amount, account.balance)
            account.balance -= amount
            account.total_bet_volume += amount
            account.bets.append(BetRecord(bet_id=bet_id, amount=amount, placed_at=utc_now()))
            await self._commit(account)

        logger.info("Bet debited: %s -%s (%s)", user_id, micro_to_display(amount), bet_id)
        return bet_id

    async def credit_refund(self, user_id: str, bet_id: str, amount: int) -> LedgerAccount:
        """Compensate a debit whose venue trade never opened."""
        async with self._account_locks[user_id]:
            account = self._working_copy(user_id)
            bet = self._open_bet(account, bet_id)
            account.balance += amount
            account.total_bet_volume -= amount
            bet.result = BetResult.REFUNDED
            bet.pnl = 0
            bet.resolved_at = utc_now()
            snapshot = await self._commit(account)

        logger.warning("Bet refunded: %s +%s (%s)", user_id, micro_to_display(amount), bet_id)
        return snapshot

    async def settle_win(
        self, user_id: str, position_id: str, principal: int, pnl: int
    ) -> LedgerAccount:
        """Credit principal + pnl for a won bet. At most once per bet."""
        async with self._account_locks[user_id]:
            account = self._working_copy(user_id)
            bet = self._open_bet(account, position_id)
            account.balance += principal + pnl
            account.total_winnings += pnl
            bet.result = BetResult.WIN
            bet.pnl = pnl
            bet.resolved_at = utc_now()
            snapshot = await self._commit(account)

        logger.info(
            "Win settled: %s +%s (principal %s, pnl %s) %s",
            user_id,
            micro_to_display(principal + pnl),
            micro_to_display(principal),
            micro_to_display(pnl),
            position_id,
        )
        return snapshot

    async def record_loss(self, user_id: str, position_id: str, pnl: int) -> LedgerAccount:
        """Mark a lost bet; the collateral was already debited at placement."""
        async with self._account_locks[user_id]:
            account = self._working_copy(user_id)
            bet = self._open_bet(account, position_id)
            bet.result = BetResult.LOSS
            bet.pnl = pnl
            bet.resolved_at = utc_now()
            snapshot = await self._commit(account)

        logger.info("Loss recorded: %s %s (%s)", user_id, micro_to_display(pnl), position_id)
        return snapshot

    # ------------------------------------------------------------------
    # Withdrawals (two-phase)
    # ------------------------------------------------------------------

    async def request_withdrawal(self, user_id: str, amount: int, destination: str) -> str:
        """Phase 1: debit and mark PENDING. Returns the WithdrawalId."""
        _require_positive(amount, "withdrawal amount")
        withdrawal_id = generate_id("wd")
        async with self._account_locks[user_id]:
            account = self._working_copy(user_id)
            if account.balance < amount:
                raise InsufficientBalanceError(amount, account.balance)
            account.balance -= amount
            account.withdrawals.append(
                Withdrawal(
                    id=withdrawal_id,
                    amount=amount,
                    destination=destination,
                    status=WithdrawalStatus.PENDING,
                    requested_at=utc_now(),
                )
            )
            await self._commit(account)

        logger.info(
            "Withdrawal requested: %s -%s (%s)", user_id, micro_to_display(amount), withdrawal_id
        )
        return withdrawal_id

    async def complete_withdrawal(
        self, user_id: str, withdrawal_id: str, tx_ref: str
    ) -> Withdrawal:
        """Phase 2 (success): the transfer is confirmed on chain."""
        async with self._account_locks[user_id]:
            account = self._working_copy(user_id)
            withdrawal = self._pending_withdrawal(account, withdrawal_id)
            withdrawal.status = WithdrawalStatus.COMPLETED
            withdrawal.tx_ref = tx_ref
            withdrawal.completed_at = utc_now()
            account.total_withdrawals += withdrawal.amount
            snapshot = await self._commit(account)

        logger.info("Withdrawal completed: %s %s tx=%s", user_id, withdrawal_id, tx_ref)
        return snapshot.find_withdrawal(withdrawal_id)  # type: ignore[return-value]

    async def cancel_withdrawal(
        self, user_id: str, withdrawal_id: str, reason: str
    ) -> Withdrawal:
        """Phase 2 (failure): re-credit the debit and mark FAILED."""
        async with self._account_locks[user_id]:
            account = self._working_copy(user_id)
            withdrawal = self._pending_withdrawal(account, withdrawal_id)
            withdrawal.status = WithdrawalStatus.FAILED
            withdrawal.failure_reason = reason
            withdrawal.completed_at = utc_now()
            account.balance += withdrawal.amount
            snapshot = await self._commit(account)

        logger.warning("Withdrawal cancelled: %s %s (%s)", user_id, withdrawal_id, reason)
        return snapshot.find_withdrawal(withdrawal_id)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Internals: callers must hold the account lock
    # ------------------------------------------------------------------

    def _working_copy(self, user_id: str) -> LedgerAccount:
        account = self._accounts.get(user_id)
        if account is None:
            return LedgerAccount(user_id=user_id)
        return account.clone()

    async def _commit(self, account: LedgerAccount) -> LedgerAccount:
        account.updated_at = utc_now()
        await self._store.save_account(account)
        self._accounts[account.user_id] = account
        return account.clone()

    @staticmethod
    def _open_bet(account: LedgerAccount, bet_id: str) -> BetRecord:
        bet = account.find_bet(bet_id)
        if bet is None:
            raise BetNotFoundError(bet_id)
        if bet.result is not None:
            raise BetAlreadyResolvedError(bet_id)
        return bet

    @staticmethod
    def _pending_withdrawal(account: LedgerAccount, withdrawal_id: str) -> Withdrawal:
        withdrawal = account.find_withdrawal(withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError(withdrawal_id)
        if withdrawal.status != WithdrawalStatus.PENDING:
            raise WithdrawalNotPendingError(withdrawal_id, withdrawal.status.value)
        return withdrawal
