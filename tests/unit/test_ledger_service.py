"""Unit tests for LedgerService over the in-memory store."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.tz_common.enums import BetResult, WithdrawalStatus
from src.tz_common.errors import (
    BetAlreadyResolvedError,
    BetNotFoundError,
    DuplicateDepositError,
    InsufficientBalanceError,
    WithdrawalNotFoundError,
    WithdrawalNotPendingError,
)
from src.tz_ledger.application.service import LedgerService
from src.tz_ledger.infrastructure.persistence import InMemoryLedgerStore

USER = "Wallet1111"
TEN = 10_000_000
FIFTY = 50_000_000


async def _funded_ledger(amount: int = FIFTY) -> LedgerService:
    ledger = LedgerService(InMemoryLedgerStore())
    await ledger.credit_verified_deposit(USER, "sig-fund", amount)
    return ledger


class TestAccounts:
    async def test_get_or_create_is_lazy_and_empty(self) -> None:
        ledger = LedgerService(InMemoryLedgerStore())
        account = ledger.get_or_create("new-wallet")
        assert account.balance == 0
        assert account.deposits == []

    async def test_reading_unknown_user_does_not_create_account(self) -> None:
        ledger = LedgerService(InMemoryLedgerStore())
        ledger.get_or_create("reader-1")
        ledger.get_or_create("reader-2")
        assert ledger.all_accounts() == []
        assert ledger.total_liabilities() == 0

    async def test_returned_account_is_a_snapshot(self) -> None:
        ledger = await _funded_ledger()
        snapshot = ledger.get_or_create(USER)
        snapshot.balance = 0
        assert ledger.get_balance(USER) == FIFTY

    async def test_load_restores_accounts_and_deposit_index(self) -> None:
        store = InMemoryLedgerStore()
        first = LedgerService(store)
        await first.credit_verified_deposit(USER, "sig-1", TEN)

        second = LedgerService(store)
        assert await second.load() == 1
        assert second.get_balance(USER) == TEN
        assert second.has_deposit("sig-1")


class TestDeposits:
    async def test_credit(self) -> None:
        ledger = LedgerService(InMemoryLedgerStore())
        account = await ledger.credit_verified_deposit(USER, "sig-1", FIFTY)
        assert account.balance == FIFTY
        assert account.total_deposits == FIFTY
        assert account.deposits[0].verified is True

    async def test_replay_rejected_with_single_balance_change(self) -> None:
        ledger = LedgerService(InMemoryLedgerStore())
        await ledger.credit_verified_deposit(USER, "sig-1", FIFTY)
        with pytest.raises(DuplicateDepositError):
            await ledger.credit_verified_deposit(USER, "sig-1", FIFTY)
        assert ledger.get_balance(USER) == FIFTY

    async def test_replay_rejected_across_accounts(self) -> None:
        ledger = LedgerService(InMemoryLedgerStore())
        await ledger.credit_verified_deposit(USER, "sig-1", FIFTY)
        with pytest.raises(DuplicateDepositError):
            await ledger.credit_verified_deposit("OtherWallet", "sig-1", FIFTY)
        assert ledger.get_balance("OtherWallet") == 0

    async def test_concurrent_replay_credits_once(self) -> None:
        ledger = LedgerService(InMemoryLedgerStore())
        results = await asyncio.gather(
            *(ledger.credit_verified_deposit(USER, "sig-race", TEN) for _ in range(5)),
            return_exceptions=True,
        )
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert ledger.get_balance(USER) == TEN

    async def test_non_positive_amount_rejected(self) -> None:
        ledger = LedgerService(InMemoryLedgerStore())
        with pytest.raises(ValueError):
            await ledger.credit_verified_deposit(USER, "sig-0", 0)

    async def test_storage_failure_leaves_memory_unchanged(self) -> None:
        store = AsyncMock()
        store.save_account.side_effect = OSError("disk full")
        ledger = LedgerService(store)
        with pytest.raises(OSError):
            await ledger.credit_verified_deposit(USER, "sig-1", TEN)
        assert ledger.get_balance(USER) == 0
        assert not ledger.has_deposit("sig-1")


class TestBets:
    async def test_debit(self) -> None:
        ledger = await _funded_ledger()
        bet_id = await ledger.debit_for_bet(USER, TEN)
        account = ledger.get_or_create(USER)
        assert account.balance == FIFTY - TEN
        assert account.total_bet_volume == TEN
        assert account.find_bet(bet_id) is not None

    async def test_bet_ids_unique(self) -> None:
        ledger = await _funded_ledger()
        ids = {await ledger.debit_for_bet(USER, 1_000_000) for _ in range(10)}
        assert len(ids) == 10

    async def test_insufficient_balance(self) -> None:
        ledger = await _funded_ledger(TEN)
        with pytest.raises(InsufficientBalanceError):
            await ledger.debit_for_bet(USER, TEN + 1)
        assert ledger.get_balance(USER) == TEN

    async def test_concurrent_debits_never_overdraw(self) -> None:
        ledger = await _funded_ledger(TEN * 3)
        results = await asyncio.gather(
            *(ledger.debit_for_bet(USER, TEN) for _ in range(5)),
            return_exceptions=True,
        )
        ok = [r for r in results if isinstance(r, str)]
        assert len(ok) == 3
        assert ledger.get_balance(USER) == 0

    async def test_refund_restores_balance(self) -> None:
        ledger = await _funded_ledger()
        bet_id = await ledger.debit_for_bet(USER, TEN)
        account = await ledger.credit_refund(USER, bet_id, TEN)
        assert account.balance == FIFTY
        assert account.total_bet_volume == 0
        assert account.find_bet(bet_id).result == BetResult.REFUNDED  # type: ignore[union-attr]

    async def test_settle_win_credits_principal_plus_pnl(self) -> None:
        ledger = await _funded_ledger()
        bet_id = await ledger.debit_for_bet(USER, TEN)
        account = await ledger.settle_win(USER, bet_id, principal=TEN, pnl=2_100_000)
        assert account.balance == FIFTY - TEN + 12_100_000
        assert account.total_winnings == 2_100_000
        assert account.find_bet(bet_id).result == BetResult.WIN  # type: ignore[union-attr]

    async def test_settle_win_at_most_once(self) -> None:
        ledger = await _funded_ledger()
        bet_id = await ledger.debit_for_bet(USER, TEN)
        await ledger.settle_win(USER, bet_id, principal=TEN, pnl=2_100_000)
        with pytest.raises(BetAlreadyResolvedError):
            await ledger.settle_win(USER, bet_id, principal=TEN, pnl=2_100_000)
        assert ledger.get_balance(USER) == FIFTY + 2_100_000

    async def test_record_loss_keeps_balance(self) -> None:
        ledger = await _funded_ledger()
        bet_id = await ledger.debit_for_bet(USER, TEN)
        account = await ledger.record_loss(USER, bet_id, -TEN)
        assert account.balance == FIFTY - TEN
        bet = account.find_bet(bet_id)
        assert bet.result == BetResult.LOSS  # type: ignore[union-attr]
        assert bet.pnl == -TEN  # type: ignore[union-attr]

    async def test_resolve_unknown_bet(self) -> None:
        ledger = await _funded_ledger()
        with pytest.raises(BetNotFoundError):
            await ledger.settle_win(USER, "bet_missing", principal=TEN, pnl=1)


class TestWithdrawals:
    async def test_request_debits_and_is_pending(self) -> None:
        ledger = await _funded_ledger()
        wid = await ledger.request_withdrawal(USER, TEN, "Dest")
        account = ledger.get_or_create(USER)
        assert account.balance == FIFTY - TEN
        assert account.find_withdrawal(wid).status == WithdrawalStatus.PENDING  # type: ignore[union-attr]
        assert ledger.total_liabilities() == FIFTY

    async def test_complete(self) -> None:
        ledger = await _funded_ledger()
        wid = await ledger.request_withdrawal(USER, TEN, "Dest")
        w = await ledger.complete_withdrawal(USER, wid, "tx-out")
        assert w.status == WithdrawalStatus.COMPLETED
        assert w.tx_ref == "tx-out"
        account = ledger.get_or_create(USER)
        assert account.total_withdrawals == TEN
        assert ledger.total_liabilities() == FIFTY - TEN

    async def test_cancel_restores_balance(self) -> None:
        ledger = await _funded_ledger()
        wid = await ledger.request_withdrawal(USER, TEN, "Dest")
        w = await ledger.cancel_withdrawal(USER, wid, "rpc down")
        assert w.status == WithdrawalStatus.FAILED
        assert w.failure_reason == "rpc down"
        assert ledger.get_balance(USER) == FIFTY

    async def test_cannot_cancel_completed(self) -> None:
        ledger = await _funded_ledger()
        wid = await ledger.request_withdrawal(USER, TEN, "Dest")
        await ledger.complete_withdrawal(USER, wid, "tx-out")
        with pytest.raises(WithdrawalNotPendingError):
            await ledger.cancel_withdrawal(USER, wid, "late")
        assert ledger.get_balance(USER) == FIFTY - TEN

    async def test_unknown_withdrawal(self) -> None:
        ledger = await _funded_ledger()
        with pytest.raises(WithdrawalNotFoundError):
            await ledger.complete_withdrawal(USER, "wd_missing", "tx")

    async def test_insufficient_balance(self) -> None:
        ledger = await _funded_ledger(TEN)
        with pytest.raises(InsufficientBalanceError):
            await ledger.request_withdrawal(USER, FIFTY, "Dest")
