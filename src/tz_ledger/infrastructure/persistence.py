"""Ledger stores — concrete implementations of LedgerStoreProtocol.

SqlLedgerStore keeps one JSONB document per user in `ledger_accounts`.
Each save is its own short transaction; ordering between writers of the same
account is guaranteed by LedgerService's per-account lock.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.tz_common.datetime_utils import from_iso, to_iso
from src.tz_common.enums import BetResult, WithdrawalStatus
from src.tz_ledger.domain.models import BetRecord, Deposit, LedgerAccount, Withdrawal

_LOAD_ALL_SQL = text("""
    SELECT user_id, document
    FROM ledger_accounts
""")

_UPSERT_SQL = text("""
    INSERT INTO ledger_accounts (user_id, document, version)
    VALUES (:user_id, CAST(:document AS JSONB), 1)
    ON CONFLICT (user_id) DO UPDATE
        SET document = EXCLUDED.document,
            version = ledger_accounts.version + 1
""")


# ---------------------------------------------------------------------------
# Document mapping
# ---------------------------------------------------------------------------


def account_to_document(account: LedgerAccount) -> dict[str, Any]:
    return {
        "user_id": account.user_id,
        "balance": account.balance,
        "total_deposits": account.total_deposits,
        "total_withdrawals": account.total_withdrawals,
        "total_bet_volume": account.total_bet_volume,
        "total_winnings": account.total_winnings,
        "updated_at": to_iso(account.updated_at),
        "deposits": [
            {
                "tx_ref": d.tx_ref,
                "amount": d.amount,
                "verified": d.verified,
                "created_at": to_iso(d.created_at),
                "verified_at": to_iso(d.verified_at),
            }
            for d in account.deposits
        ],
        "withdrawals": [
            {
                "id": w.id,
                "amount": w.amount,
                "destination": w.destination,
                "status": w.status.value,
                "requested_at": to_iso(w.requested_at),
                "tx_ref": w.tx_ref,
                "completed_at": to_iso(w.completed_at),
                "failure_reason": w.failure_reason,
            }
            for w in account.withdrawals
        ],
        "bets": [
            {
                "bet_id": b.bet_id,
                "amount": b.amount,
                "placed_at": to_iso(b.placed_at),
                "result": b.result.value if b.result else None,
                "pnl": b.pnl,
                "resolved_at": to_iso(b.resolved_at),
            }
            for b in account.bets
        ],
    }


def account_from_document(doc: dict[str, Any]) -> LedgerAccount:
    return LedgerAccount(
        user_id=doc["user_id"],
        balance=int(doc.get("balance", 0)),
        total_deposits=int(doc.get("total_deposits", 0)),
        total_withdrawals=int(doc.get("total_withdrawals", 0)),
        total_bet_volume=int(doc.get("total_bet_volume", 0)),
        total_winnings=int(doc.get("total_winnings", 0)),
        updated_at=from_iso(doc.get("updated_at")),
        deposits=[
            Deposit(
                tx_ref=d["tx_ref"],
                amount=int(d["amount"]),
                verified=bool(d["verified"]),
                created_at=from_iso(d["created_at"]),  # type: ignore[arg-type]
                verified_at=from_iso(d.get("verified_at")),
            )
            for d in doc.get("deposits", [])
        ],
        withdrawals=[
            Withdrawal(
                id=w["id"],
                amount=int(w["amount"]),
                destination=w["destination"],
                status=WithdrawalStatus(w["status"]),
                requested_at=from_iso(w["requested_at"]),  # type: ignore[arg-type]
                tx_ref=w.get("tx_ref"),
                completed_at=from_iso(w.get("completed_at")),
                failure_reason=w.get("failure_reason"),
            )
            for w in doc.get("withdrawals", [])
        ],
        bets=[
            BetRecord(
                bet_id=b["bet_id"],
                amount=int(b["amount"]),
                placed_at=from_iso(b["placed_at"]),  # type: ignore[arg-type]
                result=BetResult(b["result"]) if b.get("result") else None,
                pnl=b.get("pnl"),
                resolved_at=from_iso(b.get("resolved_at")),
            )
            for b in doc.get("bets", [])
        ],
    )


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class SqlLedgerStore:
    """PostgreSQL-backed store, one JSONB document per user."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load_all(self) -> dict[str, LedgerAccount]:
        async with self._session_factory() as db:
            result = await db.execute(_LOAD_ALL_SQL)
            rows = result.fetchall()
        accounts: dict[str, LedgerAccount] = {}
        for row in rows:
            doc = row.document
            if isinstance(doc, str):
                doc = json.loads(doc)
            accounts[row.user_id] = account_from_document(doc)
        return accounts

    async def save_account(self, account: LedgerAccount) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                await db.execute(
                    _UPSERT_SQL,
                    {
                        "user_id": account.user_id,
                        "document": json.dumps(account_to_document(account)),
                    },
                )


class InMemoryLedgerStore:
    """Process-local store for paper mode and tests. Keeps snapshots, not references."""

    def __init__(self) -> None:
        self._accounts: dict[str, LedgerAccount] = {}

    async def load_all(self) -> dict[str, LedgerAccount]:
        return {uid: acc.clone() for uid, acc in self._accounts.items()}

    async def save_account(self, account: LedgerAccount) -> None:
        self._accounts[account.user_id] = account.clone()
