"""Ledger store Protocol — dependency inversion for testability.

The store is a plain keyed read/write of accounts. It is NOT assumed to be
transactional: LedgerService serializes writers per account itself.
"""

from typing import Protocol

from src.tz_ledger.domain.models import LedgerAccount


class LedgerStoreProtocol(Protocol):
    async def load_all(self) -> dict[str, LedgerAccount]: ...

    async def save_account(self, account: LedgerAccount) -> None: ...
