"""FundsService — deposits and withdrawals against the chain.

Deposit:  replay check -> chain verification -> tolerance check -> credit
          the ACTUAL verified amount.
Withdraw: request (debit, PENDING) -> transfer -> complete, or cancel
          (re-credit) and raise TransferFailedError.
"""

import logging

from src.tz_common.errors import (
    AmountMismatchError,
    AppError,
    DepositVerificationError,
    DuplicateDepositError,
    TransferFailedError,
)
from src.tz_common.money import micro_to_display, within_tolerance
from src.tz_common.timeouts import call_with_timeout
from src.tz_ledger.application.service import LedgerService
from src.tz_ledger.domain.models import LedgerAccount, Withdrawal
from src.tz_venue.domain.ports import ChainVerifier, TransferExecutor

logger = logging.getLogger(__name__)


class FundsService:
    def __init__(
        self,
        ledger: LedgerService,
        verifier: ChainVerifier,
        transfers: TransferExecutor,
        custody_account: str,
        tolerance_bps: int = 100,
        call_timeout: float = 15.0,
    ) -> None:
        self._ledger = ledger
        self._verifier = verifier
        self._transfers = transfers
        self._custody_account = custody_account
        self._tolerance_bps = tolerance_bps
        self._call_timeout = call_timeout

    async def deposit(self, user_id: str, tx_ref: str, expected_amount: int) -> LedgerAccount:
        if self._ledger.has_deposit(tx_ref):
            raise DuplicateDepositError(tx_ref)

        result = await call_with_timeout(
            self._verifier.verify_transfer(tx_ref, expected_amount, self._custody_account),
            self._call_timeout,
            "deposit verification",
        )
        if not result.verified:
            raise DepositVerificationError(tx_ref, result.error or "unverified")
        if not within_tolerance(result.actual_amount, expected_amount, self._tolerance_bps):
            raise AmountMismatchError(expected_amount, result.actual_amount)

        # Credit re-checks the replay under the deposit lock
        return await self._ledger.credit_verified_deposit(user_id, tx_ref, result.actual_amount)

    async def withdraw(self, user_id: str, amount: int, destination: str) -> Withdrawal:
        withdrawal_id = await self._ledger.request_withdrawal(user_id, amount, destination)
        try:
            tx_ref = await call_with_timeout(
                self._transfers.send_funds(destination, amount),
                self._call_timeout,
                "withdrawal transfer",
            )
        except Exception as e:
            detail = e.message if isinstance(e, AppError) else str(e)
            logger.error(
                "Withdrawal %s of %s to %s failed: %s",
                withdrawal_id,
                micro_to_display(amount),
                destination,
                detail,
            )
            await self._ledger.cancel_withdrawal(user_id, withdrawal_id, detail)
            raise TransferFailedError(detail) from e

        return await self._ledger.complete_withdrawal(user_id, withdrawal_id, tx_ref)
