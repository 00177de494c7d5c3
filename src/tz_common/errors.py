"""Unified error codes and custom exceptions.

Error code ranges:
  2xxx: Ledger/Account
  5xxx: Position/Bet
  6xxx: Settlement/Venue
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 2xxx: Ledger/Account ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} micro, available {available} micro",
            422,
        )


class DuplicateDepositError(AppError):
    def __init__(self, tx_ref: str) -> None:
        super().__init__(2002, f"Deposit already credited: {tx_ref}", 409)


class AmountMismatchError(AppError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            2003,
            f"Amount mismatch: expected {expected} micro, got {actual} micro",
            422,
        )


class DepositVerificationError(AppError):
    def __init__(self, tx_ref: str, detail: str) -> None:
        super().__init__(2004, f"Deposit {tx_ref} could not be verified: {detail}", 422)


class WithdrawalNotFoundError(AppError):
    def __init__(self, withdrawal_id: str) -> None:
        super().__init__(2005, f"Withdrawal not found: {withdrawal_id}", 404)


class WithdrawalNotPendingError(AppError):
    def __init__(self, withdrawal_id: str, status: str) -> None:
        super().__init__(
            2006, f"Withdrawal {withdrawal_id} in status {status} is not pending", 409
        )


class TransferFailedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2007, f"Withdrawal transfer failed: {detail}", 502)


class BetNotFoundError(AppError):
    def __init__(self, bet_id: str) -> None:
        super().__init__(2008, f"Bet not found: {bet_id}", 404)


class BetAlreadyResolvedError(AppError):
    def __init__(self, bet_id: str) -> None:
        super().__init__(2009, f"Bet already resolved: {bet_id}", 409)


# --- 5xxx: Position/Bet ---

class InvalidBetError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5001, f"Invalid bet: {detail}", 422)


class PositionNotFoundError(AppError):
    def __init__(self, position_id: str) -> None:
        super().__init__(5002, f"Position not found: {position_id}", 404)


class PriceUnavailableError(AppError):
    def __init__(self, detail: str = "No price data available yet") -> None:
        super().__init__(5003, detail, 503)


class TradeExecutionError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5004, f"Trade execution failed, bet refunded: {detail}", 502)


class InvalidTransitionError(AppError):
    def __init__(self, position_id: str, detail: str) -> None:
        super().__init__(5005, f"Invalid transition for {position_id}: {detail}", 409)


# --- 6xxx: Settlement/Venue ---

class SettlementError(AppError):
    def __init__(self, position_id: str, detail: str) -> None:
        super().__init__(6001, f"Settlement failed for {position_id}: {detail}", 502)


class VenueError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6002, f"Venue error: {detail}", 502)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ExternalTimeoutError(AppError):
    def __init__(self, operation: str, seconds: float) -> None:
        super().__init__(9003, f"{operation} timed out after {seconds:g}s", 504)
