"""Tests for tz_common.errors and tz_common.response."""

from src.tz_common.errors import (
    AppError,
    BetAlreadyResolvedError,
    DuplicateDepositError,
    ExternalTimeoutError,
    InsufficientBalanceError,
    PriceUnavailableError,
    TradeExecutionError,
    WithdrawalNotPendingError,
)
from src.tz_common.response import error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1, message="x"), Exception)


class TestSpecificErrors:
    def test_insufficient_balance(self) -> None:
        err = InsufficientBalanceError(required=10_000_000, available=3_000_000)
        assert err.code == 2001
        assert err.http_status == 422
        assert "10000000" in err.message
        assert "3000000" in err.message

    def test_duplicate_deposit(self) -> None:
        err = DuplicateDepositError("sig-1")
        assert err.code == 2002
        assert err.http_status == 409
        assert "sig-1" in err.message

    def test_bet_already_resolved(self) -> None:
        err = BetAlreadyResolvedError("bet_1")
        assert err.code == 2009
        assert err.http_status == 409

    def test_withdrawal_not_pending(self) -> None:
        err = WithdrawalNotPendingError("wd_1", "COMPLETED")
        assert err.code == 2006
        assert "COMPLETED" in err.message

    def test_price_unavailable(self) -> None:
        err = PriceUnavailableError()
        assert err.code == 5003
        assert err.http_status == 503

    def test_trade_execution(self) -> None:
        err = TradeExecutionError("venue down")
        assert err.code == 5004
        assert "refunded" in err.message

    def test_external_timeout(self) -> None:
        err = ExternalTimeoutError("venue open", 15.0)
        assert err.code == 9003
        assert err.http_status == 504
        assert "15s" in err.message


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": "abc"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "abc"}

    def test_error(self) -> None:
        resp = error_response(2001, "Insufficient balance")
        assert resp.code == 2001
        assert resp.data is None

    def test_serialization(self) -> None:
        d = success_response({"price": 142.1}).model_dump()
        for key in ("code", "message", "data", "timestamp", "request_id"):
            assert key in d
