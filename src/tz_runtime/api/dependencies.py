"""FastAPI dependency: the process-wide TradingRuntime built in the lifespan."""

from fastapi import Request

from src.tz_common.errors import InternalError
from src.tz_runtime.application.runtime import TradingRuntime


def get_runtime(request: Request) -> TradingRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise InternalError("Trading runtime is not initialised")
    return runtime
