"""Bounded waits for calls that leave the process (venue, chain RPC, transfers)."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from src.tz_common.errors import ExternalTimeoutError

T = TypeVar("T")


async def call_with_timeout(awaitable: Awaitable[T], seconds: float, operation: str) -> T:
    """Await with a deadline; raises ExternalTimeoutError instead of hanging."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        raise ExternalTimeoutError(operation, seconds) from None
