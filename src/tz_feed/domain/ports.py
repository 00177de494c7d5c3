"""Price feed port."""

from collections.abc import AsyncIterator
from typing import Protocol

from src.tz_position.domain.models import PriceSample


class PriceFeed(Protocol):
    def stream(self) -> AsyncIterator[PriceSample]:
        """Yield samples until cancelled. Owns its own reconnection."""
        ...
