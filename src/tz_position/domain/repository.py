"""Position repository Protocol — the persisted copy of the PositionStore."""

from typing import Protocol

from src.tz_position.domain.models import Position


class PositionRepositoryProtocol(Protocol):
    async def load_all(self) -> list[Position]: ...

    async def save(self, position: Position) -> None: ...
