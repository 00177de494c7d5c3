"""Settlement sweep guard port."""

from typing import Protocol


class SweepGuard(Protocol):
    async def try_acquire(self) -> bool:
        """Take the guard without waiting; False if a sweep is already running."""
        ...

    async def refresh(self) -> bool:
        """Extend the hold; False if the guard is no longer ours."""
        ...

    async def release(self) -> None: ...
