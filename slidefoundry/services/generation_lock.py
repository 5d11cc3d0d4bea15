"""
SlideFoundry - Generation Lock
==============================

Per-user mutual exclusion for deck generation. A second request for a user
whose generation is still in flight fails immediately instead of queuing.
Check-and-set happens without an await in between, so it is atomic on the
event loop.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Optional

import structlog

from slidefoundry.core.config import settings
from slidefoundry.core.errors import DeckError, ErrorCode
from slidefoundry.utils.async_helpers import create_safe_task, run_periodically

logger = structlog.get_logger(__name__)


class GenerationLockStore:
    """In-memory map of user id -> generation start time."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._locks: Dict[str, float] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, user_id: str) -> bool:
        return user_id in self._locks

    def started_at(self, user_id: str) -> float:
        return self._locks[user_id]

    def acquire(self, user_id: str) -> None:
        """Take the lock for user_id or raise GENERATION_BUSY."""
        if user_id in self._locks:
            logger.info(
                "Generation already in progress",
                user_id=user_id,
                running_seconds=round(self._clock() - self.started_at(user_id), 1),
            )
            raise DeckError(
                ErrorCode.GENERATION_BUSY,
                "A deck is already being generated for this account; wait for it to finish",
            )
        self._locks[user_id] = self._clock()

    def release(self, user_id: str) -> None:
        self._locks.pop(user_id, None)

    def sweep(self, max_age_seconds: float) -> int:
        """Drop locks older than max_age_seconds. Returns how many were removed."""
        cutoff = self._clock() - max_age_seconds
        stale = [user_id for user_id, started in self._locks.items() if started < cutoff]
        for user_id in stale:
            del self._locks[user_id]
        if stale:
            logger.warning("Swept stale generation locks", count=len(stale))
        return len(stale)

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        """Hold the lock for the duration of the block; always released."""
        self.acquire(user_id)
        try:
            yield
        finally:
            self.release(user_id)

    def start_sweeper(
        self,
        max_age_seconds: Optional[float] = None,
        interval_seconds: Optional[float] = None,
    ) -> asyncio.Task:
        """Sweep stale locks in the background until stop_sweeper is awaited."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        max_age = max_age_seconds if max_age_seconds is not None else settings.GENERATION_LOCK_MAX_AGE_SECONDS
        interval = (
            interval_seconds if interval_seconds is not None else settings.GENERATION_LOCK_SWEEP_INTERVAL_SECONDS
        )
        self._sweeper = create_safe_task(
            run_periodically(lambda: self.sweep(max_age), interval, task_name="generation_lock_sweep"),
            name="generation_lock_sweep",
        )
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
