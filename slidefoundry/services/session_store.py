"""
SlideFoundry - Session Store
============================

In-memory auth sessions with a fixed TTL and an hourly background sweep of
expired entries. Independent of generation locking.
"""

import asyncio
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import structlog

from slidefoundry.core.config import settings
from slidefoundry.utils.async_helpers import create_safe_task, run_periodically

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    created_at: float
    expires_at: float


class SessionStore:
    """Token -> Session map with lazy and periodic expiry."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.SESSION_TTL_SECONDS
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, user_id: str) -> Session:
        now = self._clock()
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        self._sessions[session.token] = session
        return session

    def get(self, token: str) -> Optional[Session]:
        """Live session for token; expired sessions are removed and yield None."""
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.expires_at <= self._clock():
            del self._sessions[token]
            return None
        return session

    def revoke(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    def sweep(self) -> int:
        now = self._clock()
        expired = [token for token, session in self._sessions.items() if session.expires_at <= now]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info("Pruned expired sessions", count=len(expired), remaining=len(self._sessions))
        return len(expired)

    def start_sweeper(self, interval_seconds: Optional[float] = None) -> asyncio.Task:
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        interval = interval_seconds if interval_seconds is not None else settings.SESSION_SWEEP_INTERVAL_SECONDS
        self._sweeper = create_safe_task(
            run_periodically(self.sweep, interval, task_name="session_sweep"),
            name="session_sweep",
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
