"""
Session Store - in-memory conversation sessions

Sessions live only in process memory and disappear on restart; the voter just
sends "Hi" again. A session idle longer than the timeout is treated as absent
the next time it is read. ``lock(user_id)`` serializes the processing of
messages from one user while different users run in parallel.
"""
import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional

from constituent_bot.core.logging import get_logger
from constituent_bot.core.validation import PhoneNumberValidator
from constituent_bot.domain.services.record_store import VoterIdentity
from constituent_bot.state_machine.states import (
    AwaitingId,
    DialogueState,
    Step,
    step_draft,
    step_identity,
)

logger = get_logger(__name__)

DEFAULT_IDLE_TIMEOUT_SECONDS = 30 * 60


@dataclass
class Session:
    user_id: str
    step: Step
    last_activity_at: float

    @property
    def state(self) -> DialogueState:
        return self.step.state

    @property
    def verified_identity(self) -> Optional[VoterIdentity]:
        return step_identity(self.step)

    @property
    def draft(self) -> dict[str, Any]:
        return step_draft(self.step)


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class SessionStore:
    """Session table keyed by the channel user id (the WhatsApp number)"""

    def __init__(
        self,
        idle_timeout_seconds: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.idle_timeout_seconds = idle_timeout_seconds
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, _KeyLock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, user_id: str) -> Session:
        """Fresh AWAITING_ID session, replacing any existing one"""
        session = Session(user_id=user_id, step=AwaitingId(), last_activity_at=self._clock())
        self._sessions[user_id] = session
        return session

    def get(self, user_id: str) -> Optional[Session]:
        """Live session for ``user_id``, refreshing its activity time.

        Returns None, and drops the entry, when the session has been idle past
        the timeout.
        """
        session = self._sessions.get(user_id)
        if session is None:
            return None

        now = self._clock()
        if self._is_expired(session, now):
            del self._sessions[user_id]
            logger.info(
                "Session expired",
                extra_data={
                    "phone": PhoneNumberValidator.mask(user_id),
                    "state": session.state.value,
                    "idle_seconds": round(now - session.last_activity_at, 1),
                }
            )
            return None

        session.last_activity_at = now
        return session

    def peek(self, user_id: str) -> Optional[Session]:
        """Live session for ``user_id`` without touching its activity time"""
        session = self._sessions.get(user_id)
        if session is None or self._is_expired(session, self._clock()):
            return None
        return session

    def save(self, user_id: str, step: Step) -> Session:
        """Replace the session's step, creating the entry if it was removed meanwhile"""
        session = self._sessions.get(user_id)
        if session is None:
            session = Session(user_id=user_id, step=step, last_activity_at=self._clock())
            self._sessions[user_id] = session
        else:
            session.step = step
            session.last_activity_at = self._clock()
        return session

    def delete(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def purge_expired(self) -> int:
        """Remove every idle session; returns how many were dropped"""
        now = self._clock()
        expired = [
            user_id for user_id, session in self._sessions.items()
            if self._is_expired(session, now)
        ]
        for user_id in expired:
            del self._sessions[user_id]
        if expired:
            logger.info("Purged idle sessions", extra_data={"count": len(expired)})
        return len(expired)

    @asynccontextmanager
    async def lock(self, user_id: str) -> AsyncIterator[None]:
        """Critical section for one user's messages.

        Entries are reference counted and removed once no task holds or
        waits on them, so the table does not grow with every number seen.
        """
        entry = self._locks.get(user_id)
        if entry is None:
            entry = self._locks[user_id] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(user_id, None)

    def _is_expired(self, session: Session, now: float) -> bool:
        return now - session.last_activity_at > self.idle_timeout_seconds
