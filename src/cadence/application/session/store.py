"""In-memory table of active sessions with one lock per session id."""

import asyncio

from cadence.domain.models import StudySession
from cadence.domain.ports import SessionStore


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: dict[str, StudySession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, session_id: str) -> StudySession | None:
        return self._sessions.get(session_id)

    def put(self, session: StudySession) -> None:
        self._sessions[session.id] = session

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        # The lock stays with its holder; a fresh one is created on next use.
        self._locks.pop(session_id, None)

    def ids(self) -> list[str]:
        return list(self._sessions)

    def lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock
