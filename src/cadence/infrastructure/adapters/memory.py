"""
In-memory repositories.

Implements the CardRepository and SessionHistoryRepository ports inside the
process. Used by the CLI (seeded from a YAML deck), the server when no
external store is wired, and the tests.
"""

import asyncio
import copy
import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from cadence.domain.errors import CardNotFoundError, ConcurrentUpdateError
from cadence.domain.models import Card, CompletionResult, ScheduleUpdate, StudyMode, StudySession
from cadence.domain.ports import CardRepository, SessionHistoryRepository

logger = logging.getLogger(__name__)


class InMemoryCardRepository(CardRepository):
    """
    Card store with optimistic concurrency.

    Every persisted review bumps the card version; a write carrying a stale
    version raises ConcurrentUpdateError instead of overwriting the newer state.
    Cards are copied on the way in and out so callers never share state.
    """

    def __init__(self, cards: Iterable[Card] = ()):
        self._cards: dict[str, Card] = {}
        self._write_lock = asyncio.Lock()
        for card in cards:
            self.add(card)

    def add(self, card: Card) -> None:
        self._cards[card.id] = copy.deepcopy(card)

    def all_cards(self) -> list[Card]:
        return [copy.deepcopy(c) for c in self._cards.values()]

    async def find_card_by_id(self, card_id: str) -> Card | None:
        card = self._cards.get(card_id)
        return copy.deepcopy(card) if card else None

    async def find_due_cards(
        self,
        user_id: str,
        mode: StudyMode,
        limit: int,
        now: datetime | None = None,
        max_retention: float | None = None,
    ) -> list[Card]:
        if now is None:
            now = datetime.now(timezone.utc)
        mode = StudyMode(mode)

        due = [
            c
            for c in self._cards.values()
            if c.user_id == user_id and mode in c.compatible_modes and c.next_review <= now
        ]
        if max_retention is not None:
            due = [c for c in due if c.schedule.retention_score < max_retention]
        due.sort(key=lambda c: (c.next_review, c.id))
        return [copy.deepcopy(c) for c in due[:limit]]

    async def find_cards_by_user(self, user_id: str) -> list[Card]:
        return [copy.deepcopy(c) for c in self._cards.values() if c.user_id == user_id]

    async def persist_card_after_review(
        self,
        card_id: str,
        update: ScheduleUpdate,
        expected_version: int,
    ) -> Card:
        async with self._write_lock:
            card = self._cards.get(card_id)
            if card is None:
                raise CardNotFoundError(card_id)
            if card.version != expected_version:
                raise ConcurrentUpdateError(card_id, expected_version, card.version)

            card.schedule = update.schedule
            card.next_review = update.next_review
            card.version += 1

            logger.debug(f"Persisted card {card_id} v{card.version} next={card.next_review}")
            return copy.deepcopy(card)


class InMemorySessionHistory(SessionHistoryRepository):
    """Completed sessions kept in a list; archived results are also retained."""

    def __init__(self, sessions: Iterable[StudySession] = ()):
        self._sessions: list[StudySession] = [copy.deepcopy(s) for s in sessions]
        self.results: list[CompletionResult] = []

    async def get_sessions(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[StudySession]:
        return [
            copy.deepcopy(s)
            for s in self._sessions
            if s.user_id == user_id
            and (start is None or s.start_time >= start)
            and (end is None or s.start_time <= end)
        ]

    async def save_session(self, result: CompletionResult) -> None:
        self._sessions = [s for s in self._sessions if s.id != result.session.id]
        self._sessions.append(copy.deepcopy(result.session))
        self.results.append(result)
        logger.info(f"Archived session {result.session.id} for user={result.session.user_id}")
