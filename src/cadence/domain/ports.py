"""
Ports (interfaces) for the collaborators the core depends on.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime

from .models import Card, CompletionResult, ScheduleUpdate, StudyMode, StudySession


class CardRepository(ABC):
    """
    Port for reading cards and writing back their schedules.

    Implementations:
        - InMemoryCardRepository: process-local store, optionally seeded from a YAML deck.
    """

    @abstractmethod
    async def find_card_by_id(self, card_id: str) -> Card | None:
        """Return the card, or None if it does not exist."""
        pass

    @abstractmethod
    async def find_due_cards(
        self,
        user_id: str,
        mode: StudyMode,
        limit: int,
        now: datetime | None = None,
        max_retention: float | None = None,
    ) -> list[Card]:
        """
        Fetch cards of the user compatible with the mode and due at or before now.

        Args:
            max_retention: When set, only cards with a retention score strictly
                below it are returned. Applied before `limit`.

        Returns:
            At most `limit` cards in a deterministic order (earliest due first).
        """
        pass

    @abstractmethod
    async def find_cards_by_user(self, user_id: str) -> list[Card]:
        pass

    @abstractmethod
    async def persist_card_after_review(
        self,
        card_id: str,
        update: ScheduleUpdate,
        expected_version: int,
    ) -> Card:
        """
        Atomically write the reviewed schedule.

        Args:
            card_id: The card to update.
            update: New schedule fields and next review time.
            expected_version: Version the caller read; the write is rejected
                with ConcurrentUpdateError if the stored card moved on.

        Returns:
            The stored card with its version incremented.
        """
        pass


class SessionHistoryRepository(ABC):
    """Port for completed sessions, used for streaks, reports and archiving."""

    @abstractmethod
    async def get_sessions(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[StudySession]:
        """Completed sessions of the user whose start time lies in [start, end]."""
        pass

    @abstractmethod
    async def save_session(self, result: CompletionResult) -> None:
        pass


class SessionStore(ABC):
    """
    Port for the table of active sessions.

    All mutations of one session id must happen while holding lock(session_id).
    """

    @abstractmethod
    def get(self, session_id: str) -> StudySession | None:
        pass

    @abstractmethod
    def put(self, session: StudySession) -> None:
        pass

    @abstractmethod
    def delete(self, session_id: str) -> None:
        pass

    @abstractmethod
    def ids(self) -> list[str]:
        pass

    @abstractmethod
    def lock(self, session_id: str) -> asyncio.Lock:
        pass
