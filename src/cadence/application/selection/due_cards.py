"""
Due-card selection for study sessions.

Builds the next study batch by:
1. Fetching due, mode-compatible candidates below the retention target
   from the card repository
2. Ordering them weakest first (retention, then stability, then most reviewed)
"""

import logging
import math

from cadence.domain.constants import (
    DEFAULT_BATCH_SIZE,
    DUE_CANDIDATE_WINDOW,
    HIGH_RETENTION_BATCH_SIZE,
    HIGH_RETENTION_THRESHOLD,
    LOW_RETENTION_BATCH_SIZE,
    LOW_RETENTION_THRESHOLD,
    RETENTION_TARGET,
    VOICE_BATCH_FACTOR,
)
from cadence.domain.models import Card, StudyMode
from cadence.domain.ports import CardRepository

logger = logging.getLogger(__name__)


def priority_key(card: Card) -> tuple[float, float, int]:
    """Sort key: retention ascending, stability ascending, review count descending."""
    s = card.schedule
    return (s.retention_score, s.stability, -s.review_count)


class DueCardSelector:
    """
    Chooses which cards a session studies next.

    Depends on the CardRepository port; holds no state of its own, so
    repeated calls without intervening reviews return the same list.
    """

    def __init__(
        self,
        cards: CardRepository,
        retention_target: float = RETENTION_TARGET,
        candidate_window: int = DUE_CANDIDATE_WINDOW,
    ):
        self._cards = cards
        self._target = retention_target
        self._window = candidate_window

    async def select_due(self, user_id: str, mode: StudyMode | str, limit: int) -> list[Card]:
        """
        Return at most `limit` due cards, weakest first.

        Args:
            user_id: Owner of the cards.
            mode: Study mode the cards must be compatible with.
            limit: Maximum number of cards to return.
        """
        if limit <= 0:
            return []

        mode = StudyMode(mode)
        candidates = await self._cards.find_due_cards(
            user_id, mode, max(limit, self._window), max_retention=self._target
        )

        ordered = sorted(candidates, key=priority_key)
        selected = [c for c in ordered if c.schedule.retention_score < self._target]

        logger.debug(
            f"[due] user={user_id} mode={mode.value} candidates={len(candidates)} "
            f"below_target={len(selected)} limit={limit}"
        )
        return selected[:limit]

    async def optimal_batch_size(self, user_id: str, mode: StudyMode | str) -> int:
        """
        Recommended number of cards for a session, from the user's mean retention.

        Advisory only; session creation does not enforce it as a cap.
        """
        cards = await self._cards.find_cards_by_user(user_id)
        mean_retention = sum(c.schedule.retention_score for c in cards) / max(len(cards), 1)

        batch_size = DEFAULT_BATCH_SIZE
        if mean_retention > HIGH_RETENTION_THRESHOLD:
            batch_size = HIGH_RETENTION_BATCH_SIZE
        elif mean_retention < LOW_RETENTION_THRESHOLD:
            batch_size = LOW_RETENTION_BATCH_SIZE

        if StudyMode(mode) == StudyMode.VOICE:
            # round first so float noise cannot drop a whole card
            batch_size = math.floor(round(batch_size * VOICE_BATCH_FACTOR, 9))

        return batch_size
