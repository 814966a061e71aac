"""
YAML deck files.

A deck is a mapping with an optional default `user_id` and a `cards` list:

    user_id: alice
    cards:
      - id: spanish-001
        next_review: 2026-01-05T09:00:00+00:00
        modes: [standard, voice]
        tags: [spanish]
        schedule:
          stability: 2.5
          difficulty: 0.4
          review_count: 3

Missing schedule fields take their defaults; timestamps without an offset
are read as UTC.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from cadence.domain.constants import DEFAULT_DIFFICULTY, DEFAULT_STABILITY
from cadence.domain.errors import CadenceError
from cadence.domain.models import Card, CardSchedule, StudyMode

from .memory import InMemoryCardRepository

logger = logging.getLogger(__name__)


class DeckFormatError(CadenceError):
    def __init__(self, path: Path, problem: str):
        self.path = path
        super().__init__(f"Invalid deck {path}: {problem}")


def _to_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        raise ValueError(f"not a timestamp: {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _card_from_dict(raw: dict[str, Any], default_user: str | None) -> Card:
    if not isinstance(raw, dict):
        raise TypeError(f"expected a mapping, got {raw!r}")
    user_id = raw.get("user_id", default_user)
    if not user_id:
        raise ValueError(f"card {raw.get('id')!r} has no user_id")

    sched = raw.get("schedule") or {}
    if not isinstance(sched, dict):
        raise TypeError(f"schedule of card {raw.get('id')!r} is not a mapping")
    schedule = CardSchedule(
        stability=float(sched.get("stability", DEFAULT_STABILITY)),
        difficulty=float(sched.get("difficulty", DEFAULT_DIFFICULTY)),
        review_count=int(sched.get("review_count", 0)),
        last_review=_to_datetime(sched.get("last_review")),
        last_rating=int(sched.get("last_rating", 0)),
        retention_score=float(sched.get("retention_score", 0.0)),
        streak_count=int(sched.get("streak_count", 0)),
    )

    next_review = _to_datetime(raw.get("next_review")) or datetime.now(timezone.utc)
    modes = [StudyMode(m) for m in raw.get("modes", [StudyMode.STANDARD.value])]

    return Card(
        id=str(raw["id"]),
        user_id=str(user_id),
        next_review=next_review,
        schedule=schedule,
        compatible_modes=modes,
        tags=[str(t) for t in raw.get("tags", [])],
        version=int(raw.get("version", 0)),
    )


def _card_to_dict(card: Card) -> dict[str, Any]:
    s = card.schedule
    return {
        "id": card.id,
        "user_id": card.user_id,
        "next_review": card.next_review.isoformat(),
        "modes": [m.value for m in card.compatible_modes],
        "tags": list(card.tags),
        "version": card.version,
        "schedule": {
            "stability": s.stability,
            "difficulty": s.difficulty,
            "review_count": s.review_count,
            "last_review": s.last_review.isoformat() if s.last_review else None,
            "last_rating": s.last_rating,
            "retention_score": s.retention_score,
            "streak_count": s.streak_count,
        },
    }


def load_deck(path: Path) -> InMemoryCardRepository:
    """
    Read a deck file into an in-memory card repository.

    Raises:
        DeckFormatError: If the file is not valid YAML or a card is malformed.
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise DeckFormatError(path, str(e)) from e

    if not isinstance(data, dict) or not isinstance(data.get("cards", []), list):
        raise DeckFormatError(path, "expected a mapping with a 'cards' list")

    cards = []
    for i, raw in enumerate(data.get("cards", [])):
        try:
            cards.append(_card_from_dict(raw, data.get("user_id")))
        except (KeyError, TypeError, ValueError) as e:
            raise DeckFormatError(path, f"card #{i}: {e}") from e

    logger.info(f"Loaded {len(cards)} cards from {path}")
    return InMemoryCardRepository(cards)


def dump_deck(cards: InMemoryCardRepository | list[Card], path: Path) -> None:
    """Write cards back to a deck file, sorted by id."""
    if isinstance(cards, InMemoryCardRepository):
        cards = cards.all_cards()

    data = {"cards": [_card_to_dict(c) for c in sorted(cards, key=lambda c: c.id)]}
    Path(path).write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )
    logger.debug(f"Wrote {len(cards)} cards to {path}")
