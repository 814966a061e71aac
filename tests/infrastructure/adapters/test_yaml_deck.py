from datetime import datetime, timezone

import pytest
import yaml

from cadence.domain.models import StudyMode
from cadence.infrastructure.adapters.yaml_deck import DeckFormatError, dump_deck, load_deck

DECK = """
user_id: alice
cards:
  - id: es-001
    next_review: 2026-01-05T09:00:00+00:00
    modes: [standard, voice]
    tags: [spanish]
    schedule:
      stability: 2.5
      difficulty: 0.4
      review_count: 3
      retention_score: 0.6
  - id: es-002
    user_id: bob
    next_review: "2026-01-06 12:30:00"
"""


@pytest.fixture
def deck_file(tmp_path):
    path = tmp_path / "deck.yaml"
    path.write_text(DECK)
    return path


@pytest.mark.asyncio
async def test_load_deck(deck_file):
    repo = load_deck(deck_file)

    card = await repo.find_card_by_id("es-001")
    assert card.user_id == "alice"
    assert card.compatible_modes == [StudyMode.STANDARD, StudyMode.VOICE]
    assert card.tags == ["spanish"]
    assert card.schedule.stability == 2.5
    assert card.schedule.difficulty == 0.4
    assert card.schedule.review_count == 3
    assert card.schedule.retention_score == 0.6
    assert card.next_review == datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    other = await repo.find_card_by_id("es-002")
    assert other.user_id == "bob"
    assert other.compatible_modes == [StudyMode.STANDARD]
    assert other.schedule.stability == 0.5
    assert other.schedule.difficulty == 0.3
    # Timestamps without an offset are UTC
    assert other.next_review == datetime(2026, 1, 6, 12, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_dump_and_reload_keeps_cards(deck_file, tmp_path):
    out = tmp_path / "out.yaml"
    dump_deck(load_deck(deck_file), out)

    data = yaml.safe_load(out.read_text())
    assert [c["id"] for c in data["cards"]] == ["es-001", "es-002"]

    reloaded = load_deck(out)
    card = await reloaded.find_card_by_id("es-001")
    assert card.schedule.stability == 2.5
    assert card.tags == ["spanish"]
    assert card.next_review == datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def test_empty_deck(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_deck(path).all_cards() == []


@pytest.mark.parametrize(
    "content, problem",
    [
        ("cards: [unclosed", ""),
        ("- just\n- a list\n", "mapping"),
        ("cards:\n  - next_review: 2026-01-01\n    user_id: a\n", "card #0"),
        ("cards:\n  - id: x\n", "no user_id"),
        ("user_id: a\ncards:\n  - id: x\n    modes: [telepathy]\n", "card #0"),
        ("cards: [foo]\n", "card #0: expected a mapping"),
        ("user_id: a\ncards:\n  - id: x\n    schedule: 5\n", "not a mapping"),
    ],
)
def test_malformed_deck(tmp_path, content, problem):
    path = tmp_path / "bad.yaml"
    path.write_text(content)

    with pytest.raises(DeckFormatError) as exc:
        load_deck(path)
    assert problem in str(exc.value)
    assert exc.value.path == path
