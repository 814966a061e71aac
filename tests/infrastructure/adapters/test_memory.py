from dataclasses import replace
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from conftest import NOW, make_card, make_session

from cadence.domain.errors import CardNotFoundError, ConcurrentUpdateError
from cadence.domain.models import CardSchedule, ScheduleUpdate, StudyMode
from cadence.infrastructure.adapters.memory import InMemoryCardRepository, InMemorySessionHistory


def _update(stability: float = 3.0) -> ScheduleUpdate:
    return ScheduleUpdate(
        schedule=CardSchedule(stability=stability, review_count=1),
        next_review=NOW + timedelta(days=2),
    )


@pytest.mark.asyncio
async def test_find_due_cards_filters_and_orders():
    repo = InMemoryCardRepository(
        [
            make_card("late", next_review=NOW - timedelta(hours=1)),
            make_card("early", next_review=NOW - timedelta(days=3)),
            make_card("future", next_review=NOW + timedelta(days=1)),
            make_card("standard-only", modes=(StudyMode.STANDARD,)),
            make_card("other-user", user_id="bob"),
        ]
    )

    due = await repo.find_due_cards("alice", StudyMode.VOICE, 10, now=NOW)
    assert [c.id for c in due] == ["early", "late"]

    due = await repo.find_due_cards("alice", "voice", 1, now=NOW)
    assert [c.id for c in due] == ["early"]


@pytest.mark.asyncio
async def test_find_due_cards_drops_retained_before_limit():
    repo = InMemoryCardRepository(
        [
            make_card("known", retention=0.9, next_review=NOW - timedelta(days=3)),
            make_card("edge", retention=0.85, next_review=NOW - timedelta(days=2)),
            make_card("weak", retention=0.3, next_review=NOW - timedelta(days=1)),
        ]
    )

    due = await repo.find_due_cards("alice", StudyMode.STANDARD, 1, now=NOW, max_retention=0.85)
    assert [c.id for c in due] == ["weak"]


@pytest.mark.asyncio
async def test_persist_bumps_version(cards):
    card = await cards.find_card_by_id("c-weak")

    updated = await cards.persist_card_after_review("c-weak", _update(), card.version)

    assert updated.version == card.version + 1
    assert updated.schedule.stability == 3.0
    assert updated.next_review == NOW + timedelta(days=2)
    assert (await cards.find_card_by_id("c-weak")).version == 1


@pytest.mark.asyncio
async def test_persist_with_stale_version_is_rejected(cards):
    await cards.persist_card_after_review("c-weak", _update(3.0), 0)

    with pytest.raises(ConcurrentUpdateError) as exc:
        await cards.persist_card_after_review("c-weak", _update(9.0), 0)

    assert exc.value.expected_version == 0
    assert exc.value.actual_version == 1
    stored = await cards.find_card_by_id("c-weak")
    assert stored.schedule.stability == 3.0


@pytest.mark.asyncio
async def test_persist_unknown_card(cards):
    with pytest.raises(CardNotFoundError):
        await cards.persist_card_after_review("missing", _update(), 0)


@pytest.mark.asyncio
async def test_returned_cards_are_copies(cards):
    card = await cards.find_card_by_id("c-weak")
    card.tags.append("mutated")

    assert (await cards.find_card_by_id("c-weak")).tags == []
    assert await cards.find_card_by_id("missing") is None


@pytest.mark.asyncio
async def test_find_cards_by_user(cards):
    alice = await cards.find_cards_by_user("alice")
    assert sorted(c.id for c in alice) == ["c-mid", "c-strong", "c-weak"]
    assert await cards.find_cards_by_user("nobody") == []


@pytest.mark.asyncio
async def test_session_history_range_and_save():
    history = InMemorySessionHistory(
        [
            make_session("old", start=NOW - timedelta(days=10)),
            make_session("recent", start=NOW - timedelta(days=1)),
            make_session("bob", user_id="bob", start=NOW),
        ]
    )

    recent = await history.get_sessions("alice", start=NOW - timedelta(days=2), end=NOW)
    assert [s.id for s in recent] == ["recent"]
    assert len(await history.get_sessions("alice")) == 2

    result = MagicMock()
    result.session = make_session("new", start=NOW)
    await history.save_session(result)
    # Saving the same session again replaces it
    result.session = replace(result.session, end_time=NOW + timedelta(hours=1))
    await history.save_session(result)

    sessions = await history.get_sessions("alice")
    assert [s.id for s in sessions] == ["old", "recent", "new"]
    assert sessions[-1].end_time == NOW + timedelta(hours=1)
    assert len(history.results) == 2
