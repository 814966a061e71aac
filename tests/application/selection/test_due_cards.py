from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from conftest import NOW, make_card

from cadence.application.selection.due_cards import DueCardSelector, priority_key
from cadence.domain.models import StudyMode
from cadence.infrastructure.adapters.memory import InMemoryCardRepository


@pytest.fixture
def selector(cards):
    return DueCardSelector(cards)


@pytest.mark.asyncio
async def test_select_due_orders_weakest_first_and_skips_retained(selector):
    due = await selector.select_due("alice", StudyMode.STANDARD, 10)

    # c-strong is at 0.9 retention, above the 0.85 target
    assert [c.id for c in due] == ["c-weak", "c-mid"]


@pytest.mark.asyncio
async def test_select_due_is_idempotent(selector):
    first = await selector.select_due("alice", StudyMode.STANDARD, 10)
    second = await selector.select_due("alice", StudyMode.STANDARD, 10)
    assert [c.id for c in first] == [c.id for c in second]


@pytest.mark.asyncio
async def test_select_due_respects_limit(selector):
    due = await selector.select_due("alice", StudyMode.STANDARD, 1)
    assert [c.id for c in due] == ["c-weak"]


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, -3])
async def test_select_due_non_positive_limit_returns_nothing(selector, limit):
    assert await selector.select_due("alice", StudyMode.STANDARD, limit) == []


@pytest.mark.asyncio
async def test_select_due_filters_mode_and_future_cards():
    repo = InMemoryCardRepository(
        [
            make_card("voice-ok", modes=(StudyMode.VOICE,)),
            make_card("standard-only", modes=(StudyMode.STANDARD,)),
            make_card("future", next_review=NOW + timedelta(days=3650)),
        ]
    )
    selector = DueCardSelector(repo)

    due = await selector.select_due("alice", StudyMode.VOICE, 10)
    assert [c.id for c in due] == ["voice-ok"]


@pytest.mark.asyncio
async def test_select_due_uses_configured_target(cards):
    selector = DueCardSelector(cards, retention_target=0.95)
    due = await selector.select_due("alice", StudyMode.STANDARD, 10)
    assert [c.id for c in due] == ["c-weak", "c-mid", "c-strong"]


@pytest.mark.asyncio
async def test_select_due_queries_a_candidate_window():
    repo = AsyncMock()
    repo.find_due_cards.return_value = []
    selector = DueCardSelector(repo, candidate_window=50)

    await selector.select_due("alice", StudyMode.STANDARD, 5)
    repo.find_due_cards.assert_awaited_once_with(
        "alice", StudyMode.STANDARD, 50, max_retention=0.85
    )

    await selector.select_due("alice", StudyMode.STANDARD, 80)
    assert repo.find_due_cards.await_args.args[2] == 80


@pytest.mark.asyncio
async def test_weak_cards_behind_a_retained_backlog_are_selected():
    retained = [
        make_card(f"r{i}", retention=0.95, next_review=NOW - timedelta(days=10))
        for i in range(200)
    ]
    weak = [
        make_card(f"w{i}", retention=0.1, next_review=NOW - timedelta(days=1)) for i in range(5)
    ]
    selector = DueCardSelector(InMemoryCardRepository(retained + weak))

    due = await selector.select_due("alice", StudyMode.STANDARD, 20)
    assert [c.id for c in due] == ["w0", "w1", "w2", "w3", "w4"]


def test_priority_key_tie_breaks():
    low_stability = make_card("a", retention=0.5, stability=1.0)
    high_stability = make_card("b", retention=0.5, stability=2.0)
    more_reviews = make_card("c", retention=0.5, stability=1.0, review_count=9)

    ordered = sorted([high_stability, low_stability, more_reviews], key=priority_key)
    assert [c.id for c in ordered] == ["c", "a", "b"]


def _repo_with_retention(*scores: float) -> InMemoryCardRepository:
    return InMemoryCardRepository(
        [make_card(f"c{i}", retention=r) for i, r in enumerate(scores)]
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "scores, standard, voice",
    [
        ((0.95, 0.93), 30, 21),
        ((0.8, 0.75), 20, 14),
        ((0.9, 0.9), 20, 14),
        ((0.7,), 20, 14),
        ((0.2, 0.6), 15, 10),
        ((), 15, 10),
    ],
)
async def test_optimal_batch_size(scores, standard, voice):
    selector = DueCardSelector(_repo_with_retention(*scores))

    assert await selector.optimal_batch_size("alice", StudyMode.STANDARD) == standard
    assert await selector.optimal_batch_size("alice", StudyMode.QUIZ) == standard
    assert await selector.optimal_batch_size("alice", StudyMode.VOICE) == voice
