from datetime import datetime, timedelta, timezone

import pytest

from cadence.application.config import AppConfig
from cadence.domain.models import (
    Card,
    CardSchedule,
    FsrsProgress,
    SessionPerformance,
    SessionSettings,
    StudyMode,
    StudySession,
)
from cadence.infrastructure.adapters.memory import InMemoryCardRepository, InMemorySessionHistory

# Fixed reference time; cards scheduled before it are due in every test run.
NOW = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable UTC clock for the session manager."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_card(
    card_id: str,
    user_id: str = "alice",
    retention: float = 0.0,
    stability: float = 0.5,
    review_count: int = 0,
    modes: tuple[StudyMode, ...] = (StudyMode.STANDARD, StudyMode.VOICE),
    next_review: datetime = NOW - timedelta(days=1),
) -> Card:
    return Card(
        id=card_id,
        user_id=user_id,
        next_review=next_review,
        schedule=CardSchedule(
            stability=stability,
            review_count=review_count,
            retention_score=retention,
        ),
        compatible_modes=list(modes),
    )


def make_session(
    session_id: str,
    user_id: str = "alice",
    start: datetime = NOW,
    total: int = 10,
    correct: int = 8,
    confidence: float = 1.0,
    minutes: float = 10.0,
    voice: bool = False,
) -> StudySession:
    """A completed session as stored in the history."""
    mode = StudyMode.VOICE if voice else StudyMode.STANDARD
    return StudySession(
        id=session_id,
        user_id=user_id,
        mode=mode,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        settings=SessionSettings.for_mode(mode),
        voice_enabled=voice,
        performance=SessionPerformance(
            total_cards=total,
            correct_count=correct,
            average_confidence=confidence,
            time_spent=minutes * 60,
            fsrs_progress=FsrsProgress(),
        ),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cards():
    return InMemoryCardRepository(
        [
            make_card("c-weak", retention=0.2, stability=0.5),
            make_card("c-mid", retention=0.5, stability=2.0),
            make_card("c-strong", retention=0.9, stability=8.0),
            make_card("c-bob", user_id="bob", retention=0.1),
        ]
    )


@pytest.fixture
def history():
    return InMemorySessionHistory()


@pytest.fixture
def config(tmp_path, monkeypatch):
    """Config isolated from the user's TOML files and environment."""
    monkeypatch.setattr(
        "cadence.application.config.CONFIG_FILES", [tmp_path / "missing.toml"]
    )
    for var in ("CADENCE_SESSION_TIMEOUT_SECONDS", "CADENCE_DEFAULT_TIER", "CADENCE_PORT"):
        monkeypatch.delenv(var, raising=False)
    return AppConfig()
