"""
Study session lifecycle manager.

Owns the active-session table and the session state machine:

    active <-> paused
    active | paused -> completed

Every mutating operation on a session id runs under that session's lock,
so review counters are never updated by two coroutines at once. Sessions
of different users proceed concurrently.
"""

import asyncio
import copy
import logging
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime, timezone

from ulid import ULID

from cadence.application.scheduling.fsrs import apply_review, compute_schedule, tier_ceiling_days
from cadence.application.selection.due_cards import DueCardSelector
from cadence.application.stats.performance_analyzer import PerformanceAnalyzer
from cadence.domain.constants import (
    COMPLETED_SESSION_MEMORY,
    CORRECT_RATING,
    SESSION_TIMEOUT_SECONDS,
)
from cadence.domain.errors import (
    CardNotFoundError,
    InvalidTransitionError,
    SessionNotFoundError,
)
from cadence.domain.models import (
    CompletionResult,
    ReviewOutcome,
    ScheduleUpdate,
    SessionPerformance,
    SessionSettings,
    SessionStatus,
    StudyMode,
    StudySession,
    UserTier,
)
from cadence.domain.ports import CardRepository, SessionHistoryRepository, SessionStore

from .store import InMemorySessionStore
from .timeouts import InactivityTimers

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _running_mean(mean: float, count: int, value: float) -> float:
    return (mean * count + value) / (count + 1)


class StudySessionManager:
    """
    Creates, advances and completes study sessions.

    Follows Dependency Inversion: cards, history and the session table are
    ports; the scheduling math is the pure fsrs module.
    """

    def __init__(
        self,
        cards: CardRepository,
        history: SessionHistoryRepository,
        selector: DueCardSelector | None = None,
        analyzer: PerformanceAnalyzer | None = None,
        store: SessionStore | None = None,
        timeout_seconds: float = SESSION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            cards: Card storage port.
            history: Completed-session storage port.
            selector: Due-card selector; built over `cards` if not provided.
            analyzer: Performance analyzer; built over `history` if not provided.
            store: Active-session table; in-memory if not provided.
            timeout_seconds: Inactivity timeout after which a session completes itself.
            clock: Source of the current UTC time.
        """
        self._cards = cards
        self._history = history
        self._selector = selector or DueCardSelector(cards)
        self._analyzer = analyzer or PerformanceAnalyzer(history)
        self._store = store or InMemorySessionStore()
        self._timers = InactivityTimers(timeout_seconds, self._expire)
        self._now = clock or _utcnow
        self._completed: OrderedDict[str, None] = OrderedDict()

    @property
    def timers(self) -> InactivityTimers:
        return self._timers

    def active_session_ids(self) -> list[str]:
        return self._store.ids()

    async def create_session(
        self,
        user_id: str,
        mode: StudyMode | str,
        settings: SessionSettings | None = None,
        tier: UserTier | str | None = UserTier.FREE,
    ) -> StudySession:
        """
        Start a session with its initial batch of due cards.

        Args:
            user_id: The studying user.
            mode: standard, voice or quiz.
            settings: Frozen session settings; per-mode defaults if not provided.
            tier: Subscription tier of the user, kept for the whole session.
        """
        mode = StudyMode(mode)
        now = self._now()
        settings = settings or SessionSettings.for_mode(mode)

        batch_size = await self._selector.optimal_batch_size(user_id, mode)
        batch_size = min(batch_size, settings.max_cards_per_session)
        due = await self._selector.select_due(user_id, mode, batch_size)
        streak = await self._analyzer.analyze_study_streak(user_id, now=now)

        session = StudySession(
            id=str(ULID()),
            user_id=user_id,
            mode=mode,
            start_time=now,
            settings=settings,
            tier=UserTier.parse(tier),
            due_card_ids=[c.id for c in due],
            voice_enabled=mode == StudyMode.VOICE,
            performance=SessionPerformance(study_streak=streak.current_streak),
        )

        self._store.put(session)
        self._timers.arm(session.id)

        logger.info(
            f"Created session {session.id} for user={user_id} mode={mode.value} "
            f"batch={batch_size} due={len(due)}"
        )
        return copy.deepcopy(session)

    async def process_card_review(
        self,
        session_id: str,
        card_id: str,
        rating: int,
        confidence: float | None = None,
    ) -> ReviewOutcome:
        """
        Record one review: reschedule the card and update session counters.

        Sessions whose settings disable FSRS (quiz) only count the answer;
        the card keeps its schedule. Otherwise the card is written first;
        if the write fails the session is left
        untouched, so a review is either fully applied or not recorded.

        Args:
            session_id: Active session.
            card_id: Reviewed card (must belong to the session's user).
            rating: 0-5, validated by the caller.
            confidence: Optional answer confidence (0-1) from voice recognition.
        """
        async with self._lock_live(session_id, "review"):
            session = self._require(session_id, "review")
            if session.status != SessionStatus.ACTIVE:
                raise InvalidTransitionError(session_id, session.status.value, "review")

            card = await self._cards.find_card_by_id(card_id)
            if card is None or card.user_id != session.user_id:
                raise CardNotFoundError(card_id)

            now = self._now()
            result = None
            updated = card
            if session.settings.enable_fsrs:
                result = compute_schedule(
                    card.schedule, rating, session.tier, session.context(), now
                )
                update = ScheduleUpdate(
                    schedule=apply_review(card.schedule, rating, result, reviewed_at=now),
                    next_review=result.next_review,
                )
                updated = await self._cards.persist_card_after_review(
                    card_id, update, card.version
                )

            perf = session.performance
            count = perf.total_cards
            if card_id not in session.cards_studied:
                session.cards_studied.append(card_id)
            perf.total_cards = count + 1
            if rating >= CORRECT_RATING:
                perf.correct_count += 1
            if confidence is not None:
                perf.average_confidence = _running_mean(
                    perf.average_confidence, count, max(0.0, min(1.0, confidence))
                )

            if result is not None:
                p = perf.fsrs_progress
                ceiling = tier_ceiling_days(session.tier)
                p.average_stability = _running_mean(p.average_stability, count, result.stability)
                p.average_difficulty = _running_mean(
                    p.average_difficulty, count, result.difficulty
                )
                p.retention_rate = _running_mean(p.retention_rate, count, result.retention_score)
                p.interval_progress = _running_mean(
                    p.interval_progress, count, result.interval_days / ceiling
                )
            perf.time_spent = (now - session.start_time).total_seconds()
            session.performance = self._analyzer.analyze_session_performance(session)
            self._timers.arm(session_id)

            logger.debug(
                f"Session {session_id}: card={card_id} rating={rating} "
                f"next={updated.next_review.isoformat()} total={perf.total_cards}"
            )

            next_cards = await self._selector.select_due(session.user_id, session.mode, 1)
            return ReviewOutcome(
                session=copy.deepcopy(session),
                card=updated,
                next_card=next_cards[0] if next_cards else None,
            )

    async def pause_session(self, session_id: str) -> StudySession:
        async with self._lock_live(session_id, "pause"):
            session = self._require(session_id, "pause")
            if session.status != SessionStatus.ACTIVE:
                raise InvalidTransitionError(session_id, session.status.value, "pause")

            self._timers.disarm(session_id)
            now = self._now()
            session.performance.time_spent = (now - session.start_time).total_seconds()
            session.status = SessionStatus.PAUSED
            session.paused_at = now
            session.performance = self._analyzer.analyze_session_performance(session)

            logger.info(f"Paused session {session_id}")
            return copy.deepcopy(session)

    async def resume_session(self, session_id: str) -> StudySession:
        """
        Resume a paused session.

        start_time moves forward by the pause length so elapsed time excludes it.
        """
        async with self._lock_live(session_id, "resume"):
            session = self._require(session_id, "resume")
            if session.status != SessionStatus.PAUSED:
                raise InvalidTransitionError(session_id, session.status.value, "resume")

            now = self._now()
            if session.paused_at is not None:
                session.start_time += now - session.paused_at
            session.paused_at = None
            session.status = SessionStatus.ACTIVE
            self._timers.arm(session_id)
            session.performance = self._analyzer.analyze_session_performance(session)

            logger.info(f"Resumed session {session_id}")
            return copy.deepcopy(session)

    async def complete_session(self, session_id: str) -> CompletionResult:
        """
        Finish a session and build its streak analysis and report.

        The session leaves the active table; persisting the returned
        result is the caller's responsibility.
        """
        async with self._lock_live(session_id, "complete"):
            session = self._require(session_id, "complete")
            now = self._now()

            final = copy.deepcopy(session)
            if final.status == SessionStatus.ACTIVE:
                final.performance.time_spent = (now - final.start_time).total_seconds()
            final.status = SessionStatus.COMPLETED
            final.end_time = now
            final.paused_at = None
            final.performance = self._analyzer.analyze_session_performance(final)

            streak = await self._analyzer.analyze_study_streak(
                final.user_id, now=now, include=[final]
            )
            report = await self._analyzer.generate_performance_report(
                final.user_id, final.start_time, now, include=[final], now=now
            )

            self._timers.disarm(session_id)
            self._store.delete(session_id)
            self._remember_completed(session_id)

            logger.info(
                f"Completed session {session_id}: cards={final.performance.total_cards} "
                f"correct={final.performance.correct_count} streak={streak.current_streak}"
            )
            return CompletionResult(
                session=final,
                streak_analysis=streak,
                performance_report=report,
            )

    async def get_session_state(self, session_id: str) -> StudySession:
        """Freshly analyzed snapshot of a session; lifecycle state is not touched."""
        if self._store.get(session_id) is None:
            raise SessionNotFoundError(session_id)
        async with self._store.lock(session_id):
            session = self._store.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            snapshot = copy.deepcopy(session)
            if snapshot.status == SessionStatus.ACTIVE:
                snapshot.performance.time_spent = (
                    self._now() - snapshot.start_time
                ).total_seconds()
            snapshot.performance = self._analyzer.analyze_session_performance(snapshot)
            return snapshot

    async def shutdown(self) -> None:
        """Cancel pending inactivity timers and wait for running expiries."""
        self._timers.cancel_all()
        await self._timers.drain()

    async def _expire(self, session_id: str) -> None:
        try:
            result = await self.complete_session(session_id)
        except (SessionNotFoundError, InvalidTransitionError) as e:
            # Completed by a caller between the timer firing and taking the lock.
            logger.warning(f"Expiry of session {session_id} skipped: {e}")
            return
        await self._history.save_session(result)

    def _lock_live(self, session_id: str, action: str) -> asyncio.Lock:
        """Per-session lock; unknown and completed ids raise before one is allocated."""
        self._require(session_id, action)
        return self._store.lock(session_id)

    def _require(self, session_id: str, action: str) -> StudySession:
        session = self._store.get(session_id)
        if session is not None:
            return session
        if session_id in self._completed:
            raise InvalidTransitionError(session_id, SessionStatus.COMPLETED.value, action)
        raise SessionNotFoundError(session_id)

    def _remember_completed(self, session_id: str) -> None:
        self._completed[session_id] = None
        while len(self._completed) > COMPLETED_SESSION_MEMORY:
            self._completed.popitem(last=False)
