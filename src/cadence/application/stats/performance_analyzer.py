"""
Performance analyzer for study sessions and study streaks.

Session analysis is a pure computation; streak analysis and reports read
completed sessions from the SessionHistoryRepository port.
"""

import logging
import statistics
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

from cadence.domain.constants import (
    LONG_STREAK_STABILITY_MODIFIER,
    LOW_RISK_STABILITY,
    MAX_STREAK_REVIEW_BONUS,
    MEDIUM_RISK_STABILITY,
    MIN_STABILITY_MODIFIER,
    MIN_STREAK_DAYS,
    NEXT_REVIEW_BASE_HOURS,
    RETENTION_TARGET,
    VOICE_CONFIDENCE_PENALTY,
    VOICE_CONFIDENCE_THRESHOLD,
)
from cadence.domain.models import (
    EnhancedPerformance,
    OptimalStudyTime,
    PerformanceReport,
    Recommendations,
    ReportOverview,
    ReportTrends,
    RiskLevel,
    StreakAnalysis,
    StudyMode,
    StudySession,
    VoiceModeSummary,
)
from cadence.domain.ports import SessionHistoryRepository

logger = logging.getLogger(__name__)


def streak_stability(streak: int) -> float:
    """
    Stability of a streak in [0, 1].

    Grows linearly up to 14 days; streaks longer than that get a 1.2 boost.
    """
    base = min(streak / MIN_STREAK_DAYS, 1.0)
    modifier = LONG_STREAK_STABILITY_MODIFIER if streak > MIN_STREAK_DAYS else 1.0
    return min(base * modifier, 1.0)


def streak_risk_level(stability: float) -> RiskLevel:
    if stability >= LOW_RISK_STABILITY:
        return RiskLevel.LOW
    if stability >= MEDIUM_RISK_STABILITY:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def next_review_time(stability: float, current_streak: int, now: datetime) -> datetime:
    modifier = max(MIN_STABILITY_MODIFIER, stability)
    streak_bonus = min(current_streak / MIN_STREAK_DAYS, MAX_STREAK_REVIEW_BONUS)
    return now + timedelta(hours=NEXT_REVIEW_BASE_HOURS * modifier * streak_bonus)


def adjusted_confidence(confidence: float, voice_enabled: bool) -> float:
    """Voice answers are recognised less reliably, so their confidence counts for 90%."""
    return confidence * VOICE_CONFIDENCE_PENALTY if voice_enabled else confidence


def session_retention_rate(session: StudySession) -> float:
    """
    Share of correct reviews in a session.

    With no reviews yet there is nothing to divide by; the session's FSRS
    retention rate is used instead.
    """
    perf = session.performance
    if perf.total_cards == 0:
        return perf.fsrs_progress.retention_rate
    return min(perf.correct_count / perf.total_cards, 1.0)


def compute_streaks(days: Iterable[date], today: date) -> tuple[int, int]:
    """
    Compute (current, longest) runs of consecutive study days.

    The current streak is alive if its last day is today or yesterday.
    """
    ordered = sorted(set(days))
    if not ordered:
        return 0, 0

    longest = run = 1
    for prev, cur in zip(ordered, ordered[1:]):
        run = run + 1 if (cur - prev).days == 1 else 1
        longest = max(longest, run)

    current = 0
    if (today - ordered[-1]).days <= 1:
        current = 1
        for prev, cur in zip(reversed(ordered[:-1]), reversed(ordered[1:])):
            if (cur - prev).days != 1:
                break
            current += 1

    return current, longest


class PerformanceAnalyzer:
    """
    Derives session metrics, streak analysis and performance reports.
    """

    def __init__(
        self,
        history: SessionHistoryRepository,
        retention_target: float = RETENTION_TARGET,
    ):
        self._history = history
        self._target = retention_target

    def analyze_session_performance(self, session: StudySession) -> EnhancedPerformance:
        """
        Recompute derived metrics of a session.

        The raw average confidence is carried through unchanged; the voice
        penalty only applies to adjusted_confidence so repeated analysis
        does not compound it.
        fsrs_progress is copied as is: its retention rate stays the running
        mean of scheduled retention and is never raised to the answer rate.
        """
        perf = session.performance
        retention = session_retention_rate(session)
        adjusted = adjusted_confidence(perf.average_confidence, session.voice_enabled)

        voice_effectiveness = None
        if session.voice_enabled:
            voice_effectiveness = (perf.average_confidence + retention) / 2

        return EnhancedPerformance(
            total_cards=max(perf.total_cards, len(session.cards_studied)),
            correct_count=perf.correct_count,
            average_confidence=perf.average_confidence,
            study_streak=perf.study_streak,
            time_spent=perf.time_spent,
            fsrs_progress=replace(perf.fsrs_progress),
            retention_rate=retention,
            adjusted_confidence=adjusted,
            voice_mode_effectiveness=voice_effectiveness,
            streak_stability=streak_stability(perf.study_streak),
            retention_trend=[retention, perf.fsrs_progress.average_stability, adjusted],
            optimal_study_time=OptimalStudyTime(
                time_of_day=session.start_time.hour,
                day_of_week=session.start_time.weekday(),
                session_duration=perf.time_spent,
            ),
        )

    async def analyze_study_streak(
        self,
        user_id: str,
        now: datetime | None = None,
        include: Iterable[StudySession] = (),
    ) -> StreakAnalysis:
        """
        Analyze the user's day streak from completed sessions.

        Args:
            user_id: The user to analyze.
            now: Reference time (defaults to the current UTC time).
            include: Extra sessions not yet in history (e.g. one being completed).
        """
        if now is None:
            now = datetime.now(timezone.utc)

        sessions = _merge(await self._history.get_sessions(user_id), include)
        days = [(s.end_time or s.start_time).date() for s in sessions]
        current, longest = compute_streaks(days, now.date())

        stability = streak_stability(current)
        return StreakAnalysis(
            current_streak=current,
            longest_streak=longest,
            streak_stability=stability,
            next_review_recommendation=next_review_time(stability, current, now),
            risk_level=streak_risk_level(stability),
        )

    async def generate_performance_report(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        include: Iterable[StudySession] = (),
        now: datetime | None = None,
    ) -> PerformanceReport:
        """
        Summarize sessions of a user started within [start, end].

        Returns:
            PerformanceReport with overview, voice-mode summary,
            recommendations and per-session trends.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        include = list(include)

        sessions = _merge(await self._history.get_sessions(user_id, start, end), include)
        retention = [session_retention_rate(s) for s in sessions]
        confidence = [s.performance.average_confidence for s in sessions]
        time_efficiency = [_cards_per_minute(s) for s in sessions]

        average_retention = statistics.fmean(retention) if retention else 0.0
        streak = await self.analyze_study_streak(user_id, now=now, include=include)
        voice = self._summarize_voice(sessions)

        overview = ReportOverview(
            average_retention=average_retention,
            streak_maintenance=streak,
            learning_efficiency=_learning_efficiency(sessions),
        )
        recommendations = self._recommend(sessions, average_retention, streak, voice)

        logger.debug(
            f"[report] user={user_id} sessions={len(sessions)} "
            f"avg_retention={average_retention:.2f} risk={streak.risk_level.value}"
        )

        return PerformanceReport(
            user_id=user_id,
            start=start,
            end=end,
            session_count=len(sessions),
            overview=overview,
            voice_mode=voice,
            recommendations=recommendations,
            trends=ReportTrends(
                retention=retention,
                confidence=confidence,
                time_efficiency=time_efficiency,
            ),
        )

    def _summarize_voice(self, sessions: list[StudySession]) -> VoiceModeSummary:
        voice_sessions = [s for s in sessions if s.voice_enabled]
        if not voice_sessions:
            return VoiceModeSummary(
                effectiveness=None,
                confidence_correlation=None,
                recommended_usage="Try voice mode to practise active recall out loud.",
            )

        confidences = [s.performance.average_confidence for s in voice_sessions]
        retentions = [session_retention_rate(s) for s in voice_sessions]
        effectiveness = statistics.fmean(
            (c + r) / 2 for c, r in zip(confidences, retentions)
        )

        if effectiveness >= self._target:
            usage = "Voice mode is working well; keep using it for reviews."
        else:
            usage = "Keep voice sessions short and learn new material in standard mode."

        return VoiceModeSummary(
            effectiveness=effectiveness,
            confidence_correlation=_correlation(confidences, retentions),
            recommended_usage=usage,
        )

    def _recommend(
        self,
        sessions: list[StudySession],
        average_retention: float,
        streak: StreakAnalysis,
        voice: VoiceModeSummary,
    ) -> Recommendations:
        focus: list[str] = []
        messages: list[str] = []

        if sessions and average_retention < self._target:
            focus.append("retention")
            messages.append(
                f"Average retention {average_retention:.0%} is below the "
                f"{self._target:.0%} target; review weak cards more often."
            )
        if streak.risk_level != RiskLevel.LOW:
            focus.append("consistency")
            messages.append(
                f"Your {streak.current_streak}-day streak is at {streak.risk_level.value} "
                "risk; study a little every day."
            )

        voice_confidence = [s.performance.average_confidence for s in sessions if s.voice_enabled]
        if voice_confidence and statistics.fmean(voice_confidence) < VOICE_CONFIDENCE_THRESHOLD:
            focus.append("voice accuracy")
            messages.append("Speak answers more clearly or switch to standard mode.")

        if not messages:
            messages.append("On track: keep the current schedule.")

        return Recommendations(
            next_study_time=streak.next_review_recommendation,
            recommended_mode=self._recommended_mode(sessions, voice),
            focus_areas=focus,
            messages=messages,
        )

    def _recommended_mode(
        self, sessions: list[StudySession], voice: VoiceModeSummary
    ) -> StudyMode:
        if voice.effectiveness is None or voice.effectiveness < self._target:
            return StudyMode.STANDARD

        other = [session_retention_rate(s) for s in sessions if not s.voice_enabled]
        spoken = [session_retention_rate(s) for s in sessions if s.voice_enabled]
        if other and statistics.fmean(spoken) < statistics.fmean(other):
            return StudyMode.STANDARD
        return StudyMode.VOICE


def _merge(sessions: Iterable[StudySession], extra: Iterable[StudySession]) -> list[StudySession]:
    by_id = {s.id: s for s in sessions}
    for s in extra:
        by_id[s.id] = s
    return sorted(by_id.values(), key=lambda s: s.start_time)


def _cards_per_minute(session: StudySession) -> float:
    minutes = session.performance.time_spent / 60
    if minutes <= 0:
        return 0.0
    return session.performance.total_cards / minutes


def _learning_efficiency(sessions: list[StudySession]) -> float:
    minutes = sum(s.performance.time_spent for s in sessions) / 60
    if minutes <= 0:
        return 0.0
    return sum(s.performance.correct_count for s in sessions) / minutes


def _correlation(xs: list[float], ys: list[float]) -> float | None:
    """Pearson correlation, or None when fewer than two points or a constant series."""
    if len(xs) < 2:
        return None
    try:
        return statistics.correlation(xs, ys)
    except statistics.StatisticsError:
        return None
