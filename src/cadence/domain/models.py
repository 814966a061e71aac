"""
Domain models for scheduling and study sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .constants import DEFAULT_DIFFICULTY, DEFAULT_STABILITY


class StudyMode(str, Enum):
    STANDARD = "standard"
    VOICE = "voice"
    QUIZ = "quiz"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UserTier(str, Enum):
    """Subscription tier bounding the longest interval a card may be scheduled."""

    FREE = "free"
    PRO = "pro"
    POWER = "power"

    @classmethod
    def parse(cls, value: "UserTier | str | None") -> "UserTier":
        """
        Normalize an upstream tier or role value.

        Accepts tier names and role names (FREE_USER, PRO_USER, ...).
        Administrative roles get the power ceiling; anything unknown is free.
        """
        if isinstance(value, UserTier):
            return value
        if not value:
            return cls.FREE
        key = str(value).strip().lower()
        if key.endswith("_user"):
            key = key[: -len("_user")]
        if key in ("enterprise_admin", "system_admin", "admin"):
            return cls.POWER
        try:
            return cls(key)
        except ValueError:
            return cls.FREE


@dataclass(frozen=True)
class CardSchedule:
    """
    Spaced-repetition state of one card.

    Attributes:
        stability: Resistance to forgetting; grows with successful reviews.
        difficulty: Intrinsic item hardness, kept within [0.1, 0.9].
        review_count: Completed reviews.
        last_review: Time of the last review, None for a new card.
        last_rating: Rating of the last review (0 = unrated).
        retention_score: Estimated recall probability (0.0-1.0).
        streak_count: Consecutive reviews rated as correct.
    """

    stability: float = DEFAULT_STABILITY
    difficulty: float = DEFAULT_DIFFICULTY
    review_count: int = 0
    last_review: datetime | None = None
    last_rating: int = 0
    retention_score: float = 0.0
    streak_count: int = 0


@dataclass
class Card:
    id: str
    user_id: str
    next_review: datetime
    schedule: CardSchedule = field(default_factory=CardSchedule)
    compatible_modes: list[StudyMode] = field(default_factory=lambda: [StudyMode.STANDARD])
    tags: list[str] = field(default_factory=list)
    version: int = 0  # bumped by the repository on every persisted review


@dataclass(frozen=True)
class ScheduleUpdate:
    """Fields written back to storage after a review."""

    schedule: CardSchedule
    next_review: datetime


@dataclass(frozen=True)
class SessionContext:
    """Session-level inputs to the scheduling function."""

    voice_enabled: bool = False
    average_confidence: float = 1.0
    study_streak: int = 0


@dataclass(frozen=True)
class ScheduleResult:
    stability: float
    difficulty: float
    next_review: datetime
    retention_score: float
    interval_days: float


# ---------- Session settings ----------


@dataclass(frozen=True)
class VoiceConfig:
    recognition_threshold: float = 0.85
    language: str = "en-US"
    use_native_speaker: bool = False


@dataclass(frozen=True)
class FsrsConfig:
    request_retention: float = 0.85
    maximum_interval: int = 365
    easy_bonus: float = 1.3
    hard_penalty: float = 0.5


@dataclass(frozen=True)
class SessionSettings:
    """
    Immutable per-session configuration fixed at creation.

    session_duration is in minutes.
    """

    session_duration: int = 60
    min_cards_per_session: int = 10
    max_cards_per_session: int = 50
    show_confidence_buttons: bool = True
    enable_fsrs: bool = True
    voice_config: VoiceConfig = field(default_factory=VoiceConfig)
    fsrs_config: FsrsConfig = field(default_factory=FsrsConfig)

    @classmethod
    def for_mode(cls, mode: StudyMode) -> "SessionSettings":
        if mode == StudyMode.VOICE:
            return cls(
                session_duration=30,
                max_cards_per_session=30,
                show_confidence_buttons=False,
            )
        if mode == StudyMode.QUIZ:
            return cls(
                session_duration=45,
                min_cards_per_session=20,
                show_confidence_buttons=False,
                enable_fsrs=False,
            )
        return cls()


# ---------- Session performance ----------


@dataclass
class FsrsProgress:
    average_stability: float = 0.0
    average_difficulty: float = 0.0
    retention_rate: float = 1.0
    interval_progress: float = 0.0


@dataclass
class SessionPerformance:
    total_cards: int = 0
    correct_count: int = 0
    average_confidence: float = 1.0
    study_streak: int = 0
    time_spent: float = 0.0  # seconds, pauses excluded
    fsrs_progress: FsrsProgress = field(default_factory=FsrsProgress)


@dataclass(frozen=True)
class OptimalStudyTime:
    time_of_day: int  # hour, 0-23
    day_of_week: int  # 0 = Monday
    session_duration: float  # seconds


@dataclass
class EnhancedPerformance(SessionPerformance):
    """Session performance plus the metrics derived by the analyzer."""

    retention_rate: float = 0.0
    adjusted_confidence: float = 1.0
    voice_mode_effectiveness: float | None = None
    streak_stability: float = 0.0
    retention_trend: list[float] = field(default_factory=list)
    optimal_study_time: OptimalStudyTime | None = None


@dataclass
class StudySession:
    id: str
    user_id: str
    mode: StudyMode
    start_time: datetime
    settings: SessionSettings
    tier: UserTier = UserTier.FREE
    end_time: datetime | None = None
    cards_studied: list[str] = field(default_factory=list)
    due_card_ids: list[str] = field(default_factory=list)
    voice_enabled: bool = False
    status: SessionStatus = SessionStatus.ACTIVE
    paused_at: datetime | None = None
    performance: SessionPerformance = field(default_factory=SessionPerformance)

    def context(self) -> SessionContext:
        return SessionContext(
            voice_enabled=self.voice_enabled,
            average_confidence=self.performance.average_confidence,
            study_streak=self.performance.study_streak,
        )


# ---------- Results ----------


@dataclass(frozen=True)
class StreakAnalysis:
    current_streak: int
    longest_streak: int
    streak_stability: float
    next_review_recommendation: datetime
    risk_level: RiskLevel


@dataclass(frozen=True)
class ReportOverview:
    average_retention: float
    streak_maintenance: StreakAnalysis
    learning_efficiency: float  # correct answers per minute


@dataclass(frozen=True)
class VoiceModeSummary:
    effectiveness: float | None
    confidence_correlation: float | None
    recommended_usage: str


@dataclass(frozen=True)
class Recommendations:
    next_study_time: datetime
    recommended_mode: StudyMode
    focus_areas: list[str]
    messages: list[str]


@dataclass(frozen=True)
class ReportTrends:
    retention: list[float]
    confidence: list[float]
    time_efficiency: list[float]  # cards per minute


@dataclass(frozen=True)
class PerformanceReport:
    user_id: str
    start: datetime
    end: datetime
    session_count: int
    overview: ReportOverview
    voice_mode: VoiceModeSummary
    recommendations: Recommendations
    trends: ReportTrends


@dataclass(frozen=True)
class ReviewOutcome:
    session: StudySession
    card: Card
    next_card: Card | None


@dataclass(frozen=True)
class CompletionResult:
    session: StudySession
    streak_analysis: StreakAnalysis
    performance_report: PerformanceReport
