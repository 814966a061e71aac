"""
Scheduling function for the FSRS-style spaced repetition model.

This is a pure computation module with no I/O. Given a card's schedule, a
rating, the user's tier and the session context it returns the updated
stability, difficulty, retention score and next review time.

Pipeline:
1. Stability grows by (1 + rating/5) ^ (1 - difficulty), floored at 0.5
2. Voice bonus, then streak bonus, multiply the stability
3. Interval = (stability * (1 - difficulty)) ^ (1 / (1 + rating/5)) days,
   clamped to [4h, 365d] and capped by the tier ceiling
4. Difficulty moves with the rating and shrinks with the streak bonus
"""

import logging
from datetime import datetime, timedelta, timezone

from cadence.domain.constants import (
    CORRECT_RATING,
    DEFAULT_STABILITY,
    EASY_DIFFICULTY_FACTOR,
    HARD_DIFFICULTY_FACTOR,
    INITIAL_INTERVAL_DAYS,
    MAX_DIFFICULTY,
    MAX_INTERVAL_DAYS,
    MAX_RATING,
    MIN_DIFFICULTY,
    MIN_INTERVAL_HOURS,
    MIN_RATING,
    RETENTION_CONFIDENCE_WEIGHT,
    RETENTION_EXPERIENCE_CAP,
    RETENTION_EXPERIENCE_PER_REVIEW,
    RETENTION_RATING_WEIGHT,
    STREAK_BONUS_FACTORS,
    SUCCESS_FLOOR_FACTORS,
    TIER_CEILING_DAYS,
    VOICE_BONUS,
    VOICE_CONFIDENCE_THRESHOLD,
    VOICE_HIGH_BONUS,
    VOICE_HIGH_CONFIDENCE_THRESHOLD,
)
from cadence.domain.models import (
    CardSchedule,
    ScheduleResult,
    SessionContext,
    UserTier,
)

logger = logging.getLogger(__name__)

MIN_INTERVAL_DAYS = MIN_INTERVAL_HOURS / 24


def compute_schedule(
    schedule: CardSchedule,
    rating: int,
    tier: UserTier | str | None,
    context: SessionContext | None = None,
    now: datetime | None = None,
) -> ScheduleResult:
    """
    Compute the next schedule of a card after a review.

    Args:
        schedule: Current scheduling state of the card.
        rating: Review rating, 0-5. Values outside are clamped.
        tier: Subscription tier (or role name) bounding the interval.
        context: Voice/confidence/streak context of the session.
        now: Review time (defaults to the current UTC time).

    Returns:
        ScheduleResult. Never raises; every output is clamped.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if context is None:
        context = SessionContext()

    rating = _clamp_rating(rating)
    difficulty = _clamp(schedule.difficulty, MIN_DIFFICULTY, MAX_DIFFICULTY)
    bonus = voice_bonus(context) * streak_multiplier(context.study_streak)

    stability = calculate_stability(schedule.stability, rating, difficulty) * bonus

    interval = _monotone_interval(schedule.stability, difficulty, rating, bonus)
    interval = min(interval, tier_ceiling_days(tier))
    next_review = now + timedelta(days=interval)

    new_difficulty = update_difficulty(difficulty, rating, context.study_streak)
    retention = retention_score(rating, schedule.review_count, context.average_confidence)

    logger.debug(
        f"[fsrs] rating={rating} tier={UserTier.parse(tier).value} "
        f"S {schedule.stability:.3f}->{stability:.3f} "
        f"D {schedule.difficulty:.3f}->{new_difficulty:.3f} interval={interval:.3f}d"
    )

    return ScheduleResult(
        stability=stability,
        difficulty=new_difficulty,
        next_review=next_review,
        retention_score=retention,
        interval_days=interval,
    )


def apply_review(
    schedule: CardSchedule,
    rating: int,
    result: ScheduleResult,
    reviewed_at: datetime | None = None,
) -> CardSchedule:
    """
    Build the card schedule stored after a review.
    """
    if reviewed_at is None:
        reviewed_at = datetime.now(timezone.utc)
    rating = _clamp_rating(rating)

    return CardSchedule(
        stability=result.stability,
        difficulty=result.difficulty,
        review_count=schedule.review_count + 1,
        last_review=reviewed_at,
        last_rating=rating,
        retention_score=result.retention_score,
        streak_count=schedule.streak_count + 1 if rating >= CORRECT_RATING else 0,
    )


def calculate_stability(current: float, rating: int, difficulty: float) -> float:
    factor = (1 + rating / MAX_RATING) ** (1 - difficulty)
    return max(current * factor, DEFAULT_STABILITY)


def voice_bonus(context: SessionContext) -> float:
    """
    Stability multiplier for confident voice answers.

    1.2 above 95% confidence, 1.1 above 85%, otherwise no bonus.
    """
    if not context.voice_enabled:
        return 1.0
    confidence = context.average_confidence
    if confidence > VOICE_HIGH_CONFIDENCE_THRESHOLD:
        return VOICE_HIGH_BONUS
    if confidence > VOICE_CONFIDENCE_THRESHOLD:
        return VOICE_BONUS
    return 1.0


def streak_multiplier(streak: int) -> float:
    """Multiplier of the largest streak threshold reached (1.0 below 7 days)."""
    bonus = 1.0
    for days, multiplier in sorted(STREAK_BONUS_FACTORS.items()):
        if streak >= days:
            bonus = multiplier
    return bonus


def optimal_interval(stability: float, difficulty: float, rating: int) -> float:
    """
    Interval in days, clamped to [4h, 365d].

    Successful ratings are never scheduled sooner than the scaled initial interval.
    """
    base = max(stability * (1 - difficulty), 0.0)
    interval = base ** (1 / (1 + rating / MAX_RATING))
    floor = INITIAL_INTERVAL_DAYS * SUCCESS_FLOOR_FACTORS.get(rating, 0.0)
    return _clamp(max(interval, floor), MIN_INTERVAL_DAYS, MAX_INTERVAL_DAYS)


def tier_ceiling_days(tier: UserTier | str | None) -> int:
    return TIER_CEILING_DAYS[UserTier.parse(tier).value]


def update_difficulty(difficulty: float, rating: int, streak: int) -> float:
    if rating >= 4:
        difficulty *= EASY_DIFFICULTY_FACTOR
    elif rating <= 2:
        difficulty *= HARD_DIFFICULTY_FACTOR

    difficulty /= streak_multiplier(streak)
    return _clamp(difficulty, MIN_DIFFICULTY, MAX_DIFFICULTY)


def retention_score(rating: int, review_count: int, confidence: float) -> float:
    base = (rating / MAX_RATING) * RETENTION_RATING_WEIGHT
    experience = min(RETENTION_EXPERIENCE_CAP, review_count * RETENTION_EXPERIENCE_PER_REVIEW)
    confidence_impact = confidence * RETENTION_CONFIDENCE_WEIGHT
    return _clamp(base + experience + confidence_impact, 0.0, 1.0)


def _monotone_interval(stability: float, difficulty: float, rating: int, bonus: float) -> float:
    # A better rating never schedules sooner than a worse one from the same state.
    ratings = range(1, rating + 1) if rating >= 1 else (0,)
    return max(
        optimal_interval(calculate_stability(stability, r, difficulty) * bonus, difficulty, r)
        for r in ratings
    )


def _clamp_rating(rating: int) -> int:
    return int(_clamp(int(rating), MIN_RATING, MAX_RATING))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
