"""Centralized constants for the Cadence engine.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Card defaults ----------
DEFAULT_STABILITY = 0.5
DEFAULT_DIFFICULTY = 0.3
MIN_DIFFICULTY = 0.1
MAX_DIFFICULTY = 0.9
MIN_RATING = 0
MAX_RATING = 5
CORRECT_RATING = 3  # ratings at or above this count as a successful recall

# ---------- Intervals ----------
MIN_INTERVAL_HOURS = 4
MAX_INTERVAL_DAYS = 365
INITIAL_INTERVAL_DAYS = 1.0

# Lower bound for successful recalls, scaled from the initial interval.
SUCCESS_FLOOR_FACTORS = {
    3: 1.0,
    4: 1.25,
    5: 1.5,
}

# ---------- Tiers ----------
TIER_CEILING_DAYS = {
    "free": 30,
    "pro": 180,
    "power": 365,
}

# ---------- Bonuses ----------
VOICE_CONFIDENCE_THRESHOLD = 0.85
VOICE_HIGH_CONFIDENCE_THRESHOLD = 0.95
VOICE_HIGH_BONUS = 1.2
VOICE_BONUS = 1.1

# Streak length (days) -> stability multiplier. Largest threshold met wins.
STREAK_BONUS_FACTORS = {
    7: 1.1,
    14: 1.2,
    30: 1.3,
    60: 1.4,
}

EASY_DIFFICULTY_FACTOR = 0.9  # rating >= 4
HARD_DIFFICULTY_FACTOR = 1.1  # rating <= 2

# ---------- Retention score ----------
RETENTION_RATING_WEIGHT = 0.7
RETENTION_EXPERIENCE_PER_REVIEW = 0.01
RETENTION_EXPERIENCE_CAP = 0.2
RETENTION_CONFIDENCE_WEIGHT = 0.1

# ---------- Due-card selection ----------
RETENTION_TARGET = 0.85
DUE_CANDIDATE_WINDOW = 200
DEFAULT_BATCH_SIZE = 20
HIGH_RETENTION_BATCH_SIZE = 30
LOW_RETENTION_BATCH_SIZE = 15
HIGH_RETENTION_THRESHOLD = 0.9
LOW_RETENTION_THRESHOLD = 0.7
VOICE_BATCH_FACTOR = 0.7

# ---------- Sessions ----------
SESSION_TIMEOUT_SECONDS = 3600
COMPLETED_SESSION_MEMORY = 10_000

# ---------- Performance analysis ----------
MIN_STREAK_DAYS = 14
LONG_STREAK_STABILITY_MODIFIER = 1.2
VOICE_CONFIDENCE_PENALTY = 0.9
LOW_RISK_STABILITY = 0.8
MEDIUM_RISK_STABILITY = 0.6
NEXT_REVIEW_BASE_HOURS = 24
MIN_STABILITY_MODIFIER = 0.5
MAX_STREAK_REVIEW_BONUS = 1.5
