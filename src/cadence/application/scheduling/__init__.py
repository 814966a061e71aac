# Application Scheduling Package
from .fsrs import apply_review, compute_schedule, streak_multiplier, tier_ceiling_days

__all__ = ["compute_schedule", "apply_review", "streak_multiplier", "tier_ceiling_days"]
