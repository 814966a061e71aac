# Application Stats Package
from .performance_analyzer import (
    PerformanceAnalyzer,
    compute_streaks,
    streak_risk_level,
    streak_stability,
)

__all__ = ["PerformanceAnalyzer", "compute_streaks", "streak_risk_level", "streak_stability"]
