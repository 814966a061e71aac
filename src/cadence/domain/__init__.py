# Domain Package
from .errors import (
    CadenceError,
    CardNotFoundError,
    ConcurrentUpdateError,
    InvalidTransitionError,
    NotFoundError,
    SessionNotFoundError,
)
from .models import (
    Card,
    CardSchedule,
    SessionSettings,
    SessionStatus,
    StudyMode,
    StudySession,
    UserTier,
)
from .ports import CardRepository, SessionHistoryRepository, SessionStore

__all__ = [
    "CadenceError",
    "CardNotFoundError",
    "ConcurrentUpdateError",
    "InvalidTransitionError",
    "NotFoundError",
    "SessionNotFoundError",
    "Card",
    "CardSchedule",
    "SessionSettings",
    "SessionStatus",
    "StudyMode",
    "StudySession",
    "UserTier",
    "CardRepository",
    "SessionHistoryRepository",
    "SessionStore",
]
