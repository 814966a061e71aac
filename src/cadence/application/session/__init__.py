# Application Session Package
from .manager import StudySessionManager
from .store import InMemorySessionStore
from .timeouts import InactivityTimers

__all__ = ["StudySessionManager", "InMemorySessionStore", "InactivityTimers"]
