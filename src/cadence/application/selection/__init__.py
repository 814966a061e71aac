# Application Selection Package
from .due_cards import DueCardSelector, priority_key

__all__ = ["DueCardSelector", "priority_key"]
