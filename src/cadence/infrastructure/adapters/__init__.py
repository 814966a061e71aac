from .memory import InMemoryCardRepository, InMemorySessionHistory
from .yaml_deck import DeckFormatError, dump_deck, load_deck

__all__ = [
    "DeckFormatError",
    "InMemoryCardRepository",
    "InMemorySessionHistory",
    "dump_deck",
    "load_deck",
]
