"""
Service Factory
Centralizes wiring of repositories, selector, analyzer and session manager.
"""

import logging
from dataclasses import dataclass

from cadence.application.config import AppConfig
from cadence.application.selection import DueCardSelector
from cadence.application.session import StudySessionManager
from cadence.application.stats import PerformanceAnalyzer
from cadence.domain.ports import CardRepository, SessionHistoryRepository
from cadence.infrastructure.adapters.memory import InMemoryCardRepository, InMemorySessionHistory
from cadence.infrastructure.adapters.yaml_deck import load_deck

logger = logging.getLogger(__name__)


@dataclass
class Services:
    cards: CardRepository
    history: SessionHistoryRepository
    selector: DueCardSelector
    analyzer: PerformanceAnalyzer
    manager: StudySessionManager


def get_card_repository(config: AppConfig) -> CardRepository:
    """
    Returns the card store: seeded from the configured deck, or empty.
    """
    if config.deck_path is not None:
        return load_deck(config.deck_path)

    logger.info("No deck configured, starting with an empty card store")
    return InMemoryCardRepository()


def build_services(
    config: AppConfig,
    cards: CardRepository | None = None,
    history: SessionHistoryRepository | None = None,
) -> Services:
    cards = cards or get_card_repository(config)
    history = history or InMemorySessionHistory()

    selector = DueCardSelector(cards, retention_target=config.retention_target)
    analyzer = PerformanceAnalyzer(history, retention_target=config.retention_target)
    manager = StudySessionManager(
        cards,
        history,
        selector=selector,
        analyzer=analyzer,
        timeout_seconds=config.session_timeout_seconds,
    )
    return Services(
        cards=cards,
        history=history,
        selector=selector,
        analyzer=analyzer,
        manager=manager,
    )
