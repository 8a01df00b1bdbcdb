"""
Deck Factory
Centralizes wiring of stores, remote adapters and services from config.
"""

import logging
from dataclasses import dataclass

from opdeck.application.config import AppConfig, RunSettings, load_run_settings
from opdeck.application.import_coordinator import ImportCoordinator
from opdeck.application.review_service import ReviewService
from opdeck.application.theme_resolver import ThemeResolver
from opdeck.domain.scheduling import SchedulerPolicy, build_policy
from opdeck.infrastructure.adapters import AniListFetcher, AnimeThemesIndex
from opdeck.infrastructure.http_client import RateLimitedClient
from opdeck.infrastructure.persistence import (
    CardStore,
    JsonBlobStore,
    ScheduleRepository,
    SettingsRepository,
    ThemeCache,
)

logger = logging.getLogger(__name__)


@dataclass
class DeckContext:
    """Everything one process session owns."""

    config: AppConfig
    settings: RunSettings
    settings_repo: SettingsRepository
    cache: ThemeCache
    cards: CardStore
    schedule: ScheduleRepository


def open_deck(config: AppConfig) -> DeckContext:
    """Load the four persisted aggregates from ``config.data_dir``."""
    store = JsonBlobStore(config.data_dir)
    settings_repo = SettingsRepository(store)
    settings = load_run_settings(settings_repo)
    return DeckContext(
        config=config,
        settings=settings,
        settings_repo=settings_repo,
        cache=ThemeCache(store),
        cards=CardStore(store, max_cards=settings.max_stored_cards),
        schedule=ScheduleRepository(store),
    )


def get_http_client(config: AppConfig) -> RateLimitedClient:
    return RateLimitedClient(
        timeout=config.request_timeout,
        max_retries=config.max_retries,
        jitter_ms=config.retry_jitter_ms,
    )


def get_import_coordinator(deck: DeckContext, client: RateLimitedClient) -> ImportCoordinator:
    config = deck.config
    fetcher = AniListFetcher(
        client,
        url=config.list_service_url,
        page_size=config.page_size,
        page_delay_ms=config.page_delay_ms,
    )
    resolver = ThemeResolver(AnimeThemesIndex(client, base_url=config.theme_index_url), deck.cache)
    return ImportCoordinator(fetcher, resolver, deck.cards, schedule=deck.schedule)


def get_policy(settings: RunSettings) -> SchedulerPolicy:
    if "scheduler_policy" not in settings.model_fields_set:
        logger.info(
            f"No scheduler policy chosen; using '{settings.scheduler_policy}'. "
            "Pick one with 'opdeck config set scheduler_policy simple|ease_factor'."
        )
    return build_policy(
        settings.scheduler_policy,
        easy_delay_hours=settings.easy_delay_hours,
        relearn_minutes=settings.relearn_minutes,
    )


def get_review_service(deck: DeckContext) -> ReviewService:
    return ReviewService(deck.cards, deck.schedule, get_policy(deck.settings))
