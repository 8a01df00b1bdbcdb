"""
Import coordinator for building the deck from a user's list.

One run:
1. Fetches the user's full list and truncates it to the show cap
2. Resolves each show's openings, one show at a time
3. Stages unseen card ids and commits them to the CardStore per show
4. Deduplicates the whole store once the loop ends and drops review
   states of cards evicted by the retention cap
"""

import asyncio
import logging
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from opdeck.application.config import RunSettings
from opdeck.application.theme_resolver import ThemeResolver
from opdeck.domain.constants import ITEM_JITTER_MS, MIN_MAX_SHOWS
from opdeck.domain.errors import ImportInProgressError, NetworkError
from opdeck.domain.models import Card, CatalogEntry, ThemeRecord
from opdeck.domain.ports import ListFetcher
from opdeck.infrastructure.http_client import Sleep
from opdeck.infrastructure.persistence import CardStore, ScheduleRepository

logger = logging.getLogger(__name__)


class ImportStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_ENTRIES = "no_entries"  # the user's list is empty
    NOTHING_MATCHED = "nothing_matched"  # the deck is empty after the run
    FAILED = "failed"


@dataclass
class ImportProgress:
    """Emitted after each processed show."""

    processed: int
    total: int
    cards_added: int
    catalog_id: int
    title: str
    error: str | None = None


@dataclass
class ImportResult:
    status: ImportStatus
    processed: int = 0
    total: int = 0
    cards_added: int = 0
    total_cards: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ImportStatus.COMPLETED, ImportStatus.CANCELLED)


ProgressCallback = Callable[[ImportProgress], None]
FinishCallback = Callable[[ImportResult], None]


def effective_show_cap(max_shows: int) -> int:
    """Requested cap, floored at MIN_MAX_SHOWS. Never invents shows."""
    return max(MIN_MAX_SHOWS, max_shows)


class ImportCoordinator:
    """
    Runs imports sequentially: no two requests are ever in flight at once.

    Only one run may be active per coordinator; cancellation is cooperative
    and checked once per show, so an in-flight request or backoff finishes
    before the loop stops.
    """

    def __init__(
        self,
        fetcher: ListFetcher,
        resolver: ThemeResolver,
        cards: CardStore,
        schedule: ScheduleRepository | None = None,
        sleep: Sleep | None = None,
        rng: random.Random | None = None,
    ):
        self._fetcher = fetcher
        self._resolver = resolver
        self._cards = cards
        self._schedule = schedule
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._cancel = threading.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """Ask the active run to stop at the next show boundary."""
        if self._running:
            logger.info("[import] Cancellation requested")
        self._cancel.set()

    async def run(
        self,
        user_id: str,
        settings: RunSettings,
        on_progress: ProgressCallback | None = None,
        on_finish: FinishCallback | None = None,
    ) -> ImportResult:
        if self._running:
            raise ImportInProgressError("An import is already running")

        self._running = True
        self._cancel.clear()
        try:
            result = await self._run(user_id, settings, on_progress)
        finally:
            self._running = False

        logger.info(
            f"[import] {user_id}: {result.status.value} processed={result.processed}/"
            f"{result.total} added={result.cards_added} deck={result.total_cards}"
        )
        if on_finish:
            on_finish(result)
        return result

    async def _run(
        self,
        user_id: str,
        settings: RunSettings,
        on_progress: ProgressCallback | None,
    ) -> ImportResult:
        try:
            entries = await self._fetcher.fetch_all(user_id)
        except (NetworkError, ValueError) as e:
            logger.error(f"[import] Could not fetch list for {user_id}: {e}")
            return ImportResult(ImportStatus.FAILED, error=str(e))

        entries = entries[: effective_show_cap(settings.max_shows)]
        if not entries:
            return ImportResult(ImportStatus.NO_ENTRIES)

        # Rebuilt from the store on every run rather than carried across runs.
        known_ids = self._cards.ids()
        total = len(entries)
        processed = 0
        cards_added = 0
        cancelled = False

        for index, entry in enumerate(entries):
            if self._cancel.is_set():
                cancelled = True
                logger.info(f"[import] Stopping after {processed}/{total} shows")
                break

            error = None
            try:
                themes = await self._resolver.resolve_entry(entry)
            except Exception as e:
                error = str(e) or type(e).__name__
                logger.warning(
                    f"[import] Skipping {entry.display_title} ({entry.catalog_id}): {error}"
                )
                themes = []

            staged = self._stage(entry, themes[: settings.max_cards_per_show], known_ids)
            if staged:
                cards_added += self._cards.add_many(staged)

            processed += 1
            if on_progress:
                on_progress(
                    ImportProgress(
                        processed=processed,
                        total=total,
                        cards_added=cards_added,
                        catalog_id=entry.catalog_id,
                        title=entry.display_title,
                        error=error,
                    )
                )

            if index < total - 1:
                jitter = self._rng.uniform(0, ITEM_JITTER_MS)
                await self._sleep((settings.delay_ms + jitter) / 1000)

        total_cards = self._cards.dedupe()
        if self._schedule is not None:
            self._schedule.prune(self._cards.ids())
        if total_cards == 0:
            status = ImportStatus.NOTHING_MATCHED
        elif cancelled:
            status = ImportStatus.CANCELLED
        else:
            status = ImportStatus.COMPLETED

        return ImportResult(
            status=status,
            processed=processed,
            total=total,
            cards_added=cards_added,
            total_cards=total_cards,
        )

    @staticmethod
    def _stage(
        entry: CatalogEntry, themes: list[ThemeRecord], known_ids: set[str]
    ) -> list[Card]:
        staged = []
        for theme in themes:
            card = Card.from_theme(entry, theme)
            if card.id in known_ids:
                continue
            known_ids.add(card.id)
            staged.append(card)
        return staged
