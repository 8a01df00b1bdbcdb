"""Resolves one catalog entry to its opening themes, cache first."""

import logging

from opdeck.domain.models import CatalogEntry, ThemeRecord
from opdeck.domain.ports import ThemeIndex
from opdeck.infrastructure.persistence import ThemeCache

logger = logging.getLogger(__name__)


class ThemeResolver:
    """
    Looks up opening themes for a show.

    A cache hit, including a cached empty list, never touches the network.
    On a miss the title variants are tried in priority order (romaji,
    english, native) and the first one with openings wins. The result is
    cached even when empty so shows with no match are not looked up again.
    """

    def __init__(self, index: ThemeIndex, cache: ThemeCache):
        self._index = index
        self._cache = cache

    async def resolve(self, catalog_id: int, title_variants: list[str]) -> list[ThemeRecord]:
        cached = self._cache.get(catalog_id)
        if cached is not None:
            logger.debug(f"[resolve] cache hit {catalog_id} ({len(cached)} record(s))")
            return cached

        records: list[ThemeRecord] = []
        for title in title_variants:
            if not title or not title.strip():
                continue
            records = await self._index.search_openings(title)
            if records:
                logger.debug(f"[resolve] {catalog_id} matched via '{title}'")
                break
        else:
            logger.info(f"[resolve] No openings found for {catalog_id} {title_variants}")

        self._cache.put(catalog_id, records)
        return records

    async def resolve_entry(self, entry: CatalogEntry) -> list[ThemeRecord]:
        return await self.resolve(entry.catalog_id, entry.title_variants)
