import asyncio
import logging
from typing import Any

from opdeck.domain.constants import LIST_SERVICE_URL, PAGE_DELAY_MS, PAGE_SIZE
from opdeck.domain.errors import NetworkError
from opdeck.domain.models import CatalogEntry
from opdeck.domain.ports import ListFetcher
from opdeck.infrastructure.http_client import RateLimitedClient, Sleep

LIST_PAGE_QUERY = """
query ($userName: String, $page: Int, $perPage: Int) {
  Page(page: $page, perPage: $perPage) {
    pageInfo {
      hasNextPage
    }
    mediaList(userName: $userName, type: ANIME) {
      media {
        id
        title {
          romaji
          english
          native
        }
        season
        seasonYear
      }
    }
  }
}
"""


class AniListFetcher(ListFetcher):
    """Adapter that pages through a user's anime list on the AniList GraphQL API."""

    def __init__(
        self,
        client: RateLimitedClient,
        url: str = LIST_SERVICE_URL,
        page_size: int = PAGE_SIZE,
        page_delay_ms: int = PAGE_DELAY_MS,
        sleep: Sleep | None = None,
    ):
        self.client = client
        self.url = url
        self.page_size = page_size
        self.page_delay_ms = page_delay_ms
        self._sleep = sleep or asyncio.sleep
        self.logger = logging.getLogger(__name__)

    async def fetch_all(self, user_id: str) -> list[CatalogEntry]:
        entries: list[CatalogEntry] = []
        seen: set[int] = set()
        page = 1

        while True:
            has_next, page_entries = await self.fetch_page(user_id, page)
            for entry in page_entries:
                if entry.catalog_id in seen:
                    continue
                seen.add(entry.catalog_id)
                entries.append(entry)

            self.logger.debug(
                f"[list] {user_id} page={page} got={len(page_entries)} total={len(entries)}"
            )
            if not has_next:
                break

            page += 1
            await self._sleep(self.page_delay_ms / 1000)

        self.logger.info(f"[list] {user_id}: {len(entries)} entries over {page} page(s)")
        return entries

    async def fetch_page(self, user_id: str, page: int) -> tuple[bool, list[CatalogEntry]]:
        """Fetch one page. Returns (has_next_page, entries)."""
        body = await self.client.post_json(
            self.url,
            {
                "query": LIST_PAGE_QUERY,
                "variables": {"userName": user_id, "page": page, "perPage": self.page_size},
            },
        )

        if not isinstance(body, dict):
            raise NetworkError(
                200, f"unexpected response body: {type(body).__name__}", url=self.url
            )
        if body.get("errors"):
            messages = "; ".join(e.get("message", "?") for e in body["errors"])
            raise NetworkError(200, messages, url=self.url)

        page_data = (body.get("data") or {}).get("Page") or {}
        has_next = bool((page_data.get("pageInfo") or {}).get("hasNextPage"))

        entries = []
        for item in page_data.get("mediaList") or []:
            entry = self._parse_media((item or {}).get("media"))
            if entry is not None:
                entries.append(entry)
        return has_next, entries

    @staticmethod
    def _parse_media(media: dict[str, Any] | None) -> CatalogEntry | None:
        if not media or media.get("id") is None:
            return None
        title = media.get("title") or {}
        return CatalogEntry(
            catalog_id=int(media["id"]),
            title_romaji=title.get("romaji"),
            title_english=title.get("english"),
            title_native=title.get("native"),
            season=media.get("season"),
            year=media.get("seasonYear"),
        )
