import logging
from typing import Any

from opdeck.domain.constants import OPENING_TYPE, THEME_INCLUDES, THEME_INDEX_URL
from opdeck.domain.errors import NetworkError
from opdeck.domain.models import ThemeRecord
from opdeck.domain.ports import ThemeIndex
from opdeck.infrastructure.http_client import RateLimitedClient


class AnimeThemesIndex(ThemeIndex):
    """Adapter for the AnimeThemes REST API (https://api.animethemes.moe)."""

    def __init__(self, client: RateLimitedClient, base_url: str = THEME_INDEX_URL):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.logger = logging.getLogger(__name__)

    async def search_openings(self, title: str) -> list[ThemeRecord]:
        url = f"{self.base_url}/anime"
        body = await self.client.get_json(
            url,
            params={"filter[name]": title, "include": THEME_INCLUDES},
        )
        if not isinstance(body, dict):
            raise NetworkError(200, f"unexpected response body: {type(body).__name__}", url=url)
        for anime in body.get("anime") or []:
            openings = self.extract_openings(anime)
            if openings:
                self.logger.debug(
                    f"[themes] '{title}' -> {anime.get('name')!r} ({len(openings)} OP)"
                )
                return openings
        return []

    @classmethod
    def extract_openings(cls, anime: dict[str, Any]) -> list[ThemeRecord]:
        """Keep only opening themes of one matched show."""
        records = []
        for theme in anime.get("animethemes") or []:
            if theme.get("type") != OPENING_TYPE:
                continue
            sequence = theme.get("sequence") or 1
            song = theme.get("song") or {}
            records.append(
                ThemeRecord(
                    song_title=song.get("title") or f"Opening {sequence}",
                    artists=cls._artist_names(song.get("artists")),
                    sequence_number=int(sequence),
                    media_url=cls._preview_link(theme.get("animethemeentries") or []),
                )
            )
        return records

    @staticmethod
    def _artist_names(artists: Any) -> list[str]:
        if not artists:
            return []
        if isinstance(artists, str):
            return [artists]
        names = []
        for artist in artists:
            name = artist.get("name") if isinstance(artist, dict) else artist
            if name:
                names.append(str(name))
        return names

    @staticmethod
    def _preview_link(entries: list[dict[str, Any]]) -> str | None:
        """First playable link: any video link wins, audio link is the fallback."""
        audio_link = None
        for entry in entries:
            for video in entry.get("videos") or []:
                if video.get("link"):
                    return video["link"]
                audio = video.get("audio") or {}
                if audio_link is None and audio.get("link"):
                    audio_link = audio["link"]
        return audio_link
