"""
Domain models for the opening deck.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


@dataclass(frozen=True)
class CatalogEntry:
    """
    One show from the user's remote list.

    Attributes:
        catalog_id: Remote catalog identifier of the show.
        title_romaji: Romanized title, if known.
        title_english: English title, if known.
        title_native: Native-script title, if known.
        season: Broadcast season marker (e.g. "SPRING").
        year: Broadcast year.
    """

    catalog_id: int
    title_romaji: str | None = None
    title_english: str | None = None
    title_native: str | None = None
    season: str | None = None
    year: int | None = None

    @property
    def title_variants(self) -> list[str]:
        """Non-empty titles in lookup priority order: romaji, english, native."""
        variants = [self.title_romaji, self.title_english, self.title_native]
        return [v for v in variants if v and v.strip()]

    @property
    def display_title(self) -> str:
        variants = self.title_variants
        return variants[0] if variants else f"#{self.catalog_id}"


@dataclass(frozen=True)
class ThemeRecord:
    """
    An opening theme resolved from the theme index.

    A missing media_url is valid: the card simply has no preview.
    """

    song_title: str
    artists: list[str] = field(default_factory=list)
    sequence_number: int = 1
    media_url: str | None = None


def card_id_for(catalog_id: int, sequence_number: int) -> str:
    """Deterministic card identity: re-importing the same opening yields the same id."""
    return f"{catalog_id}::OP{sequence_number}"


@dataclass(frozen=True)
class Card:
    id: str
    catalog_id: int
    title_romaji: str | None
    title_english: str | None
    title_native: str | None
    sequence_number: int
    song_title: str
    artists: list[str] = field(default_factory=list)
    media_url: str | None = None
    season: str | None = None
    year: int | None = None

    @classmethod
    def from_theme(cls, entry: CatalogEntry, theme: ThemeRecord) -> "Card":
        return cls(
            id=card_id_for(entry.catalog_id, theme.sequence_number),
            catalog_id=entry.catalog_id,
            title_romaji=entry.title_romaji,
            title_english=entry.title_english,
            title_native=entry.title_native,
            sequence_number=theme.sequence_number,
            song_title=theme.song_title,
            artists=list(theme.artists),
            media_url=theme.media_url,
            season=entry.season,
            year=entry.year,
        )

    @property
    def display_title(self) -> str:
        return self.title_romaji or self.title_english or self.title_native or f"#{self.catalog_id}"

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on titles, song title and artists."""
        q = query.lower()
        haystack = [
            self.title_romaji or "",
            self.title_english or "",
            self.title_native or "",
            self.song_title or "",
            *self.artists,
        ]
        return any(q in text.lower() for text in haystack)


class Grade(str, Enum):
    """Review outcome buttons. Each policy accepts a closed subset."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


@dataclass(frozen=True)
class ScheduleState:
    """
    Review schedule of one card.

    Attributes:
        interval: Gap assigned by the last review.
        repetitions: Consecutive non-Again reviews.
        attempts: Total reviews.
        successes: Reviews with a non-failing grade (<= attempts).
        due_at: Instant at or after which the card is eligible for review.
        ease: Ease factor (only meaningful to ease-based policies).
    """

    interval: timedelta
    repetitions: int
    attempts: int
    successes: int
    due_at: datetime
    ease: float

    @classmethod
    def initial(cls, now: datetime, ease: float) -> "ScheduleState":
        return cls(
            interval=timedelta(0),
            repetitions=0,
            attempts=0,
            successes=0,
            due_at=now,
            ease=ease,
        )

    def is_due(self, now: datetime) -> bool:
        return self.due_at <= now
