"""
Repositories for the four persisted aggregates.

Each repository loads its blob once at construction, keeps the in-memory copy
authoritative, and rewrites the whole blob after every change. Writes are a
best-effort mirror: a failed write is logged and the in-memory state stands.
"""

import builtins
import logging
from dataclasses import asdict, fields
from datetime import datetime, timedelta, timezone
from typing import Any

from opdeck.domain.constants import (
    CARDS_KEY,
    DEFAULT_MAX_STORED_CARDS,
    SCHEDULE_KEY,
    SETTINGS_KEY,
    STARTING_EASE,
    THEME_CACHE_KEY,
)
from opdeck.domain.models import Card, ScheduleState, ThemeRecord
from opdeck.domain.ports import BlobStore

logger = logging.getLogger(__name__)

_CARD_FIELDS = {f.name for f in fields(Card)}
_THEME_FIELDS = {f.name for f in fields(ThemeRecord)}


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def theme_to_dict(record: ThemeRecord) -> dict[str, Any]:
    return asdict(record)


def theme_from_dict(data: dict[str, Any]) -> ThemeRecord:
    data = {k: v for k, v in data.items() if k in _THEME_FIELDS}
    artists = data.get("artists") or []
    if isinstance(artists, str):
        artists = [artists]
    data["artists"] = list(artists)
    data["sequence_number"] = int(data.get("sequence_number") or 1)
    return ThemeRecord(**data)


def card_to_dict(card: Card) -> dict[str, Any]:
    return asdict(card)


def card_from_dict(data: dict[str, Any]) -> Card:
    data = {k: v for k, v in data.items() if k in _CARD_FIELDS}
    data["artists"] = list(data.get("artists") or [])
    return Card(**data)


def state_to_dict(state: ScheduleState) -> dict[str, Any]:
    return {
        "interval_seconds": state.interval.total_seconds(),
        "repetitions": state.repetitions,
        "attempts": state.attempts,
        "successes": state.successes,
        "due_at": state.due_at.isoformat(),
        "ease": state.ease,
    }


def state_from_dict(data: dict[str, Any]) -> ScheduleState:
    due_at = datetime.fromisoformat(data["due_at"])
    if due_at.tzinfo is None:
        due_at = due_at.replace(tzinfo=timezone.utc)
    return ScheduleState(
        interval=timedelta(seconds=float(data.get("interval_seconds", 0))),
        repetitions=int(data.get("repetitions", 0)),
        attempts=int(data.get("attempts", 0)),
        successes=int(data.get("successes", 0)),
        due_at=due_at,
        ease=float(data.get("ease", STARTING_EASE)),
    )


class _BlobRepository:
    key: str = ""

    def __init__(self, store: BlobStore):
        self.store = store

    def _load(self) -> Any | None:
        return self.store.read(self.key)

    def _persist(self, value: Any) -> None:
        try:
            self.store.write(self.key, value)
        except OSError as e:
            logger.warning(f"[store] Failed to persist '{self.key}': {e}")


# ---------------------------------------------------------------------------
# Theme cache
# ---------------------------------------------------------------------------


class ThemeCache(_BlobRepository):
    """catalog_id -> resolved opening themes.

    An empty list means "resolved, nothing found" and is a hit like any other.
    """

    key = THEME_CACHE_KEY

    def __init__(self, store: BlobStore):
        super().__init__(store)
        self._entries: dict[int, list[ThemeRecord]] = {}
        raw = self._load() or {}
        if not isinstance(raw, dict):
            raw = {}
        for cid, records in raw.items():
            try:
                self._entries[int(cid)] = [theme_from_dict(r) for r in records]
            except (AttributeError, TypeError, ValueError) as e:
                logger.debug(f"[cache] Dropping malformed entry {cid!r}: {e}")

    def __contains__(self, catalog_id: int) -> bool:
        return catalog_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, catalog_id: int) -> list[ThemeRecord] | None:
        records = self._entries.get(catalog_id)
        return list(records) if records is not None else None

    def put(self, catalog_id: int, records: list[ThemeRecord]) -> None:
        self._entries[catalog_id] = list(records)
        self._save()

    def clear(self) -> None:
        self._entries.clear()
        self._save()

    def _save(self) -> None:
        self._persist(
            {str(cid): [theme_to_dict(r) for r in recs] for cid, recs in self._entries.items()}
        )


# ---------------------------------------------------------------------------
# Card store
# ---------------------------------------------------------------------------


class CardStore(_BlobRepository):
    """Deduplicated card collection in insertion order.

    Writing an existing id replaces the record in place. Past ``max_cards``
    the oldest cards are evicted; the collection is never erased wholesale.
    """

    key = CARDS_KEY

    def __init__(self, store: BlobStore, max_cards: int = DEFAULT_MAX_STORED_CARDS):
        super().__init__(store)
        self.max_cards = max_cards
        self._cards: dict[str, Card] = {}
        raw = self._load() or []
        if not isinstance(raw, list):
            raw = []
        for item in raw:
            try:
                card = card_from_dict(item)
            except (AttributeError, TypeError, ValueError, KeyError) as e:
                logger.debug(f"[cards] Dropping malformed card {item!r}: {e}")
                continue
            self._cards[card.id] = card

    def __contains__(self, card_id: str) -> bool:
        return card_id in self._cards

    def __len__(self) -> int:
        return len(self._cards)

    def get(self, card_id: str) -> Card | None:
        return self._cards.get(card_id)

    def all(self) -> list[Card]:
        return list(self._cards.values())

    def ids(self) -> set[str]:
        return set(self._cards)

    def add_many(self, cards: list[Card]) -> int:
        """Upsert cards and persist. Returns how many ids were new."""
        added = 0
        for card in cards:
            if card.id not in self._cards:
                added += 1
            self._cards[card.id] = card
        self._enforce_retention()
        self._save()
        return added

    def dedupe(self) -> int:
        """Rewrite the blob from the deduplicated collection. Returns its size."""
        self._enforce_retention()
        self._save()
        return len(self._cards)

    def _enforce_retention(self) -> None:
        overflow = len(self._cards) - self.max_cards
        if overflow <= 0:
            return
        for card_id in list(self._cards)[:overflow]:
            del self._cards[card_id]
        logger.info(f"[cards] Evicted {overflow} oldest card(s) to stay under {self.max_cards}")

    def _save(self) -> None:
        self._persist([card_to_dict(c) for c in self._cards.values()])


# ---------------------------------------------------------------------------
# Schedule states
# ---------------------------------------------------------------------------


class ScheduleRepository(_BlobRepository):
    key = SCHEDULE_KEY

    def __init__(self, store: BlobStore):
        super().__init__(store)
        self._states: dict[str, ScheduleState] = {}
        raw = self._load() or {}
        if not isinstance(raw, dict):
            raw = {}
        for card_id, data in raw.items():
            try:
                self._states[card_id] = state_from_dict(data)
            except (AttributeError, TypeError, ValueError, KeyError) as e:
                logger.debug(f"[schedule] Dropping malformed state for {card_id}: {e}")

    def get(self, card_id: str) -> ScheduleState | None:
        return self._states.get(card_id)

    def set(self, card_id: str, state: ScheduleState) -> None:
        self._states[card_id] = state
        self._save()

    def delete(self, card_id: str) -> None:
        if self._states.pop(card_id, None) is not None:
            self._save()

    def prune(self, keep_ids: builtins.set[str]) -> int:
        """Drop states whose card is no longer in the deck. Returns how many were dropped."""
        orphans = [cid for cid in self._states if cid not in keep_ids]
        for card_id in orphans:
            del self._states[card_id]
        if orphans:
            logger.info(f"[schedule] Pruned {len(orphans)} state(s) of evicted cards")
            self._save()
        return len(orphans)

    def clear(self) -> None:
        self._states.clear()
        self._save()

    def all(self) -> dict[str, ScheduleState]:
        return dict(self._states)

    def _save(self) -> None:
        self._persist({cid: state_to_dict(s) for cid, s in self._states.items()})


# ---------------------------------------------------------------------------
# Run settings
# ---------------------------------------------------------------------------


class SettingsRepository(_BlobRepository):
    """Raw run-settings blob; validation happens in the application layer."""

    key = SETTINGS_KEY

    def load(self) -> dict[str, Any]:
        raw = self._load()
        return raw if isinstance(raw, dict) else {}

    def save(self, values: dict[str, Any]) -> None:
        self._persist(values)
