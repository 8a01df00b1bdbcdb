from datetime import datetime, timezone

import pytest

from opdeck.domain.models import Card, CatalogEntry, ThemeRecord
from opdeck.infrastructure.persistence import (
    CardStore,
    JsonBlobStore,
    ScheduleRepository,
    ThemeCache,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store(tmp_path):
    """A blob store rooted in a fresh temp directory."""
    return JsonBlobStore(tmp_path / "data")


@pytest.fixture
def cache(store):
    return ThemeCache(store)


@pytest.fixture
def cards(store):
    return CardStore(store)


@pytest.fixture
def schedule(store):
    return ScheduleRepository(store)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and data
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def make_entry():
    """Factory for catalog entries."""

    def _make(catalog_id=1, romaji="Shingeki no Kyojin", english=None, native=None):
        return CatalogEntry(
            catalog_id=catalog_id,
            title_romaji=romaji,
            title_english=english,
            title_native=native,
            season="SPRING",
            year=2013,
        )

    return _make


@pytest.fixture
def make_card(make_entry):
    """Factory for cards built the way an import builds them."""

    def _make(catalog_id=1, sequence=1, song="Guren no Yumiya"):
        return Card.from_theme(
            make_entry(catalog_id),
            ThemeRecord(song_title=song, artists=["Linked Horizon"], sequence_number=sequence),
        )

    return _make
