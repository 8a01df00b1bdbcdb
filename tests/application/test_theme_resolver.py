from unittest.mock import AsyncMock

import pytest

from opdeck.application.theme_resolver import ThemeResolver
from opdeck.domain.models import ThemeRecord
from opdeck.infrastructure.persistence import ThemeCache

TANK = ThemeRecord(song_title="Tank!", artists=["The Seatbelts"], sequence_number=1)


@pytest.fixture
def index():
    return AsyncMock()


@pytest.mark.asyncio
async def test_cache_hit_makes_no_request(index, cache):
    cache.put(1, [TANK])
    resolver = ThemeResolver(index, cache)

    assert await resolver.resolve(1, ["Cowboy Bebop"]) == [TANK]
    index.search_openings.assert_not_awaited()


@pytest.mark.asyncio
async def test_cached_empty_list_makes_no_request(index, cache):
    cache.put(2, [])
    resolver = ThemeResolver(index, cache)

    assert await resolver.resolve(2, ["Obscure Show"]) == []
    index.search_openings.assert_not_awaited()


@pytest.mark.asyncio
async def test_falls_back_to_english_title(index, cache, store):
    index.search_openings.side_effect = [[], [TANK]]
    resolver = ThemeResolver(index, cache)

    records = await resolver.resolve(1, ["Kaubôi Bibappu", "Cowboy Bebop", "カウボーイビバップ"])

    assert records == [TANK]
    assert [c.args[0] for c in index.search_openings.await_args_list] == [
        "Kaubôi Bibappu",
        "Cowboy Bebop",
    ]
    assert ThemeCache(store).get(1) == [TANK]


@pytest.mark.asyncio
async def test_no_match_caches_empty_result(index, cache):
    index.search_openings.return_value = []
    resolver = ThemeResolver(index, cache)

    assert await resolver.resolve(3, ["A", "B"]) == []
    assert index.search_openings.await_count == 2
    assert cache.get(3) == []

    await resolver.resolve(3, ["A", "B"])
    assert index.search_openings.await_count == 2


@pytest.mark.asyncio
async def test_blank_variants_skipped(index, cache):
    index.search_openings.return_value = [TANK]
    resolver = ThemeResolver(index, cache)

    await resolver.resolve(4, ["", "  ", "Real Title"])

    index.search_openings.assert_awaited_once_with("Real Title")


@pytest.mark.asyncio
async def test_no_variants_resolves_empty(index, cache):
    resolver = ThemeResolver(index, cache)

    assert await resolver.resolve(5, []) == []
    index.search_openings.assert_not_awaited()
    assert 5 in cache


@pytest.mark.asyncio
async def test_lookup_failure_is_not_cached(index, cache):
    index.search_openings.side_effect = RuntimeError("index down")
    resolver = ThemeResolver(index, cache)

    with pytest.raises(RuntimeError):
        await resolver.resolve(6, ["Title"])
    assert 6 not in cache


@pytest.mark.asyncio
async def test_resolve_entry_uses_title_priority(index, cache, make_entry):
    index.search_openings.return_value = [TANK]
    entry = make_entry(7, romaji=None, english="English", native="ネイティブ")

    await ThemeResolver(index, cache).resolve_entry(entry)

    index.search_openings.assert_awaited_once_with("English")
