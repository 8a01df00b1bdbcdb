from unittest.mock import AsyncMock, MagicMock

import pytest

from opdeck.domain.errors import NetworkError
from opdeck.infrastructure.adapters.anilist import AniListFetcher


def _page(items, has_next):
    return {
        "data": {
            "Page": {
                "pageInfo": {"hasNextPage": has_next},
                "mediaList": [{"media": m} for m in items],
            }
        }
    }


def _media(mid, romaji=None, english=None, native=None):
    return {
        "id": mid,
        "title": {"romaji": romaji, "english": english, "native": native},
        "season": "FALL",
        "seasonYear": 2019,
    }


@pytest.fixture
def client():
    c = MagicMock()
    c.post_json = AsyncMock()
    return c


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.mark.asyncio
async def test_fetch_all_follows_pages(client, sleep):
    client.post_json.side_effect = [
        _page([_media(1, "Kimetsu no Yaiba"), _media(2, "Dr. Stone")], True),
        _page([_media(3, None, "Vinland Saga")], False),
    ]
    fetcher = AniListFetcher(client, page_size=2, page_delay_ms=250, sleep=sleep)

    entries = await fetcher.fetch_all("someone")

    assert [e.catalog_id for e in entries] == [1, 2, 3]
    assert entries[2].title_variants == ["Vinland Saga"]
    assert entries[0].season == "FALL"
    assert entries[0].year == 2019

    pages = [call.args[1]["variables"]["page"] for call in client.post_json.await_args_list]
    assert pages == [1, 2]
    assert client.post_json.await_args_list[0].args[1]["variables"]["perPage"] == 2
    assert client.post_json.await_args_list[0].args[1]["variables"]["userName"] == "someone"
    sleep.assert_awaited_once_with(0.25)


@pytest.mark.asyncio
async def test_empty_list_is_not_an_error(client, sleep):
    client.post_json.return_value = _page([], False)
    fetcher = AniListFetcher(client, sleep=sleep)

    assert await fetcher.fetch_all("nobody") == []
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_has_next_stops(client, sleep):
    client.post_json.return_value = {"data": {"Page": {"mediaList": [{"media": _media(9, "X")}]}}}
    fetcher = AniListFetcher(client, sleep=sleep)

    entries = await fetcher.fetch_all("u")

    assert [e.catalog_id for e in entries] == [9]
    assert client.post_json.await_count == 1


@pytest.mark.asyncio
async def test_duplicate_media_collapsed(client, sleep):
    client.post_json.side_effect = [
        _page([_media(1, "A"), _media(1, "A")], True),
        _page([_media(1, "A"), _media(2, "B")], False),
    ]
    fetcher = AniListFetcher(client, sleep=sleep)

    entries = await fetcher.fetch_all("u")

    assert [e.catalog_id for e in entries] == [1, 2]


@pytest.mark.asyncio
async def test_skips_entries_without_media(client, sleep):
    body = _page([_media(4, "D")], False)
    body["data"]["Page"]["mediaList"].append({"media": None})
    client.post_json.return_value = body

    entries = await AniListFetcher(client, sleep=sleep).fetch_all("u")

    assert len(entries) == 1


@pytest.mark.asyncio
async def test_graphql_errors_raise(client, sleep):
    client.post_json.return_value = {"errors": [{"message": "User not found"}], "data": None}

    with pytest.raises(NetworkError, match="User not found"):
        await AniListFetcher(client, sleep=sleep).fetch_all("ghost")


@pytest.mark.asyncio
async def test_network_errors_propagate(client, sleep):
    client.post_json.side_effect = NetworkError(500, "down")

    with pytest.raises(NetworkError):
        await AniListFetcher(client, sleep=sleep).fetch_all("u")


@pytest.mark.asyncio
async def test_non_object_body_raises_network_error(client, sleep):
    client.post_json.return_value = ["not", "a", "page"]

    with pytest.raises(NetworkError, match="unexpected response body: list"):
        await AniListFetcher(client, sleep=sleep).fetch_all("u")
