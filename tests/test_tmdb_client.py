"""TMDB client request and response handling tests."""

from __future__ import annotations

import httpx
import pytest

from app.config import Settings
from app.services.metadata import MetadataUnavailableError
from app.services.tmdb import TMDBClient


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"TMDB_API_KEY": "test-key"}
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[arg-type]


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url="https://api.themoviedb.org/3",
        transport=httpx.MockTransport(handler),
    )


def test_client_requires_api_key() -> None:
    with pytest.raises(ValueError, match="TMDB API key is required"):
        TMDBClient(_settings(TMDB_API_KEY=None), httpx.AsyncClient())


@pytest.mark.anyio("asyncio")
async def test_movie_credits_use_credits_endpoint() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(
            200,
            json={
                "cast": [{"id": 1, "name": "X", "character": "Hero"}, "junk"],
                "crew": [{"id": 2, "name": "Y", "job": "Director"}],
            },
        )

    async with _client(handler) as http_client:
        credits = await TMDBClient(_settings(), http_client).get_title_credits(238, "movie")

    assert [entry["id"] for entry in credits.cast] == [1]
    assert [entry["id"] for entry in credits.crew] == [2]
    assert seen[0].path == "/3/movie/238/credits"
    assert seen[0].params["api_key"] == "test-key"
    assert seen[0].params["language"] == "en-US"


@pytest.mark.anyio("asyncio")
async def test_series_cast_comes_from_aggregate_credits() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/aggregate_credits"):
            return httpx.Response(
                200,
                json={
                    "cast": [
                        {
                            "id": 17419,
                            "name": "Bryan Cranston",
                            "roles": [
                                {"character": "Walter White"},
                                {"character": "Heisenberg"},
                                {"character": "Walter White"},
                            ],
                        },
                        {"id": 5, "name": "Extra", "roles": [{"character": ""}]},
                    ]
                },
            )
        return httpx.Response(200, json={"cast": [], "crew": [{"id": 66633, "name": "Vince Gilligan", "job": "Creator"}]})

    async with _client(handler) as http_client:
        credits = await TMDBClient(_settings(), http_client).get_title_credits(1396, "series")

    assert credits.cast[0]["character"] == "Walter White / Heisenberg"
    assert "roles" not in credits.cast[0]
    assert credits.cast[1]["character"] is None
    assert [entry["id"] for entry in credits.crew] == [66633]


@pytest.mark.anyio("asyncio")
async def test_person_credits_combine_movie_and_tv() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/movie_credits"):
            return httpx.Response(200, json={"cast": [{"id": 10}], "crew": []})
        return httpx.Response(200, json={"cast": [], "crew": [{"id": 20}]})

    async with _client(handler) as http_client:
        credits = await TMDBClient(_settings(), http_client).get_person_credits(31)

    assert [entry["id"] for entry in credits.movie_cast] == [10]
    assert credits.movie_crew == []
    assert credits.tv_cast == []
    assert [entry["id"] for entry in credits.tv_crew] == [20]


@pytest.mark.anyio("asyncio")
async def test_error_status_raises_metadata_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"status_message": "not found"})

    async with _client(handler) as http_client:
        client = TMDBClient(_settings(), http_client)
        with pytest.raises(MetadataUnavailableError, match="404"):
            await client.get_title_credits(1, "movie")


@pytest.mark.anyio("asyncio")
async def test_transport_failure_raises_metadata_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    async with _client(handler) as http_client:
        client = TMDBClient(_settings(), http_client)
        with pytest.raises(MetadataUnavailableError):
            await client.get_person_credits(1)


@pytest.mark.anyio("asyncio")
async def test_search_titles_maps_media_kind_and_sorts() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": 1, "name": "Quiet Show", "first_air_date": "2001-02-03", "popularity": 1},
                    {"id": 2, "name": "Loud Show", "first_air_date": "2010-01-01", "popularity": 40},
                    {"id": "bad", "name": "Broken"},
                ]
            },
        )

    async with _client(handler) as http_client:
        client = TMDBClient(_settings(), http_client)
        assert await client.search_titles("   ", "series") == []
        results = await client.search_titles(" show ", "series")

    assert len(seen) == 1
    assert seen[0].path == "/3/search/tv"
    assert seen[0].params["query"] == "show"
    assert [title.identity for title in results] == [("series", 2), ("series", 1)]
    assert results[1].release_year == 2001


@pytest.mark.anyio("asyncio")
async def test_search_people_keeps_performers() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": 1, "name": "Director", "known_for_department": "Directing", "popularity": 90},
                    {"id": 2, "name": "Actor", "known_for_department": "Acting", "popularity": 5},
                    {"id": 3, "name": "Star", "known_for_department": "Acting", "popularity": 50},
                ]
            },
        )

    async with _client(handler) as http_client:
        results = await TMDBClient(_settings(), http_client).search_people("a")

    assert [person.id for person in results] == [3, 2]


def test_image_url_joins_configured_base() -> None:
    client = TMDBClient(_settings(), httpx.AsyncClient())

    assert client.image_url(None) is None
    assert client.image_url("/abc.jpg") == "https://image.tmdb.org/t/p/w185/abc.jpg"
    assert client.image_url("https://cdn.example.com/x.jpg") == "https://cdn.example.com/x.jpg"
