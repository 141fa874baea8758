"""Credit and search lookups against The Movie Database (TMDB)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..config import Settings
from ..models import MediaKind, NormalizedPerson, NormalizedTitle
from .metadata import (
    MetadataUnavailableError,
    RawCredit,
    RawPersonCredits,
    RawTitleCredits,
)

logger = logging.getLogger(__name__)

_PATH_SEGMENTS: dict[MediaKind, str] = {"movie": "movie", "series": "tv"}


class TMDBClient:
    """Metadata provider backed by the TMDB v3 HTTP API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client

    async def _get(self, endpoint: str, **params: Any) -> dict[str, Any]:
        query = {"api_key": self._settings.tmdb_api_key, "language": "en-US", **params}
        try:
            response = await self._client.get(endpoint, params=query)
        except httpx.HTTPError as exc:
            logger.warning("TMDB request to %s failed: %s", endpoint, exc)
            raise MetadataUnavailableError(f"TMDB request to {endpoint} failed") from exc
        if response.status_code >= 400:
            logger.warning(
                "TMDB request to %s returned %s: %s",
                endpoint,
                response.status_code,
                response.text,
            )
            raise MetadataUnavailableError(
                f"TMDB request to {endpoint} returned {response.status_code}"
            )
        payload = response.json()
        if not isinstance(payload, dict):
            raise MetadataUnavailableError(f"Unexpected TMDB payload for {endpoint}")
        return payload

    async def get_title_credits(
        self, title_id: int, media_kind: MediaKind
    ) -> RawTitleCredits:
        """Return cast and crew for a movie or series.

        Series cast comes from the aggregate endpoint so long-running shows
        list everyone who appeared; their crew needs a second call.
        """

        if media_kind == "movie":
            payload = await self._get(f"/movie/{title_id}/credits")
            return RawTitleCredits(
                cast=self._entries(payload, "cast"),
                crew=self._entries(payload, "crew"),
            )
        if media_kind == "series":
            aggregate, credits = await asyncio.gather(
                self._get(f"/tv/{title_id}/aggregate_credits"),
                self._get(f"/tv/{title_id}/credits"),
            )
            return RawTitleCredits(
                cast=[
                    self._flatten_aggregate_cast(entry)
                    for entry in self._entries(aggregate, "cast")
                ],
                crew=self._entries(credits, "crew"),
            )
        raise ValueError(f"Unsupported media kind: {media_kind}")

    async def get_person_credits(self, person_id: int) -> RawPersonCredits:
        movie_payload, tv_payload = await asyncio.gather(
            self._get(f"/person/{person_id}/movie_credits"),
            self._get(f"/person/{person_id}/tv_credits"),
        )
        return RawPersonCredits(
            movie_cast=self._entries(movie_payload, "cast"),
            movie_crew=self._entries(movie_payload, "crew"),
            tv_cast=self._entries(tv_payload, "cast"),
            tv_crew=self._entries(tv_payload, "crew"),
        )

    async def search_titles(self, query: str, media_kind: MediaKind) -> list[NormalizedTitle]:
        """Search movies or series, most popular first."""

        normalized_query = (query or "").strip()
        if not normalized_query:
            return []
        endpoint = f"/search/{_PATH_SEGMENTS[media_kind]}"
        payload = await self._get(
            endpoint, query=normalized_query, include_adult="false", page=1
        )
        titles: list[NormalizedTitle] = []
        for entry in self._entries(payload, "results"):
            try:
                titles.append(
                    NormalizedTitle.model_validate({**entry, "media_kind": media_kind})
                )
            except ValueError:
                logger.debug("Skipping malformed TMDB search result: %r", entry)
        titles.sort(key=lambda title: title.popularity, reverse=True)
        return titles

    async def search_people(self, query: str) -> list[NormalizedPerson]:
        """Search people, keeping performers and sorting by popularity."""

        normalized_query = (query or "").strip()
        if not normalized_query:
            return []
        payload = await self._get(
            "/search/person", query=normalized_query, include_adult="false", page=1
        )
        people: list[NormalizedPerson] = []
        for entry in self._entries(payload, "results"):
            department = entry.get("known_for_department")
            if department and department != "Acting":
                continue
            try:
                people.append(NormalizedPerson.model_validate(entry))
            except ValueError:
                logger.debug("Skipping malformed TMDB person result: %r", entry)
        people.sort(key=lambda person: person.popularity or 0.0, reverse=True)
        return people

    def image_url(self, path: str | None) -> str | None:
        if not path:
            return None
        if path.startswith("http"):
            return path
        return f"{str(self._settings.tmdb_image_base_url).rstrip('/')}{path}"

    @staticmethod
    def _entries(payload: dict[str, Any], key: str) -> list[RawCredit]:
        value = payload.get(key)
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, dict)]

    @staticmethod
    def _flatten_aggregate_cast(entry: RawCredit) -> RawCredit:
        roles = entry.get("roles")
        if not isinstance(roles, list):
            return entry
        characters = [
            role["character"].strip()
            for role in roles
            if isinstance(role, dict)
            and isinstance(role.get("character"), str)
            and role["character"].strip()
        ]
        flattened = {key: value for key, value in entry.items() if key != "roles"}
        flattened["character"] = " / ".join(dict.fromkeys(characters)) or None
        return flattened
