"""Named snapshots of title or people selections."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import Settings
from ..models import NormalizedPerson, NormalizedTitle
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

SearchType = Literal["media", "person"]


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_search_id() -> str:
    return f"search_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


def _parse_timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SavedSearch(BaseModel):
    """A stored comparison the user can restore later."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    type: SearchType
    date_created: str = Field(alias="dateCreated")
    date_modified: str = Field(alias="dateModified")
    media_items: list[NormalizedTitle] = Field(default_factory=list, alias="mediaItems")
    people: list[NormalizedPerson] = Field(default_factory=list)
    description: str | None = None
    tags: list[str] = Field(default_factory=list)

    @property
    def modified_at(self) -> datetime:
        return _parse_timestamp(self.date_modified)

    def matches(self, query: str) -> bool:
        needle = query.strip().lower()
        if not needle:
            return True
        if needle in self.name.lower():
            return True
        if self.description and needle in self.description.lower():
            return True
        return any(needle in tag.lower() for tag in self.tags)


def _valid_entries(model: type[BaseModel], raw: Any) -> list[Any]:
    if not isinstance(raw, list):
        return []
    valid = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            valid.append(model.model_validate(item))
        except ValidationError:
            continue
    return valid


def migrate_saved_search(raw: Any) -> SavedSearch | None:
    """Validate one stored search, folding legacy two-slot fields into lists."""

    if not isinstance(raw, dict):
        return None
    required = ("id", "name", "dateCreated", "dateModified")
    if any(not isinstance(raw.get(key), str) for key in required):
        return None
    if raw.get("type") not in ("media", "person"):
        return None

    media_payload = raw.get("mediaItems")
    if media_payload is None:
        media_payload = [raw[key] for key in ("mediaItem1", "mediaItem2") if raw.get(key)]
    people_payload = raw.get("people")
    if people_payload is None:
        people_payload = [raw[key] for key in ("person1", "person2") if raw.get(key)]

    tags = raw.get("tags")
    description = raw.get("description")
    return SavedSearch(
        id=raw["id"],
        name=raw["name"],
        type=raw["type"],
        date_created=raw["dateCreated"],
        date_modified=raw["dateModified"],
        media_items=_valid_entries(NormalizedTitle, media_payload),
        people=_valid_entries(NormalizedPerson, people_payload),
        description=description if isinstance(description, str) else None,
        tags=[tag for tag in tags if isinstance(tag, str)] if isinstance(tags, list) else [],
    )


def default_search_name(
    entries: Sequence[NormalizedTitle] | Sequence[NormalizedPerson],
    *,
    search_type: SearchType,
) -> str:
    """Build a readable name from the selection being saved."""

    labels = [
        entry.display_name if isinstance(entry, NormalizedTitle) else entry.name
        for entry in entries
    ]
    if not labels:
        return "Media Comparison" if search_type == "media" else "Person Comparison"
    if len(labels) == 1:
        return labels[0] if search_type == "media" else f"{labels[0]} Filmography"
    if len(labels) == 2:
        return f"{labels[0]} & {labels[1]}"
    return f"{labels[0]} + {len(labels) - 1} more"


class SavedSearchStore:
    """Persisted list of saved searches, most recently modified first."""

    def __init__(self, storage: KeyValueStore, settings: Settings) -> None:
        self._storage = storage
        self._key = settings.storage_key("savedSearches")
        self._limit = settings.saved_search_limit
        self._searches: list[SavedSearch] = []
        self._lock = asyncio.Lock()

    @property
    def searches(self) -> tuple[SavedSearch, ...]:
        return tuple(self._searches)

    async def load(self) -> tuple[SavedSearch, ...]:
        """Load, validate and migrate stored searches, then write them back."""

        async with self._lock:
            raw = await self._storage.get(self._key)
            if raw is None:
                self._searches = []
                return self.searches
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Stored saved searches are not valid JSON; ignoring them")
                payload = []
            if not isinstance(payload, list):
                payload = []
            searches = [
                search
                for search in (migrate_saved_search(item) for item in payload)
                if search is not None
            ]
            searches.sort(key=lambda search: search.modified_at, reverse=True)
            await self._write(searches)
            self._searches = searches
        logger.info("Loaded %d saved searches", len(self._searches))
        return self.searches

    async def _write(self, searches: Sequence[SavedSearch]) -> None:
        payload = json.dumps(
            [search.model_dump(mode="json", by_alias=True) for search in searches]
        )
        await self._storage.set(self._key, payload)

    async def _commit(self, searches: list[SavedSearch]) -> None:
        await self._write(searches)
        self._searches = searches

    async def save(
        self,
        *,
        name: str,
        search_type: SearchType,
        media_items: Sequence[NormalizedTitle] = (),
        people: Sequence[NormalizedPerson] = (),
        description: str | None = None,
        tags: Sequence[str] = (),
    ) -> SavedSearch:
        now = _utcnow_iso()
        search = SavedSearch(
            id=generate_search_id(),
            name=name.strip() or default_search_name(
                media_items if search_type == "media" else people,
                search_type=search_type,
            ),
            type=search_type,
            date_created=now,
            date_modified=now,
            media_items=list(media_items),
            people=list(people),
            description=description,
            tags=list(tags),
        )
        async with self._lock:
            searches = [search, *self._searches][: self._limit]
            await self._commit(searches)
        return search

    async def save_media_comparison(
        self,
        name: str,
        titles: Sequence[NormalizedTitle],
        description: str | None = None,
    ) -> SavedSearch:
        return await self.save(
            name=name, search_type="media", media_items=titles, description=description
        )

    async def save_person_comparison(
        self,
        name: str,
        people: Sequence[NormalizedPerson],
        description: str | None = None,
    ) -> SavedSearch:
        return await self.save(
            name=name, search_type="person", people=people, description=description
        )

    def get(self, search_id: str) -> SavedSearch | None:
        return next((search for search in self._searches if search.id == search_id), None)

    async def delete(self, search_id: str) -> bool:
        async with self._lock:
            searches = [search for search in self._searches if search.id != search_id]
            if len(searches) == len(self._searches):
                return False
            await self._commit(searches)
            return True

    async def update(self, search_id: str, **changes: Any) -> SavedSearch | None:
        """Apply field changes to a saved search and bump its modified date."""

        protected = {"id", "date_created", "date_modified"}
        if protected & changes.keys():
            raise ValueError("id and timestamps cannot be updated")
        async with self._lock:
            for position, search in enumerate(self._searches):
                if search.id != search_id:
                    continue
                merged = {**search.model_dump(), **changes, "date_modified": _utcnow_iso()}
                updated = SavedSearch.model_validate(merged)
                searches = list(self._searches)
                searches[position] = updated
                await self._commit(searches)
                return updated
        return None

    async def clear(self) -> None:
        async with self._lock:
            await self._storage.delete(self._key)
            self._searches = []

    def export_json(self) -> str:
        return json.dumps(
            [search.model_dump(mode="json", by_alias=True) for search in self._searches],
            indent=2,
        )

    async def import_json(self, data: str) -> int:
        """Merge searches from an export, skipping ids that already exist.

        Returns the number of searches added.
        """

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ValueError("Invalid data format") from exc
        if not isinstance(payload, list):
            raise ValueError("Invalid data format")
        imported = [
            search
            for search in (migrate_saved_search(item) for item in payload)
            if search is not None
        ]
        if not imported:
            raise ValueError("No valid searches found in imported data")

        async with self._lock:
            existing = {search.id for search in self._searches}
            fresh = [search for search in imported if search.id not in existing]
            merged = [*self._searches, *fresh]
            merged.sort(key=lambda search: search.modified_at, reverse=True)
            await self._commit(merged[: self._limit])
        return len(fresh)

    def search(self, query: str) -> list[SavedSearch]:
        return [search for search in self._searches if search.matches(query)]

    def by_type(self, search_type: SearchType) -> list[SavedSearch]:
        return [search for search in self._searches if search.type == search_type]

    def recent(self, limit: int = 10) -> list[SavedSearch]:
        return list(self._searches[:limit])
