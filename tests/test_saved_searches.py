"""Saved search persistence, migration and import/export tests."""

from __future__ import annotations

import json

import pytest

from app.config import Settings
from app.models import NormalizedPerson, NormalizedTitle
from app.services.saved_searches import (
    SavedSearchStore,
    default_search_name,
    generate_search_id,
    migrate_saved_search,
)
from app.services.storage import MemoryKeyValueStore

SEARCHES_KEY = "actor-matches:savedSearches"


def build_store(storage: MemoryKeyValueStore | None = None, **overrides: object) -> SavedSearchStore:
    settings = Settings(_env_file=None, **overrides)  # type: ignore[arg-type]
    return SavedSearchStore(storage or MemoryKeyValueStore(), settings)


def _legacy_search(search_id: str, modified: str, **extra: object) -> dict[str, object]:
    return {
        "id": search_id,
        "name": f"Search {search_id}",
        "type": "media",
        "dateCreated": "2023-01-01T00:00:00.000Z",
        "dateModified": modified,
        **extra,
    }


def test_generate_search_id_format() -> None:
    first = generate_search_id()
    second = generate_search_id()

    assert first.startswith("search_")
    prefix, millis, suffix = first.split("_")
    assert prefix == "search"
    assert millis.isdigit()
    assert len(suffix) == 9
    assert first != second


def test_migrate_folds_legacy_slots_into_lists() -> None:
    search = migrate_saved_search(
        _legacy_search(
            "a",
            "2023-02-01T00:00:00.000Z",
            mediaItem1={"id": 238, "title": "The Godfather", "media_type": "movie"},
            mediaItem2={"id": 1396, "name": "Breaking Bad", "media_type": "tv"},
        )
    )

    assert search is not None
    assert [item.identity for item in search.media_items] == [("movie", 238), ("series", 1396)]
    assert search.people == []


def test_migrate_rejects_incomplete_records() -> None:
    assert migrate_saved_search("junk") is None
    assert migrate_saved_search({"id": "x", "name": "No dates", "type": "media"}) is None
    assert (
        migrate_saved_search(_legacy_search("x", "2023-01-01T00:00:00Z", type="mixed"))
        is None
    )


def test_default_search_names() -> None:
    titles = [NormalizedTitle(id=1, display_name="Heat"), NormalizedTitle(id=2, display_name="Ronin")]
    people = [NormalizedPerson(id=1, name="Al")]

    assert default_search_name(titles, search_type="media") == "Heat & Ronin"
    assert default_search_name(titles[:1], search_type="media") == "Heat"
    assert default_search_name(people, search_type="person") == "Al Filmography"
    assert default_search_name([], search_type="person") == "Person Comparison"
    assert (
        default_search_name([*titles, NormalizedTitle(id=3, display_name="Ransom")], search_type="media")
        == "Heat + 2 more"
    )


@pytest.mark.anyio("asyncio")
async def test_load_migrates_sorts_and_writes_back() -> None:
    storage = MemoryKeyValueStore(
        {
            SEARCHES_KEY: json.dumps(
                [
                    _legacy_search("old", "2023-01-02T00:00:00.000Z"),
                    {"broken": True},
                    _legacy_search(
                        "new",
                        "2023-03-01T00:00:00.000Z",
                        type="person",
                        person1={"id": 5, "name": "Y"},
                    ),
                ]
            )
        }
    )
    store = build_store(storage)

    searches = await store.load()

    assert [search.id for search in searches] == ["new", "old"]
    assert [person.id for person in searches[0].people] == [5]
    persisted = json.loads(storage.data[SEARCHES_KEY])
    assert [item["id"] for item in persisted] == ["new", "old"]
    assert persisted[0]["people"] == [{"id": 5, "name": "Y", "profile_path": None, "popularity": None, "known_for_department": None}]
    assert "person1" not in persisted[0]


@pytest.mark.anyio("asyncio")
async def test_save_prepends_and_respects_limit() -> None:
    storage = MemoryKeyValueStore()
    store = build_store(storage, SAVED_SEARCH_LIMIT=2)
    await store.load()

    first = await store.save_media_comparison("", [NormalizedTitle(id=1, display_name="Heat")])
    second = await store.save_person_comparison("Pair", [NormalizedPerson(id=1, name="Al")])
    third = await store.save_person_comparison("Trio", [NormalizedPerson(id=2, name="Bo")])

    assert first.name == "Heat"
    assert [search.id for search in store.searches] == [third.id, second.id]
    assert store.get(first.id) is None
    assert len(json.loads(storage.data[SEARCHES_KEY])) == 2


@pytest.mark.anyio("asyncio")
async def test_update_bumps_modified_date_and_protects_identity() -> None:
    store = build_store()
    await store.load()
    saved = await store.save_media_comparison("Name", [NormalizedTitle(id=1, display_name="Heat")])

    updated = await store.update(saved.id, name="Renamed", tags=["crime"])

    assert updated is not None
    assert updated.name == "Renamed"
    assert updated.tags == ["crime"]
    assert updated.date_created == saved.date_created
    assert updated.modified_at >= saved.modified_at
    assert await store.update("missing", name="x") is None
    with pytest.raises(ValueError):
        await store.update(saved.id, id="other")


@pytest.mark.anyio("asyncio")
async def test_delete_search_and_filters() -> None:
    store = build_store()
    await store.load()
    media = await store.save(
        name="Crime night",
        search_type="media",
        media_items=[NormalizedTitle(id=1, display_name="Heat")],
        description="Mann films",
        tags=["Crime"],
    )
    person = await store.save_person_comparison("Leads", [NormalizedPerson(id=1, name="Al")])

    assert [search.id for search in store.search("mann")] == [media.id]
    assert [search.id for search in store.search("crime")] == [media.id]
    assert len(store.search("  ")) == 2
    assert [search.id for search in store.by_type("person")] == [person.id]
    assert [search.id for search in store.recent(1)] == [person.id]

    assert await store.delete(media.id) is True
    assert await store.delete(media.id) is False
    assert [search.id for search in store.searches] == [person.id]


@pytest.mark.anyio("asyncio")
async def test_export_then_import_skips_existing_ids() -> None:
    source = build_store()
    await source.load()
    await source.save_media_comparison("One", [NormalizedTitle(id=1, display_name="Heat")])
    exported = source.export_json()

    target = build_store()
    await target.load()
    assert await target.import_json(exported) == 1
    assert await target.import_json(exported) == 0
    assert [search.name for search in target.searches] == ["One"]


@pytest.mark.anyio("asyncio")
async def test_import_rejects_invalid_payloads() -> None:
    store = build_store()
    await store.load()

    with pytest.raises(ValueError, match="Invalid data format"):
        await store.import_json("{not json")
    with pytest.raises(ValueError, match="Invalid data format"):
        await store.import_json(json.dumps({"id": "x"}))
    with pytest.raises(ValueError, match="No valid searches"):
        await store.import_json(json.dumps([{"id": "x"}]))


@pytest.mark.anyio("asyncio")
async def test_clear_removes_the_stored_key() -> None:
    storage = MemoryKeyValueStore()
    store = build_store(storage)
    await store.load()
    await store.save_person_comparison("Leads", [NormalizedPerson(id=1, name="Al")])

    await store.clear()

    assert store.searches == ()
    assert SEARCHES_KEY not in storage.data
