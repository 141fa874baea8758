"""Ordered, persisted selections of titles or people."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Iterator, Sequence, TypeVar

from pydantic import ValidationError

from ..config import Settings
from ..models import NormalizedPerson, NormalizedTitle, SelectionKind
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT", NormalizedTitle, NormalizedPerson)

SelectionListener = Callable[[tuple[Any, ...]], None]

DEFAULT_TITLES: tuple[NormalizedTitle, ...] = (
    NormalizedTitle(
        id=238,
        media_kind="movie",
        display_name="The Godfather",
        release_year=1972,
        popularity=92.179,
        poster_path="/3bhkrj58Vtu7enYsRolD1fZdja1.jpg",
        overview=(
            "Spanning the years 1945 to 1955, a chronicle of the fictional "
            "Italian-American Corleone crime family."
        ),
    ),
    NormalizedTitle(
        id=242,
        media_kind="movie",
        display_name="The Godfather Part III",
        release_year=1990,
        popularity=45.897,
        poster_path="/lm3pQ2QoQ16pextRsmnUbG2onES.jpg",
        overview=(
            "In the midst of trying to legitimize his business dealings in 1979 "
            "New York and Italy, aging mafia don Michael Corleone seeks forgiveness "
            "for his sins while taking a young protege under his wing."
        ),
    ),
)

DEFAULT_PEOPLE: tuple[NormalizedPerson, ...] = (
    NormalizedPerson(id=31, name="Tom Hanks", profile_path="/xndWFsBlClOJFRdhSt4NBwiPq2o.jpg"),
    NormalizedPerson(id=192, name="Morgan Freeman", profile_path="/jPsLqiYGSofU4s6BjrxnefMfabb.jpg"),
)


@dataclass(frozen=True, slots=True)
class SelectionKeys:
    """Storage keys for one selection: the current list and the legacy slots."""

    current: str
    legacy: tuple[str, str]

    @classmethod
    def for_titles(cls, settings: Settings) -> "SelectionKeys":
        return cls(
            current=settings.storage_key("selectedMediaItems"),
            legacy=(
                settings.storage_key("selectedMediaItem1"),
                settings.storage_key("selectedMediaItem2"),
            ),
        )

    @classmethod
    def for_people(cls, settings: Settings) -> "SelectionKeys":
        return cls(
            current=settings.storage_key("selectedCastMembers"),
            legacy=(
                settings.storage_key("selectedCastMember1"),
                settings.storage_key("selectedCastMember2"),
            ),
        )


class SelectionStore(Generic[EntryT]):
    """Identity-deduplicated list of selected entities backed by a key-value store.

    Mutations are serialised by a lock and write the full list before the
    in-memory snapshot is swapped, so readers only ever see persisted states
    and writes land in mutation order.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        kind: SelectionKind,
        model: type[EntryT],
        keys: SelectionKeys,
        defaults: Sequence[EntryT] = (),
    ) -> None:
        self.kind = kind
        self._storage = storage
        self._model = model
        self._keys = keys
        self._defaults = tuple(defaults)
        self._entries: tuple[EntryT, ...] = ()
        self._lock = asyncio.Lock()
        self._listeners: list[SelectionListener] = []
        self._loaded = False

    @classmethod
    def for_titles(
        cls, storage: KeyValueStore, settings: Settings
    ) -> "SelectionStore[NormalizedTitle]":
        return SelectionStore(
            storage,
            kind="titles",
            model=NormalizedTitle,
            keys=SelectionKeys.for_titles(settings),
            defaults=DEFAULT_TITLES if settings.seed_default_selections else (),
        )

    @classmethod
    def for_people(
        cls, storage: KeyValueStore, settings: Settings
    ) -> "SelectionStore[NormalizedPerson]":
        return SelectionStore(
            storage,
            kind="people",
            model=NormalizedPerson,
            keys=SelectionKeys.for_people(settings),
            defaults=DEFAULT_PEOPLE if settings.seed_default_selections else (),
        )

    @property
    def entries(self) -> tuple[EntryT, ...]:
        return self._entries

    @property
    def model(self) -> type[EntryT]:
        return self._model

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[EntryT]:
        return iter(self._entries)

    def index_of(self, identity: Hashable) -> int | None:
        for position, entry in enumerate(self._entries):
            if entry.identity == identity:
                return position
        return None

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        """Register a callback invoked with the new entries after each mutation."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def load(self) -> tuple[EntryT, ...]:
        """Load the persisted selection, migrating the legacy two-slot layout."""

        async with self._lock:
            if self._loaded:
                return self._entries
            entries = await self._load_and_migrate()
            self._entries = tuple(entries)
            self._loaded = True
        logger.info("Loaded %d selected %s", len(self._entries), self.kind)
        self._notify()
        return self._entries

    async def _load_and_migrate(self) -> list[EntryT]:
        raw_current = await self._storage.get(self._keys.current)
        raw_slots = [await self._storage.get(key) for key in self._keys.legacy]

        if raw_current is not None:
            entries = self._parse_list(raw_current)
            for key, raw in zip(self._keys.legacy, raw_slots):
                if raw is not None:
                    await self._storage.delete(key)
            return entries

        if any(raw is not None for raw in raw_slots):
            candidates: list[EntryT] = []
            for raw in raw_slots:
                if raw is None:
                    continue
                entry = self._parse_entry(self._decode(raw))
                if entry is not None:
                    candidates.append(entry)
            entries = self._dedupe(candidates)
            await self._write(entries)
            for key in self._keys.legacy:
                await self._storage.delete(key)
            logger.info(
                "Migrated %d legacy %s slot(s) to %s",
                len(entries),
                self.kind,
                self._keys.current,
            )
            return entries

        entries = list(self._defaults)
        if entries:
            await self._write(entries)
        return entries

    @staticmethod
    def _decode(raw: str) -> Any:
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unparseable stored selection payload")
            return None

    def _parse_list(self, raw: str) -> list[EntryT]:
        payload = self._decode(raw)
        if not isinstance(payload, list):
            if payload is not None:
                logger.warning("Stored %s selection is not a list; ignoring it", self.kind)
            return []
        parsed = [self._parse_entry(item) for item in payload]
        return self._dedupe([entry for entry in parsed if entry is not None])

    def _parse_entry(self, item: Any) -> EntryT | None:
        if not isinstance(item, dict):
            return None
        try:
            return self._model.model_validate(item)
        except ValidationError as exc:
            logger.debug("Dropping invalid stored %s entry: %s", self.kind, exc)
            return None

    @staticmethod
    def _dedupe(entries: Sequence[EntryT]) -> list[EntryT]:
        seen: set[Hashable] = set()
        unique: list[EntryT] = []
        for entry in entries:
            if entry.identity in seen:
                continue
            seen.add(entry.identity)
            unique.append(entry)
        return unique

    async def _write(self, entries: Sequence[EntryT]) -> None:
        payload = json.dumps(
            [entry.model_dump(mode="json", exclude_none=True) for entry in entries]
        )
        await self._storage.set(self._keys.current, payload)

    async def _commit(self, entries: list[EntryT]) -> None:
        # Caller holds the lock.
        await self._write(entries)
        self._entries = tuple(entries)
        self._notify()

    def _notify(self) -> None:
        snapshot = self._entries
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # pragma: no cover
                logger.exception("Selection listener failed for %s", self.kind)

    async def add(self, entity: EntryT) -> None:
        """Append ``entity`` or replace the entry sharing its identity in place."""

        async with self._lock:
            entries = list(self._entries)
            position = self.index_of(entity.identity)
            if position is None:
                entries.append(entity)
            else:
                entries[position] = entity
            await self._commit(entries)

    async def remove(self, identity: Hashable) -> bool:
        async with self._lock:
            entries = [entry for entry in self._entries if entry.identity != identity]
            if len(entries) == len(self._entries):
                return False
            await self._commit(entries)
            return True

    async def update(self, index: int, entity: EntryT) -> bool:
        """Replace the entry at ``index``; out-of-range indexes are ignored."""

        async with self._lock:
            if not 0 <= index < len(self._entries):
                return False
            existing = self.index_of(entity.identity)
            if existing is not None and existing != index:
                return False
            entries = list(self._entries)
            entries[index] = entity
            await self._commit(entries)
            return True

    async def reorder(self, from_index: int, to_index: int) -> bool:
        async with self._lock:
            size = len(self._entries)
            if not (0 <= from_index < size and 0 <= to_index < size):
                return False
            if from_index == to_index:
                return True
            entries = list(self._entries)
            moved = entries.pop(from_index)
            entries.insert(to_index, moved)
            await self._commit(entries)
            return True

    async def clear(self) -> None:
        async with self._lock:
            await self._commit([])

    async def replace(self, entities: Sequence[EntryT]) -> None:
        """Swap the whole selection, e.g. when restoring a saved search."""

        async with self._lock:
            await self._commit(self._dedupe(entities))
