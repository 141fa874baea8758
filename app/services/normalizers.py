"""Merge raw provider credit lists into canonical role records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..models import MediaKind, NormalizedPersonRole, NormalizedTitleRole, RoleKind
from ..utils import (
    append_unique,
    clean_text,
    coerce_popularity,
    parse_numeric_id,
)
from .metadata import RawCredit, RawPersonCredits, RawTitleCredits

logger = logging.getLogger(__name__)

UNKNOWN_ROLE = "Unknown role"
UNKNOWN_JOB = "Unknown job"
OTHER_DEPARTMENT = "Other"


@dataclass(slots=True)
class _PersonEntry:
    person_id: int
    name: str
    profile_path: str | None
    popularity: float | None
    role_kinds: set[RoleKind] = field(default_factory=set)
    character: str | None = None
    jobs: list[str] = field(default_factory=list)
    departments: set[str] = field(default_factory=set)

    def build(self) -> NormalizedPersonRole:
        return NormalizedPersonRole(
            person_id=self.person_id,
            name=self.name,
            profile_path=self.profile_path,
            popularity=self.popularity,
            role_kinds=frozenset(self.role_kinds),
            character=self.character,
            jobs=self.jobs,
            departments=frozenset(self.departments),
        )


@dataclass(slots=True)
class _TitleEntry:
    title_id: int
    media_kind: MediaKind
    display_name: str
    release_date: str
    popularity: float
    poster_path: str | None
    role_kinds: set[RoleKind] = field(default_factory=set)
    characters: list[str] = field(default_factory=list)
    jobs: list[str] = field(default_factory=list)
    departments: set[str] = field(default_factory=set)

    def build(self) -> NormalizedTitleRole:
        return NormalizedTitleRole(
            title_id=self.title_id,
            media_kind=self.media_kind,
            display_name=self.display_name,
            release_date=self.release_date,
            popularity=self.popularity,
            poster_path=self.poster_path,
            role_kinds=frozenset(self.role_kinds),
            characters=self.characters,
            jobs=self.jobs,
            departments=frozenset(self.departments),
        )


def _optional_popularity(value: object) -> float | None:
    if value is None:
        return None
    return coerce_popularity(value)


def normalize_title_credits(
    cast: Iterable[RawCredit] | None,
    crew: Iterable[RawCredit] | None,
) -> list[NormalizedPersonRole]:
    """Collapse a title's cast and crew into one record per person.

    People listed in both lists keep both role kinds. The result is ordered
    by descending popularity, with missing popularity counted as zero and
    ties left in first-seen order (cast before crew). Two empty lists give
    an empty result; it is up to the caller to report "no cast or crew".
    """

    entries: dict[int, _PersonEntry] = {}

    def _ensure(raw: RawCredit) -> _PersonEntry | None:
        person_id = parse_numeric_id(raw.get("id"))
        if person_id is None:
            logger.debug("Skipping credit without a numeric id: %r", raw)
            return None
        entry = entries.get(person_id)
        if entry is None:
            entry = _PersonEntry(
                person_id=person_id,
                name=clean_text(raw.get("name")) or clean_text(raw.get("original_name")) or "",
                profile_path=clean_text(raw.get("profile_path")),
                popularity=_optional_popularity(raw.get("popularity")),
            )
            entries[person_id] = entry
        return entry

    for raw in cast or ():
        entry = _ensure(raw)
        if entry is None:
            continue
        entry.role_kinds.add("cast")
        character = clean_text(raw.get("character"))
        if character is not None or entry.character is None:
            entry.character = character or UNKNOWN_ROLE

    for raw in crew or ():
        entry = _ensure(raw)
        if entry is None:
            continue
        entry.role_kinds.add("crew")
        append_unique(entry.jobs, clean_text(raw.get("job")) or UNKNOWN_JOB)
        entry.departments.add(clean_text(raw.get("department")) or OTHER_DEPARTMENT)

    records = [entry.build() for entry in entries.values()]
    records.sort(key=lambda record: record.sort_popularity, reverse=True)
    return records


def normalize_raw_title_credits(credits: RawTitleCredits) -> list[NormalizedPersonRole]:
    return normalize_title_credits(credits.cast, credits.crew)


_DATE_FIELDS: dict[MediaKind, str] = {
    "movie": "release_date",
    "series": "first_air_date",
}
_NAME_FIELDS: dict[MediaKind, tuple[str, ...]] = {
    "movie": ("title", "original_title", "name"),
    "series": ("name", "original_name", "title"),
}


def normalize_person_credits(
    movie_cast: Iterable[RawCredit] | None,
    movie_crew: Iterable[RawCredit] | None,
    tv_cast: Iterable[RawCredit] | None,
    tv_crew: Iterable[RawCredit] | None,
) -> list[NormalizedTitleRole]:
    """Collapse a person's movie and TV credits into one record per title.

    Titles without a release (or first air) date are dropped because the
    provider uses them for unreleased or placeholder entries.
    """

    entries: dict[tuple[MediaKind, int], _TitleEntry] = {}

    def _ensure(raw: RawCredit, media_kind: MediaKind) -> _TitleEntry | None:
        title_id = parse_numeric_id(raw.get("id"))
        if title_id is None:
            logger.debug("Skipping %s credit without a numeric id: %r", media_kind, raw)
            return None
        release_date = clean_text(raw.get(_DATE_FIELDS[media_kind]))
        if release_date is None:
            return None
        key = (media_kind, title_id)
        entry = entries.get(key)
        if entry is None:
            display_name = next(
                (
                    name
                    for name in (clean_text(raw.get(f)) for f in _NAME_FIELDS[media_kind])
                    if name
                ),
                "",
            )
            entry = _TitleEntry(
                title_id=title_id,
                media_kind=media_kind,
                display_name=display_name,
                release_date=release_date,
                popularity=coerce_popularity(raw.get("popularity")),
                poster_path=clean_text(raw.get("poster_path")),
            )
            entries[key] = entry
        return entry

    def _add_cast(items: Iterable[RawCredit] | None, media_kind: MediaKind) -> None:
        for raw in items or ():
            entry = _ensure(raw, media_kind)
            if entry is None:
                continue
            entry.role_kinds.add("cast")
            append_unique(entry.characters, clean_text(raw.get("character")) or UNKNOWN_ROLE)

    def _add_crew(items: Iterable[RawCredit] | None, media_kind: MediaKind) -> None:
        for raw in items or ():
            entry = _ensure(raw, media_kind)
            if entry is None:
                continue
            entry.role_kinds.add("crew")
            append_unique(entry.jobs, clean_text(raw.get("job")) or UNKNOWN_JOB)
            entry.departments.add(clean_text(raw.get("department")) or OTHER_DEPARTMENT)

    _add_cast(movie_cast, "movie")
    _add_crew(movie_crew, "movie")
    _add_cast(tv_cast, "series")
    _add_crew(tv_crew, "series")

    records = [entry.build() for entry in entries.values()]
    records.sort(key=lambda record: record.sort_popularity, reverse=True)
    return records


def normalize_raw_person_credits(credits: RawPersonCredits) -> list[NormalizedTitleRole]:
    return normalize_person_credits(
        credits.movie_cast, credits.movie_crew, credits.tv_cast, credits.tv_crew
    )
