"""Pydantic models describing titles, people and their normalized credits."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    computed_field,
    field_validator,
    model_validator,
)

from .utils import coerce_popularity, extract_year

MediaKind = Literal["movie", "series"]
RoleKind = Literal["cast", "crew"]
SelectionKind = Literal["titles", "people"]

TitleIdentity = tuple[str, int]

_MEDIA_KIND_ALIASES: dict[str, MediaKind] = {
    "movie": "movie",
    "film": "movie",
    "series": "series",
    "tv": "series",
    "show": "series",
}


def parse_media_kind(value: object) -> MediaKind:
    """Map provider spellings (``tv``, ``show``) onto the canonical media kinds."""

    if not isinstance(value, str):
        raise ValueError("media kind must be a string")
    kind = _MEDIA_KIND_ALIASES.get(value.strip().lower())
    if kind is None:
        raise ValueError(f"Unknown media kind: {value!r}")
    return kind


class NormalizedTitle(BaseModel):
    """A movie or series as kept in the title selection."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: StrictInt
    media_kind: MediaKind = Field(
        default="movie",
        validation_alias=AliasChoices("media_kind", "mediaKind", "media_type"),
    )
    display_name: StrictStr = Field(
        validation_alias=AliasChoices("display_name", "displayName", "title", "name"),
    )
    release_year: int | None = Field(
        default=None,
        validation_alias=AliasChoices("release_year", "releaseYear"),
    )
    popularity: float = 0.0
    poster_path: str | None = None
    overview: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_release_year(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("release_year") is not None or data.get("releaseYear") is not None:
            return data
        year = extract_year(data.get("release_date") or data.get("first_air_date"))
        if year is None:
            return data
        return {**data, "release_year": year}

    @field_validator("media_kind", mode="before")
    @classmethod
    def _parse_media_kind(cls, value: object) -> MediaKind:
        return parse_media_kind(value)

    @field_validator("popularity", mode="before")
    @classmethod
    def _parse_popularity(cls, value: object) -> float:
        return coerce_popularity(value)

    @property
    def identity(self) -> TitleIdentity:
        return (self.media_kind, self.id)

    @property
    def kind_label(self) -> str:
        return "TV show" if self.media_kind == "series" else "film"


class NormalizedPerson(BaseModel):
    """A person as kept in the people selection."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: StrictInt
    name: StrictStr
    profile_path: str | None = None
    popularity: float | None = None
    known_for_department: str | None = None

    @field_validator("popularity", mode="before")
    @classmethod
    def _parse_popularity(cls, value: object) -> float | None:
        if value is None:
            return None
        return coerce_popularity(value)

    @property
    def identity(self) -> int:
        return self.id


class SourceAttribution(BaseModel):
    """Role-specific fields of one common entity inside one source."""

    model_config = ConfigDict(frozen=True)

    source_index: int
    source_name: str
    role_kinds: frozenset[RoleKind]
    characters: list[str] = Field(default_factory=list)
    jobs: list[str] = Field(default_factory=list)
    departments: list[str] = Field(default_factory=list)

    def describe(self) -> str:
        """Return a short "in source: role" line for list rendering."""

        roles = [*self.characters, *self.jobs]
        return f"{self.source_name}: {', '.join(roles) if roles else 'Unknown role'}"


class NormalizedPersonRole(BaseModel):
    """Everything one person did on a single title."""

    model_config = ConfigDict(frozen=True)

    person_id: int
    name: str
    profile_path: str | None = None
    popularity: float | None = None
    role_kinds: frozenset[RoleKind]
    character: str | None = None
    jobs: list[str] = Field(default_factory=list)
    departments: frozenset[str] = frozenset()

    @model_validator(mode="after")
    def _check_roles(self) -> "NormalizedPersonRole":
        if not self.role_kinds:
            raise ValueError("role_kinds must not be empty")
        if self.character is not None and "cast" not in self.role_kinds:
            raise ValueError("character requires a cast role")
        if (self.jobs or self.departments) and "crew" not in self.role_kinds:
            raise ValueError("jobs and departments require a crew role")
        return self

    @property
    def identity(self) -> int:
        return self.person_id

    @property
    def sort_popularity(self) -> float:
        return self.popularity or 0.0

    def to_attribution(self, index: int, source_name: str) -> SourceAttribution:
        return SourceAttribution(
            source_index=index,
            source_name=source_name,
            role_kinds=self.role_kinds,
            characters=[self.character] if self.character else [],
            jobs=list(self.jobs),
            departments=sorted(self.departments),
        )


class NormalizedTitleRole(BaseModel):
    """Everything one person did on a single movie or series."""

    model_config = ConfigDict(frozen=True)

    title_id: int
    media_kind: MediaKind
    display_name: str
    release_date: str | None = None
    popularity: float = 0.0
    poster_path: str | None = None
    role_kinds: frozenset[RoleKind]
    characters: list[str] = Field(default_factory=list)
    jobs: list[str] = Field(default_factory=list)
    departments: frozenset[str] = frozenset()

    @model_validator(mode="after")
    def _check_roles(self) -> "NormalizedTitleRole":
        if not self.role_kinds:
            raise ValueError("role_kinds must not be empty")
        if self.characters and "cast" not in self.role_kinds:
            raise ValueError("characters require a cast role")
        if (self.jobs or self.departments) and "crew" not in self.role_kinds:
            raise ValueError("jobs and departments require a crew role")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def primary_role_kind(self) -> RoleKind:
        # Cast wins the badge when a person both acted in and crewed a title.
        return "cast" if "cast" in self.role_kinds else "crew"

    @property
    def identity(self) -> TitleIdentity:
        return (self.media_kind, self.title_id)

    @property
    def sort_popularity(self) -> float:
        return self.popularity

    def to_attribution(self, index: int, source_name: str) -> SourceAttribution:
        return SourceAttribution(
            source_index=index,
            source_name=source_name,
            role_kinds=self.role_kinds,
            characters=list(self.characters),
            jobs=list(self.jobs),
            departments=sorted(self.departments),
        )


RecordT = TypeVar("RecordT", NormalizedPersonRole, NormalizedTitleRole)


@dataclass(slots=True)
class CommonEntity(Generic[RecordT]):
    """An entity shared by every compared source plus its per-source roles."""

    representative: RecordT
    attribution: dict[int, SourceAttribution] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "representative": self.representative.model_dump(mode="json"),
            "attribution": [
                self.attribution[index].model_dump(mode="json")
                for index in sorted(self.attribution)
            ],
        }
