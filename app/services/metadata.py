"""Contract between the comparison engine and a metadata provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from ..models import MediaKind

RawCredit = dict[str, Any]


class MetadataUnavailableError(RuntimeError):
    """Raised when the provider cannot deliver credits for an entity."""


@dataclass(slots=True)
class RawTitleCredits:
    """Cast and crew lists for one title, as returned by the provider."""

    cast: list[RawCredit] = field(default_factory=list)
    crew: list[RawCredit] = field(default_factory=list)


@dataclass(slots=True)
class RawPersonCredits:
    """A person's movie and TV credits, each split into cast and crew."""

    movie_cast: list[RawCredit] = field(default_factory=list)
    movie_crew: list[RawCredit] = field(default_factory=list)
    tv_cast: list[RawCredit] = field(default_factory=list)
    tv_crew: list[RawCredit] = field(default_factory=list)


class MetadataProvider(Protocol):
    async def get_title_credits(
        self, title_id: int, media_kind: MediaKind
    ) -> RawTitleCredits: ...

    async def get_person_credits(self, person_id: int) -> RawPersonCredits: ...
