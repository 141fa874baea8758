"""Turn the current selection into a published list of common entities."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Hashable, Literal, Sequence, TypeVar

from ..models import (
    CommonEntity,
    NormalizedPerson,
    NormalizedPersonRole,
    NormalizedTitle,
    NormalizedTitleRole,
    RecordT,
)
from .intersection import intersect_collections
from .metadata import MetadataProvider
from .normalizers import normalize_raw_person_credits, normalize_raw_title_credits

logger = logging.getLogger(__name__)

ComparisonMode = Literal["empty", "single", "comparison"]
ComparisonErrorKind = Literal["source_unavailable", "empty_collection", "no_common_entity"]

EntryT = TypeVar("EntryT", NormalizedTitle, NormalizedPerson)


def join_names(names: Sequence[str]) -> str:
    """Return ``"A"``, ``"A and B"`` or ``"A, B and C"``."""

    cleaned = [name for name in names if name]
    if not cleaned:
        return ""
    if len(cleaned) == 1:
        return cleaned[0]
    return f"{', '.join(cleaned[:-1])} and {cleaned[-1]}"


@dataclass(slots=True)
class ComparisonError:
    """A single user-facing reason why a cycle produced no entities."""

    kind: ComparisonErrorKind
    message: str
    sources: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "sources": list(self.sources)}


@dataclass(slots=True)
class ComparisonSnapshot(Generic[RecordT]):
    """The latest published comparison result."""

    mode: ComparisonMode = "empty"
    cycle: int = 0
    loading: bool = False
    entities: list[CommonEntity[RecordT]] = field(default_factory=list)
    error: ComparisonError | None = None
    source_names: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "cycle": self.cycle,
            "loading": self.loading,
            "sources": list(self.source_names),
            "error": self.error.to_payload() if self.error else None,
            "entities": [entity.to_payload() for entity in self.entities],
        }


class ComparisonOrchestrator(Generic[EntryT, RecordT]):
    """Recompute common entities whenever the selection's members change.

    Each recomputation is a numbered cycle. Results arriving for a cycle
    that has since been superseded are dropped, so a slow fetch can never
    overwrite a newer published result.
    """

    fetch_error_message = "Error fetching information"

    def __init__(self, provider: MetadataProvider) -> None:
        self._provider = provider
        self._cycle = 0
        self._signature: tuple[Hashable, ...] | None = None
        self._entries: tuple[EntryT, ...] = ()
        self._task: asyncio.Task[None] | None = None
        self._snapshot: ComparisonSnapshot[RecordT] = ComparisonSnapshot()

    @property
    def snapshot(self) -> ComparisonSnapshot[RecordT]:
        return self._snapshot

    @property
    def cycle(self) -> int:
        return self._cycle

    @staticmethod
    def mode_for(count: int) -> ComparisonMode:
        if count == 0:
            return "empty"
        if count == 1:
            return "single"
        return "comparison"

    def handle_selection(self, entries: Sequence[EntryT]) -> None:
        """Selection listener: schedule a cycle when member identities change."""

        signature = tuple(entry.identity for entry in entries)
        self._entries = tuple(entries)
        if signature == self._signature:
            return
        self._signature = signature
        cycle = self._begin_cycle(self._entries)
        if self._snapshot.mode == "empty":
            return
        self._task = asyncio.create_task(self._runner(self._entries, cycle))

    async def refresh(self) -> ComparisonSnapshot[RecordT]:
        """Run a cycle for the current entries and return the published result."""

        entries = self._entries
        self._signature = tuple(entry.identity for entry in entries)
        cycle = self._begin_cycle(entries)
        if entries:
            await self._runner(entries, cycle)
        return self._snapshot

    async def wait_idle(self) -> None:
        """Wait until the most recently scheduled cycle has finished."""

        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    def _begin_cycle(self, entries: Sequence[EntryT]) -> int:
        self._cycle += 1
        mode = self.mode_for(len(entries))
        self._snapshot = ComparisonSnapshot(
            mode=mode,
            cycle=self._cycle,
            loading=mode != "empty",
            source_names=[self.source_name(entry) for entry in entries],
        )
        return self._cycle

    async def _runner(self, entries: Sequence[EntryT], cycle: int) -> None:
        try:
            await self._run_cycle(entries, cycle)
        except Exception:  # pragma: no cover
            logger.exception("Comparison cycle %d failed", cycle)
            self._publish(
                cycle,
                error=ComparisonError(
                    kind="source_unavailable", message=self.fetch_error_message
                ),
            )

    async def _run_cycle(self, entries: Sequence[EntryT], cycle: int) -> None:
        names = [self.source_name(entry) for entry in entries]
        results = await asyncio.gather(
            *(self._load_collection(entry) for entry in entries),
            return_exceptions=True,
        )
        if cycle != self._cycle:
            logger.debug("Discarding results of superseded cycle %d", cycle)
            return

        failures: list[str] = []
        collections: list[list[RecordT]] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("Fetching credits for %s failed: %s", name, result)
                failures.append(name)
                continue
            collections.append(result)

        if failures:
            self._publish(
                cycle,
                error=ComparisonError(
                    kind="source_unavailable",
                    message=f"{self.fetch_error_message} for {join_names(failures)}",
                    sources=failures,
                ),
            )
            return

        outcome = intersect_collections(collections, names)
        if outcome.status == "empty_source":
            empty_entries = [entries[index] for index in outcome.empty_sources]
            self._publish(
                cycle,
                error=ComparisonError(
                    kind="empty_collection",
                    message=self.empty_message(entries, empty_entries),
                    sources=[self.source_name(entry) for entry in empty_entries],
                ),
            )
            return
        if outcome.status == "no_common":
            self._publish(
                cycle,
                error=ComparisonError(
                    kind="no_common_entity",
                    message=self.no_common_message(entries),
                    sources=names,
                ),
            )
            return

        logger.info(
            "Comparison cycle %d found %d common entities across %d source(s)",
            cycle,
            len(outcome.entities),
            outcome.source_count,
        )
        self._publish(cycle, entities=outcome.entities)

    def _publish(
        self,
        cycle: int,
        *,
        entities: list[CommonEntity[RecordT]] | None = None,
        error: ComparisonError | None = None,
    ) -> None:
        if cycle != self._cycle:
            return
        self._snapshot = ComparisonSnapshot(
            mode=self._snapshot.mode,
            cycle=cycle,
            loading=False,
            entities=entities or [],
            error=error,
            source_names=self._snapshot.source_names,
        )

    def source_name(self, entry: EntryT) -> str:
        raise NotImplementedError

    async def _load_collection(self, entry: EntryT) -> list[RecordT]:
        raise NotImplementedError

    def empty_message(
        self, entries: Sequence[EntryT], empty_entries: Sequence[EntryT]
    ) -> str:
        raise NotImplementedError

    def no_common_message(self, entries: Sequence[EntryT]) -> str:
        raise NotImplementedError


class CastComparison(ComparisonOrchestrator[NormalizedTitle, NormalizedPersonRole]):
    """Selected titles in, shared cast and crew out."""

    fetch_error_message = "Error fetching cast information"

    def source_name(self, entry: NormalizedTitle) -> str:
        return entry.display_name

    async def _load_collection(self, entry: NormalizedTitle) -> list[NormalizedPersonRole]:
        credits = await self._provider.get_title_credits(entry.id, entry.media_kind)
        return normalize_raw_title_credits(credits)

    def empty_message(
        self,
        entries: Sequence[NormalizedTitle],
        empty_entries: Sequence[NormalizedTitle],
    ) -> str:
        if len(entries) == 1:
            return f"No cast information available for this {entries[0].kind_label}"
        names = join_names([entry.display_name for entry in empty_entries])
        return f"Cast information not available for {names}"

    def no_common_message(self, entries: Sequence[NormalizedTitle]) -> str:
        if len(entries) == 2:
            return "No common cast members found"
        return f"No shared cast members across {len(entries)} titles"


class FilmographyComparison(ComparisonOrchestrator[NormalizedPerson, NormalizedTitleRole]):
    """Selected people in, shared movies and TV shows out."""

    fetch_error_message = "Error fetching filmography information"

    def source_name(self, entry: NormalizedPerson) -> str:
        return entry.name

    async def _load_collection(self, entry: NormalizedPerson) -> list[NormalizedTitleRole]:
        credits = await self._provider.get_person_credits(entry.id)
        return normalize_raw_person_credits(credits)

    def empty_message(
        self,
        entries: Sequence[NormalizedPerson],
        empty_entries: Sequence[NormalizedPerson],
    ) -> str:
        return f"No media found for {join_names([entry.name for entry in empty_entries])}"

    def no_common_message(self, entries: Sequence[NormalizedPerson]) -> str:
        names = join_names([entry.name for entry in entries])
        if len(entries) == 2:
            return f"{names} haven't appeared in any movies or TV shows together"
        return f"{names} haven't all appeared in any movies or TV shows together"
