"""N-way intersection of normalized credit collections."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Hashable, Literal, Sequence

from ..models import CommonEntity, RecordT

IntersectionStatus = Literal["ok", "empty_source", "no_common"]

SINGLE_SOURCE_NAME = "Selected"


@dataclass(slots=True)
class IntersectionOutcome(Generic[RecordT]):
    """Common entities plus why the list may be empty."""

    entities: list[CommonEntity[RecordT]] = field(default_factory=list)
    status: IntersectionStatus = "ok"
    source_count: int = 0
    empty_sources: list[int] = field(default_factory=list)


def intersect_collections(
    collections: Sequence[Sequence[RecordT]],
    source_names: Sequence[str] | None = None,
) -> IntersectionOutcome[RecordT]:
    """Return the records whose identity appears in every collection.

    The first collection supplies the candidates and the representative copy
    of each surviving record, so its popularity decides the order (highest
    first, ties in the first collection's order). With a single collection
    every record is returned and its attribution is mirrored into a second
    slot so single and multi-source results share one shape.
    """

    count = len(collections)
    if count == 0:
        raise ValueError("At least one collection is required")
    if count >= 2 and (source_names is None or len(source_names) != count):
        raise ValueError("A source name is required for every collection")

    names = list(source_names) if source_names else [SINGLE_SOURCE_NAME]
    empty_sources = [index for index, records in enumerate(collections) if not records]
    if empty_sources:
        return IntersectionOutcome(
            status="empty_source", source_count=count, empty_sources=empty_sources
        )

    if count == 1:
        entities = []
        for record in collections[0]:
            attribution = record.to_attribution(0, names[0])
            entities.append(
                CommonEntity(
                    representative=record,
                    attribution={
                        0: attribution,
                        1: attribution.model_copy(update={"source_index": 1}),
                    },
                )
            )
        return IntersectionOutcome(entities=entities, status="ok", source_count=1)

    lookups: list[dict[Hashable, RecordT]] = []
    for records in collections:
        index: dict[Hashable, RecordT] = {}
        for record in records:
            index.setdefault(record.identity, record)
        lookups.append(index)

    seen: set[Hashable] = set()
    survivors: list[CommonEntity[RecordT]] = []
    for candidate in collections[0]:
        identity = candidate.identity
        if identity in seen:
            continue
        seen.add(identity)
        if not all(identity in lookup for lookup in lookups[1:]):
            continue
        survivors.append(
            CommonEntity(
                representative=candidate,
                attribution={
                    position: lookup[identity].to_attribution(position, names[position])
                    for position, lookup in enumerate(lookups)
                },
            )
        )

    survivors.sort(key=lambda entity: entity.representative.sort_popularity, reverse=True)
    return IntersectionOutcome(
        entities=survivors,
        status="ok" if survivors else "no_common",
        source_count=count,
    )
