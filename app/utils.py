"""Utility helpers for the CastMatch service."""

from __future__ import annotations

import re
from typing import Hashable, Iterable, TypeVar

T = TypeVar("T", bound=Hashable)

YEAR_RE = re.compile(r"(18|19|20|21)\d{2}")


def coerce_popularity(value: object) -> float:
    """Return a float popularity, treating missing or junk values as ``0``."""

    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return 0.0


def extract_year(value: object) -> int | None:
    """Return the four digit year at the start of a provider date string."""

    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return None
    match = YEAR_RE.match(value.strip())
    if not match:
        return None
    return int(match.group(0))


def clean_text(value: object) -> str | None:
    """Return a stripped string or ``None`` for blank/non-string values."""

    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def append_unique(container: list[T], value: T) -> None:
    if value not in container:
        container.append(value)


def unique_in_order(values: Iterable[T]) -> list[T]:
    """Drop repeated values while keeping the first occurrence's position."""

    seen: set[T] = set()
    ordered: list[T] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def parse_numeric_id(value: object) -> int | None:
    """Return provider ids that are genuine integers, rejecting bools and text."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None
