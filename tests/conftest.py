"""Pytest configuration and test helpers."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from app.services.metadata import (  # noqa: E402
    MetadataUnavailableError,
    RawPersonCredits,
    RawTitleCredits,
)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


class FakeProvider:
    """In-memory metadata provider with optional per-entity gates."""

    def __init__(self) -> None:
        self.title_credits: dict[tuple[str, int], RawTitleCredits | Exception] = {}
        self.person_credits: dict[int, RawPersonCredits | Exception] = {}
        self.gates: dict[object, asyncio.Event] = {}
        self.calls: list[object] = []

    async def _resolve(self, key: object, value: object) -> object:
        self.calls.append(key)
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        if value is None:
            raise MetadataUnavailableError(f"No credits configured for {key}")
        if isinstance(value, Exception):
            raise value
        return value

    async def get_title_credits(self, title_id: int, media_kind: str) -> RawTitleCredits:
        key = (media_kind, title_id)
        return await self._resolve(key, self.title_credits.get(key))  # type: ignore[return-value]

    async def get_person_credits(self, person_id: int) -> RawPersonCredits:
        return await self._resolve(person_id, self.person_credits.get(person_id))  # type: ignore[return-value]


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
