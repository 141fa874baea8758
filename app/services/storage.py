"""Durable key-value stores holding JSON strings."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import StorageEntry

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store, used by tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.writes: list[tuple[str, str | None]] = []

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value
        self.writes.append((key, value))

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)
        self.writes.append((key, None))


class SqlKeyValueStore:
    """Key-value store persisted in the ``storage_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(StorageEntry.value).where(StorageEntry.key == key)
            )
            return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            entry = await session.get(StorageEntry, key)
            if entry is None:
                session.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
            await session.commit()
        logger.debug("Stored %s (%d bytes)", key, len(value))

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(StorageEntry).where(StorageEntry.key == key))
            await session.commit()
