"""
delivery_auth.db.repositories.key_value

Persistent key-value store.

Responsibilities:
- Define the `KeyValueStore` capability consumed by the session store.
- Implement it over SQLAlchemy async with every batch in one transaction.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

from sqlalchemy import delete, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delivery_auth.db.models import KeyValueEntry


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def multi_get(self, keys: Iterable[str]) -> dict[str, str | None]: ...

    async def multi_set(self, pairs: Mapping[str, str]) -> None: ...

    async def multi_remove(self, keys: Iterable[str]) -> None: ...

    async def ping(self) -> None: ...


class SqlKeyValueStore:
    """
    String-to-string store over a single table. `multi_set` and `multi_remove`
    commit once per call, so a batch is never partially visible to readers.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str) -> None:
        await self.multi_set({key: value})

    async def multi_get(self, keys: Iterable[str]) -> dict[str, str | None]:
        wanted = [str(k) for k in keys]
        found: dict[str, str | None] = {k: None for k in wanted}
        if not wanted:
            return found
        async with self._session_factory() as session:
            stmt = select(KeyValueEntry).where(KeyValueEntry.key.in_(wanted))
            for entry in (await session.execute(stmt)).scalars():
                found[entry.key] = entry.value
        return found

    async def multi_set(self, pairs: Mapping[str, str]) -> None:
        if not pairs:
            return
        async with self._session_factory() as session, session.begin():
            for key, value in ((str(k), str(v)) for k, v in pairs.items()):
                entry = await session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value

    async def multi_remove(self, keys: Iterable[str]) -> None:
        doomed = [str(k) for k in keys]
        if not doomed:
            return
        async with self._session_factory() as session, session.begin():
            # Absent keys are simply not matched.
            await session.execute(delete(KeyValueEntry).where(KeyValueEntry.key.in_(doomed)))

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))


# --- Module Notes -----------------------------------------------------------
# There is no cross-call transaction: two batches issued back to back can be observed
# in between. Callers that need ordering serialize through `SessionStore`'s lock.
