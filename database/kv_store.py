"""
SqlStorage — StorageProvider backed by a single SQL table.

Works against PostgreSQL (asyncpg) in production and SQLite (aiosqlite)
in tests.  Expiry is stored as epoch milliseconds and enforced on read;
an expired row is deleted the first time it is looked up.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from database.base import StorageProvider
from database.models import KeyValueEntry
from database.session import build_session_factory, init_models
from utils.schemas import now_ms

logger = logging.getLogger(__name__)


class SqlStorage(StorageProvider):
    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self._engine = engine
        self._session_factory = session_factory or build_session_factory(engine)

    async def set_data(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        expires_at = now_ms() + ttl_seconds * 1000 if ttl_seconds else None
        async with self._session_factory() as session:
            try:
                await session.merge(
                    KeyValueEntry(key=key, value=json.dumps(value), expires_at=expires_at)
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def get_data(self, key: str) -> Optional[Any]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(KeyValueEntry).where(KeyValueEntry.key == key)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            if row.expires_at is not None and row.expires_at <= now_ms():
                await session.delete(row)
                await session.commit()
                logger.debug("Expired key evicted: %s", key.split("-", 1)[0])
                return None
            return json.loads(row.value)

    async def delete_data(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
            await session.commit()

    async def init(self) -> None:
        await init_models(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()
