"""
Token manager — the owning accessor for per-user OAuth tokens.

``TokenVault`` is the only code that reads or writes the
``<provider>-<user_id>`` keys.  ``RefreshLocks`` serialises refreshes of
the same ``(provider, user_id)`` so two requests racing on an expired
token issue a single refresh grant.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Tuple

from connectors.encryption import TokenCipher
from database.base import StorageProvider
from utils.schemas import TokenRecord

logger = logging.getLogger(__name__)


class TokenVault:
    def __init__(self, storage: StorageProvider, cipher: Optional[TokenCipher] = None):
        self._storage = storage
        self._cipher = cipher or TokenCipher()

    @staticmethod
    def _key(provider: str, user_id: str) -> str:
        return f"{provider}-{user_id}"

    async def store(self, provider: str, user_id: str, record: TokenRecord) -> None:
        data = record.model_dump()
        data["access_token"] = self._cipher.encrypt(record.access_token)
        data["refresh_token"] = self._cipher.encrypt(record.refresh_token)
        await self._storage.set_data(self._key(provider, user_id), data)

    async def get(self, provider: str, user_id: str) -> Optional[TokenRecord]:
        data = await self._storage.get_data(self._key(provider, user_id))
        if data is None:
            return None
        record = TokenRecord.model_validate(data)
        record.access_token = self._cipher.decrypt(record.access_token)
        record.refresh_token = self._cipher.decrypt(record.refresh_token)
        return record

    async def delete(self, provider: str, user_id: str) -> None:
        await self._storage.delete_data(self._key(provider, user_id))


class RefreshLocks:
    """One ``asyncio.Lock`` per ``(provider, user_id)``."""

    def __init__(self):
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, provider: str, user_id: str) -> AsyncIterator[None]:
        lock = self._locks[(provider, user_id)]
        if lock.locked():
            logger.debug("Waiting on in-flight %s refresh for user %s", provider, user_id)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
