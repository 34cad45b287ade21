"""
Link registry — Discord user id → Fitbit user id.

One Fitbit id per Discord id; relinking silently replaces the old pairing.
"""

from __future__ import annotations

import logging
from typing import Optional

from database.base import StorageProvider

logger = logging.getLogger(__name__)


class LinkRegistry:
    def __init__(self, storage: StorageProvider):
        self._storage = storage

    @staticmethod
    def _key(discord_user_id: str) -> str:
        return f"link-{discord_user_id}"

    async def link(self, discord_user_id: str, fitbit_user_id: str) -> None:
        previous = await self.resolve(discord_user_id)
        await self._storage.set_data(self._key(discord_user_id), fitbit_user_id)
        if previous and previous != fitbit_user_id:
            logger.info(
                "Relinked Discord user %s: Fitbit %s → %s",
                discord_user_id, previous, fitbit_user_id,
            )

    async def resolve(self, discord_user_id: str) -> Optional[str]:
        value = await self._storage.get_data(self._key(discord_user_id))
        return str(value) if value is not None else None

    async def unlink(self, discord_user_id: str) -> None:
        await self._storage.delete_data(self._key(discord_user_id))
