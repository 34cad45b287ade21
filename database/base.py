"""
StorageProvider — the key/value contract every persistence backend meets.

Keys are namespaced strings (``discord-<id>``, ``fitbit-<id>``,
``state-<token>``, ``link-<id>``).  Values are JSON-serialisable records;
backends store them opaquely.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional


class StorageProvider(ABC):
    """Abstract TTL-capable key/value store."""

    @abstractmethod
    async def set_data(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store ``value`` under ``key``, optionally expiring after ``ttl_seconds``."""
        ...

    @abstractmethod
    async def get_data(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent or expired."""
        ...

    @abstractmethod
    async def delete_data(self, key: str) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""
        ...

    async def init(self) -> None:
        """Prepare the backend (create tables, ...). Optional."""
        return None

    async def close(self) -> None:
        """Release backend resources (optional)."""
        return None
