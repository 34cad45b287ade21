"""
In-memory storage provider.

Used for local development (no ``DATABASE_URL``) and throughout the test
suite.  Values are serialised to JSON on write so callers never share
mutable objects with the store, matching the SQL backend.
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Optional, Tuple

from database.base import StorageProvider


class InMemoryStorage(StorageProvider):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def set_data(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        expires = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = (json.dumps(value), expires)

    async def get_data(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires = entry
        if expires is not None and self._clock() >= expires:
            del self._data[key]
            return None
        return json.loads(raw)

    async def delete_data(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Live keys (debug / test helper)."""
        now = self._clock()
        return [k for k, (_, exp) in self._data.items() if exp is None or now < exp]
