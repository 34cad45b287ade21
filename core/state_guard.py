"""
Callback state guard — single-use anti-forgery tokens for the OAuth
redirect round trip.

A state token maps to a ``StateRecord`` stored under ``state-<token>``
with a short TTL.  ``consume`` deletes the record before returning it, so
a replayed callback finds nothing and is rejected.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import secrets
from typing import Optional

from database.base import StorageProvider
from utils.errors import StateMismatchError
from utils.schemas import StateRecord

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL = 300  # seconds


class CallbackStateGuard:
    def __init__(self, storage: StorageProvider, ttl_seconds: int = DEFAULT_STATE_TTL):
        self._storage = storage
        self.ttl_seconds = ttl_seconds
        # get + delete is not atomic in the storage contract
        self._consume_lock = asyncio.Lock()

    @staticmethod
    def _key(state: str) -> str:
        return f"state-{state}"

    async def issue(self, record: StateRecord, state: Optional[str] = None) -> str:
        """Park ``record`` under ``state`` (generated if not given) and return it."""
        state = state or secrets.token_urlsafe(32)
        await self._storage.set_data(self._key(state), record.model_dump(), self.ttl_seconds)
        return state

    async def consume(
        self,
        state: Optional[str],
        cookie_state: Optional[str] = None,
        *,
        provider: Optional[str] = None,
    ) -> StateRecord:
        """
        Validate ``state`` and return its payload exactly once.

        Cookie-bound records additionally require ``state == cookie_state``;
        ``provider`` rejects a state issued for the other callback.  A
        rejected attempt leaves the stored record untouched so a forged
        callback cannot burn a legitimate user's state.
        """
        if not state:
            raise StateMismatchError("Missing OAuth state")

        async with self._consume_lock:
            data = await self._storage.get_data(self._key(state))
            if data is None:
                logger.warning("Rejected OAuth state: unknown, expired or already used")
                raise StateMismatchError("OAuth state is unknown, expired or already used")

            record = StateRecord.model_validate(data)
            if record.cookie_bound and not (
                cookie_state and hmac.compare_digest(state, cookie_state)
            ):
                logger.warning("Rejected OAuth state: cookie mismatch (%s flow)", record.provider)
                raise StateMismatchError("OAuth state does not match the client cookie")
            if provider is not None and record.provider != provider:
                logger.warning("Rejected OAuth state: issued for %s, used for %s", record.provider, provider)
                raise StateMismatchError(f"OAuth state was not issued for {provider}")

            await self._storage.delete_data(self._key(state))
        return record
