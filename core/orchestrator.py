"""
SyncOrchestrator — refresh a linked user's Fitbit profile and push the
derived metadata to Discord.

Steps for ``sync(fitbit_user_id)``:
  1. Load the Fitbit tokens (absent → UnlinkedUserError).
  2. Load the paired Discord tokens (absent → UnlinkedUserError).
  3. Fetch the Fitbit profile.  ANY failure here is logged and replaced
     by an all-null record, so a revoked or unreachable Fitbit account
     never leaves a stale verified role on Discord.
  4. Transform the profile into the metadata schema.
  5. Push to Discord.  Failures here propagate: Discord is now out of
     date and the caller has to know.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from connectors.discord import DiscordConnector
from connectors.fitbit import FitbitConnector
from connectors.token_manager import TokenVault
from core.metadata import MetadataRecord, transform
from utils.errors import UnlinkedUserError

logger = logging.getLogger(__name__)


class SyncResult(BaseModel):
    fitbit_user_id: str
    discord_user_id: str
    metadata: MetadataRecord
    profile_available: bool
    error: Optional[str] = None


class SyncOrchestrator:
    def __init__(
        self,
        vault: TokenVault,
        discord: DiscordConnector,
        fitbit: FitbitConnector,
    ):
        self._vault = vault
        self._discord = discord
        self._fitbit = fitbit

    async def sync(self, fitbit_user_id: str) -> SyncResult:
        # 1. Fitbit tokens
        fitbit_tokens = await self._vault.get(self._fitbit.provider_name, fitbit_user_id)
        if fitbit_tokens is None:
            raise UnlinkedUserError(fitbit_user_id, self._fitbit.provider_name)

        # 2. Paired Discord user + tokens
        discord_user_id = fitbit_tokens.linked_user_id
        discord_tokens = (
            await self._vault.get(self._discord.provider_name, discord_user_id)
            if discord_user_id
            else None
        )
        if discord_user_id is None or discord_tokens is None:
            raise UnlinkedUserError(discord_user_id or fitbit_user_id, self._discord.provider_name)

        # 3 + 4. Fetch and transform, falling back to nulls
        error: Optional[str] = None
        try:
            profile = await self._fitbit.get_profile(fitbit_user_id, fitbit_tokens)
            metadata = transform(profile)
        except Exception as exc:
            error = f"Error fetching Fitbit profile data: {exc}"
            logger.error("%s (user %s) — pushing null metadata", error, fitbit_user_id)
            metadata = MetadataRecord.empty()

        # 5. Push (propagates)
        await self._discord.push_metadata(discord_user_id, discord_tokens, metadata)
        logger.info(
            "Synced Fitbit user %s → Discord user %s (profile %s)",
            fitbit_user_id,
            discord_user_id,
            "ok" if error is None else "unavailable",
        )
        return SyncResult(
            fitbit_user_id=fitbit_user_id,
            discord_user_id=discord_user_id,
            metadata=metadata,
            profile_available=error is None,
            error=error,
        )
