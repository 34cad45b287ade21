"""
LinkFlow — the user-facing lifecycle of a Discord ↔ Fitbit link.

    UNLINKED ──(Discord authorized)──▶ A_AUTHORIZED ──(Fitbit authorized)──▶ LINKED
        ▲                                                                    │
        └──────────────────────────────(disconnect)──────────────────────────┘

Every transition is triggered by a user action (redirect callback,
disconnect) or a webhook; nothing here runs on a timer.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from connectors.discord import DiscordConnector
from connectors.fitbit import FitbitConnector
from connectors.token_manager import TokenVault
from core.link_registry import LinkRegistry
from core.metadata import MetadataRecord, transform
from core.orchestrator import SyncOrchestrator, SyncResult
from core.state_guard import CallbackStateGuard
from utils.errors import LinkedRolesError, OAuthExchangeError, StateMismatchError, UnlinkedUserError
from utils.schemas import AuthorizationRequest, RevocationResult, StateRecord, TokenRecord

logger = logging.getLogger(__name__)


class LinkState(str, Enum):
    UNLINKED = "unlinked"
    A_AUTHORIZED = "discord_authorized"
    LINKED = "linked"


class DisconnectResult(BaseModel):
    cleaned_up: bool
    revocations: List[RevocationResult] = Field(default_factory=list)


class LinkFlow:
    def __init__(
        self,
        vault: TokenVault,
        guard: CallbackStateGuard,
        registry: LinkRegistry,
        orchestrator: SyncOrchestrator,
        discord: DiscordConnector,
        fitbit: FitbitConnector,
    ):
        self._vault = vault
        self._guard = guard
        self._registry = registry
        self._orchestrator = orchestrator
        self._discord = discord
        self._fitbit = fitbit

    # ── Linking ─────────────────────────────────────────────────────────

    async def start(self) -> AuthorizationRequest:
        """
        Begin the flow with the Discord consent dialog.  The caller must
        also hand ``state`` to the browser in a signed cookie.
        """
        request = self._discord.build_authorization_url()
        await self._guard.issue(
            StateRecord(provider=self._discord.provider_name, cookie_bound=True),
            state=request.state,
        )
        return request

    async def complete_discord(
        self, code: str, state: Optional[str], cookie_state: Optional[str]
    ) -> AuthorizationRequest:
        """
        Discord callback:
        1. Verify state against the cookie.
        2. Exchange the code, identify the user, store the tokens.
        3. Issue the Fitbit consent URL (PKCE verifier parked with the state).
        """
        await self._guard.consume(state, cookie_state, provider=self._discord.provider_name)

        grant = await self._discord.exchange_code(code)
        info = await self._discord.get_user_data(grant)
        discord_user_id = info.user.id
        await self._vault.store(
            self._discord.provider_name, discord_user_id, TokenRecord.from_grant(grant)
        )
        logger.info("Discord authorized for user %s", discord_user_id)

        request = self._fitbit.build_authorization_url()
        await self._guard.issue(
            StateRecord(
                provider=self._fitbit.provider_name,
                discord_user_id=discord_user_id,
                code_verifier=request.code_verifier,
            ),
            state=request.state,
        )
        return request

    async def complete_fitbit(self, code: str, state: Optional[str]) -> SyncResult:
        """
        Fitbit callback:
        1. Recover the Discord user id + PKCE verifier from the state.
        2. Exchange the code and store the Fitbit tokens.
        3. Record the link.  A Fitbit account previously linked by this
           Discord user is revoked; a Discord user previously linked to
           this Fitbit account is detached and has its metadata cleared.
        4. Subscribe to Fitbit notifications.
        5. Run the first metadata sync.
        """
        parked = await self._guard.consume(state, provider=self._fitbit.provider_name)
        if not parked.discord_user_id:
            raise StateMismatchError("Fitbit state carries no Discord user")
        discord_user_id = parked.discord_user_id

        grant = await self._fitbit.exchange_code(code, parked.code_verifier)
        if not grant.user_id:
            raise OAuthExchangeError("Fitbit token response carries no user_id")
        fitbit_user_id = grant.user_id
        await self._detach_previous_owner(fitbit_user_id, discord_user_id)
        tokens = TokenRecord.from_grant(
            grant,
            linked_user_id=discord_user_id,
            code_verifier=parked.code_verifier,
        )
        await self._vault.store(self._fitbit.provider_name, fitbit_user_id, tokens)

        previous = await self._registry.resolve(discord_user_id)
        if previous and previous != fitbit_user_id:
            await self._revoke_fitbit(previous, discord_user_id)
        await self._registry.link(discord_user_id, fitbit_user_id)
        logger.info("Linked Discord user %s ↔ Fitbit user %s", discord_user_id, fitbit_user_id)

        await self._fitbit.create_subscription(fitbit_user_id, tokens)
        return await self._orchestrator.sync(fitbit_user_id)

    # ── Unlinking ───────────────────────────────────────────────────────

    async def disconnect(self, discord_user_id: str) -> DisconnectResult:
        """
        1. Push empty metadata to Discord to null out the verified role.
        2. Revoke + delete the Discord tokens.
        3. Revoke + delete the linked Fitbit tokens and drop the link.

        Cleanup always runs to the end; a failed push is re-raised after.
        """
        result = DisconnectResult(cleaned_up=False)
        push_error: Optional[Exception] = None

        discord_tokens = await self._vault.get(self._discord.provider_name, discord_user_id)
        if discord_tokens is not None:
            result.cleaned_up = True
            try:
                await self._discord.push_metadata(
                    discord_user_id, discord_tokens, MetadataRecord.empty()
                )
            except (LinkedRolesError, httpx.HTTPError) as exc:
                logger.error("Could not clear Discord metadata for %s: %s", discord_user_id, exc)
                push_error = exc
            # the push may have refreshed (and rotated) the tokens
            current = await self._vault.get(self._discord.provider_name, discord_user_id)
            result.revocations.append(
                await self._discord.revoke(discord_user_id, current or discord_tokens)
            )

        fitbit_user_id = await self._registry.resolve(discord_user_id)
        if fitbit_user_id:
            result.cleaned_up = True
            revocation = await self._revoke_fitbit(fitbit_user_id, discord_user_id)
            if revocation is not None:
                result.revocations.append(revocation)
            await self._registry.unlink(discord_user_id)

        if push_error is not None:
            raise push_error
        logger.info("Disconnected Discord user %s (cleaned up: %s)", discord_user_id, result.cleaned_up)
        return result

    async def _revoke_fitbit(
        self, fitbit_user_id: str, discord_user_id: str
    ) -> Optional[RevocationResult]:
        """Revoke the Fitbit tokens only while they still belong to ``discord_user_id``."""
        tokens = await self._vault.get(self._fitbit.provider_name, fitbit_user_id)
        if tokens is None:
            return None
        if tokens.linked_user_id != discord_user_id:
            logger.info(
                "Fitbit user %s now linked to Discord user %s; tokens kept",
                fitbit_user_id,
                tokens.linked_user_id,
            )
            return None
        return await self._fitbit.revoke(fitbit_user_id, tokens)

    async def _detach_previous_owner(self, fitbit_user_id: str, discord_user_id: str) -> None:
        """
        Drop the link of another Discord user to ``fitbit_user_id`` and null
        out their metadata.  A failed push is logged, not raised.
        """
        existing = await self._vault.get(self._fitbit.provider_name, fitbit_user_id)
        owner = existing.linked_user_id if existing else None
        if not owner or owner == discord_user_id:
            return

        if await self._registry.resolve(owner) == fitbit_user_id:
            await self._registry.unlink(owner)
        owner_tokens = await self._vault.get(self._discord.provider_name, owner)
        if owner_tokens is not None:
            try:
                await self._discord.push_metadata(owner, owner_tokens, MetadataRecord.empty())
            except (LinkedRolesError, httpx.HTTPError) as exc:
                logger.error("Could not clear Discord metadata for %s: %s", owner, exc)
        logger.info(
            "Fitbit user %s moved from Discord user %s to %s", fitbit_user_id, owner, discord_user_id
        )

    # ── Queries ─────────────────────────────────────────────────────────

    async def get_profile(self, discord_user_id: str) -> MetadataRecord:
        """Current Fitbit profile of the linked account, as metadata."""
        fitbit_user_id = await self._registry.resolve(discord_user_id)
        if not fitbit_user_id:
            raise UnlinkedUserError(discord_user_id, self._fitbit.provider_name)
        tokens = await self._vault.get(self._fitbit.provider_name, fitbit_user_id)
        if tokens is None or tokens.linked_user_id != discord_user_id:
            raise UnlinkedUserError(fitbit_user_id, self._fitbit.provider_name)
        profile = await self._fitbit.get_profile(fitbit_user_id, tokens)
        return transform(profile)

    async def get_metadata(self, discord_user_id: str) -> Dict[str, Any]:
        """Role-connection metadata Discord currently holds for the user."""
        tokens = await self._vault.get(self._discord.provider_name, discord_user_id)
        if tokens is None:
            raise UnlinkedUserError(discord_user_id, self._discord.provider_name)
        return await self._discord.get_metadata(discord_user_id, tokens)

    async def link_state(self, discord_user_id: str) -> LinkState:
        if await self._vault.get(self._discord.provider_name, discord_user_id) is None:
            return LinkState.UNLINKED
        fitbit_user_id = await self._registry.resolve(discord_user_id)
        if fitbit_user_id:
            tokens = await self._vault.get(self._fitbit.provider_name, fitbit_user_id)
            if tokens is not None and tokens.linked_user_id == discord_user_id:
                return LinkState.LINKED
        return LinkState.A_AUTHORIZED
