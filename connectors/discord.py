"""
DiscordConnector — OAuth2 + role-connection metadata for Discord.

Discord is the side that displays linked roles: we authenticate the user
with the ``role_connections.write`` scope and push a flat metadata record
for our application on their behalf.
See https://discord.com/developers/docs/topics/oauth2
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from connectors.base import OAuth2Client
from core.metadata import MetadataRecord
from utils.errors import MetadataPushError, ProviderHTTPError
from utils.schemas import DiscordAuthorizationInfo, TokenGrant, TokenRecord

logger = logging.getLogger(__name__)

_DISCORD_API = "https://discord.com/api/v10"


class DiscordConnector(OAuth2Client):
    """OAuth2 connector for Discord."""

    authorize_url = "https://discord.com/api/oauth2/authorize"
    token_url = f"{_DISCORD_API}/oauth2/token"
    revoke_url = f"{_DISCORD_API}/oauth2/token/revoke"

    @property
    def provider_name(self) -> str:
        return "discord"

    @property
    def scopes(self) -> List[str]:
        return ["role_connections.write", "identify"]

    @property
    def client_id(self) -> str:
        return self.settings.discord_client_id

    @property
    def client_secret(self) -> str:
        return self.settings.discord_client_secret

    @property
    def redirect_uri(self) -> str:
        return self.settings.discord_redirect_uri

    def _extra_auth_params(self) -> Dict[str, str]:
        return {"prompt": "consent"}

    def _role_connection_url(self) -> str:
        return f"{_DISCORD_API}/users/@me/applications/{self.client_id}/role-connection"

    async def get_user_data(self, grant: TokenGrant) -> DiscordAuthorizationInfo:
        """Fetch the current authorization (and user id) for a fresh grant."""
        resp = await self._http.get(
            f"{_DISCORD_API}/oauth2/@me",
            headers={"Authorization": f"Bearer {grant.access_token}"},
        )
        if not resp.is_success:
            raise ProviderHTTPError("Error fetching Discord user data", resp.status_code, resp.text)
        return DiscordAuthorizationInfo.model_validate(resp.json())

    async def push_metadata(self, user_id: str, record: TokenRecord, metadata: MetadataRecord) -> None:
        """
        ``PUT /users/@me/applications/:id/role-connection``.

        Every schema key is sent, unset ones as null, so a previously
        pushed truthy value is always overwritten.
        """
        headers = await self._bearer_headers(user_id, record)
        body = {
            "platform_name": self.settings.discord_platform_name,
            "metadata": metadata.to_payload(),
        }
        resp = await self._http.put(self._role_connection_url(), json=body, headers=headers)
        if not resp.is_success:
            raise MetadataPushError("Error pushing Discord metadata", resp.status_code, resp.text)
        logger.info("Pushed Discord metadata for user %s", user_id)

    async def get_metadata(self, user_id: str, record: TokenRecord) -> Dict[str, Any]:
        """Metadata currently stored by Discord for this user and application."""
        headers = await self._bearer_headers(user_id, record)
        resp = await self._http.get(self._role_connection_url(), headers=headers)
        if not resp.is_success:
            raise ProviderHTTPError("Error getting Discord metadata", resp.status_code, resp.text)
        return resp.json()
