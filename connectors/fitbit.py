"""
FitbitConnector — OAuth2 (PKCE) for the Fitbit Web API.

Fitbit is the source of profile facts.  Its token endpoint wants HTTP
basic client authentication and a PKCE verifier on the code grant; every
grant response carries the owner's ``user_id``.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from connectors.base import OAuth2Client
from utils.errors import ProfileFetchError, SubscriptionError
from utils.schemas import FitbitProfile, TokenRecord

logger = logging.getLogger(__name__)

_FITBIT_API = "https://api.fitbit.com"


class FitbitConnector(OAuth2Client):
    """OAuth2 connector for Fitbit."""

    authorize_url = "https://www.fitbit.com/oauth2/authorize"
    token_url = f"{_FITBIT_API}/oauth2/token"
    revoke_url = f"{_FITBIT_API}/oauth2/revoke"
    uses_pkce = True

    @property
    def provider_name(self) -> str:
        return "fitbit"

    @property
    def scopes(self) -> List[str]:
        return ["activity", "profile"]

    @property
    def client_id(self) -> str:
        return self.settings.fitbit_client_id

    @property
    def client_secret(self) -> str:
        return self.settings.fitbit_client_secret

    @property
    def redirect_uri(self) -> str:
        return self.settings.fitbit_redirect_uri

    def _client_credentials(self) -> Tuple[Dict[str, str], Optional[Tuple[str, str]]]:
        return {"client_id": self.client_id}, (self.client_id, self.client_secret)

    async def get_profile(self, user_id: str, record: TokenRecord) -> FitbitProfile:
        """``GET /1/user/-/profile.json`` on behalf of ``user_id``."""
        headers = await self._bearer_headers(user_id, record)
        resp = await self._http.get(f"{_FITBIT_API}/1/user/-/profile.json", headers=headers)
        if not resp.is_success:
            raise ProfileFetchError("Error fetching Fitbit profile data", resp.status_code, resp.text)
        return FitbitProfile.model_validate(resp.json())

    async def create_subscription(self, user_id: str, record: TokenRecord) -> None:
        """
        Subscribe to all collections for ``user_id`` so profile changes are
        delivered to the webhook.  409 means the subscription already exists.
        """
        headers = await self._bearer_headers(user_id, record)
        if self.settings.fitbit_subscriber_id:
            headers["X-Fitbit-Subscriber-Id"] = self.settings.fitbit_subscriber_id
        resp = await self._http.post(
            f"{_FITBIT_API}/1/user/-/apiSubscriptions/{user_id}-all.json",
            headers=headers,
        )
        if resp.status_code == 409:
            logger.info("Fitbit subscription already exists for user %s", user_id)
            return
        if not resp.is_success:
            raise SubscriptionError("Error creating Fitbit subscription", resp.status_code, resp.text)
        logger.info("Created Fitbit subscription for user %s", user_id)
