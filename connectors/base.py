"""
OAuth2Client — the authorization-code client shared by every provider.

Subclasses (Discord, Fitbit) only declare endpoints, scopes, credentials
and how the client authenticates to the token endpoint; the grant logic,
lazy refresh and best-effort revocation live here.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from config.settings import Settings
from connectors.token_manager import RefreshLocks, TokenVault
from utils.errors import OAuthExchangeError, OAuthRefreshError, UnlinkedUserError
from utils.schemas import AuthorizationRequest, RevocationResult, TokenGrant, TokenRecord, now_ms

logger = logging.getLogger(__name__)


def _pkce_pair() -> Tuple[str, str]:
    """Return (code_verifier, S256 code_challenge)."""
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


class OAuth2Client(ABC):
    """Abstract base for the two OAuth2 providers."""

    authorize_url: str = ""
    token_url: str = ""
    revoke_url: str = ""
    uses_pkce: bool = False

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        vault: TokenVault,
        locks: Optional[RefreshLocks] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings
        self._http = http_client
        self._vault = vault
        self._locks = locks or RefreshLocks()
        self._clock = clock

    # ── Identity ────────────────────────────────────────────────────────

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique slug, also the token key prefix: 'discord', 'fitbit'."""
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        ...

    @property
    @abstractmethod
    def client_id(self) -> str:
        ...

    @property
    @abstractmethod
    def client_secret(self) -> str:
        ...

    @property
    @abstractmethod
    def redirect_uri(self) -> str:
        ...

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    # ── Hooks ───────────────────────────────────────────────────────────

    def _extra_auth_params(self) -> Dict[str, str]:
        """Provider-specific query params for the consent URL."""
        return {}

    def _client_credentials(self) -> Tuple[Dict[str, str], Optional[Tuple[str, str]]]:
        """
        How this client authenticates to the token / revoke endpoints.

        Returns (extra form fields, HTTP basic auth tuple or None).
        Default: client id + secret in the form body.
        """
        return {"client_id": self.client_id, "client_secret": self.client_secret}, None

    # ── OAuth flow ──────────────────────────────────────────────────────

    def build_authorization_url(self) -> AuthorizationRequest:
        """Fresh state (and PKCE verifier when required) + consent URL."""
        state = secrets.token_urlsafe(32)
        params: Dict[str, str] = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
        }
        verifier: Optional[str] = None
        if self.uses_pkce:
            verifier, challenge = _pkce_pair()
            params["code_challenge"] = challenge
            params["code_challenge_method"] = "S256"
        params.update(self._extra_auth_params())
        return AuthorizationRequest(
            url=f"{self.authorize_url}?{urlencode(params)}",
            state=state,
            code_verifier=verifier,
        )

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenGrant:
        """Authorization-code grant."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier
        resp = await self._post_form(self.token_url, data)
        if not resp.is_success:
            raise OAuthExchangeError(
                f"Error fetching {self.provider_name} OAuth tokens", resp.status_code, resp.text
            )
        return TokenGrant.model_validate(resp.json())

    async def refresh(self, record: TokenRecord) -> TokenGrant:
        """Refresh-token grant.  Raises OAuthRefreshError; never retried."""
        resp = await self._post_form(
            self.token_url,
            {"grant_type": "refresh_token", "refresh_token": record.refresh_token},
        )
        if not resp.is_success:
            raise OAuthRefreshError(
                f"Error refreshing {self.provider_name} access token", resp.status_code, resp.text
            )
        return TokenGrant.model_validate(resp.json())

    async def get_access_token(self, user_id: str, record: TokenRecord) -> str:
        """
        Return a usable access token for ``user_id``.

        1. If ``record`` has not expired, return its token (no network).
        2. Otherwise take the per-user refresh lock and re-read the vault:
           a concurrent caller may already have refreshed, or the record may
           have been deleted meanwhile (UnlinkedUserError).
        3. Still expired → refresh grant, persist, return the new token.
        """
        if not record.is_expired(self._clock()):
            return record.access_token

        async with self._locks.hold(self.provider_name, user_id):
            current = await self._vault.get(self.provider_name, user_id)
            if current is None:
                raise UnlinkedUserError(user_id, self.provider_name)
            if not current.is_expired(self._clock()):
                return current.access_token

            grant = await self.refresh(current)
            refreshed = current.model_copy(
                update={
                    "access_token": grant.access_token,
                    # Some providers rotate refresh tokens
                    "refresh_token": grant.refresh_token or current.refresh_token,
                    "expires_at": self._clock() + grant.expires_in * 1000,
                    "scope": grant.scope or current.scope,
                }
            )
            await self._vault.store(self.provider_name, user_id, refreshed)
            logger.info("Refreshed %s token for user %s", self.provider_name, user_id)
            return refreshed.access_token

    async def revoke(self, user_id: str, record: TokenRecord) -> RevocationResult:
        """
        Best-effort upstream revocation followed by local deletion.

        Upstream failures are logged and reported in the result; the
        stored TokenRecord is removed regardless.
        """
        error: Optional[str] = None
        try:
            resp = await self._post_form(
                self.revoke_url,
                {
                    "token": record.refresh_token or record.access_token,
                    "token_type_hint": "refresh_token" if record.refresh_token else "access_token",
                },
            )
            if not resp.is_success:
                error = f"[{resp.status_code}] {resp.text}"
        except httpx.HTTPError as exc:
            error = str(exc) or exc.__class__.__name__

        if error:
            logger.warning("%s token revocation failed for %s: %s", self.provider_name, user_id, error)

        await self._vault.delete(self.provider_name, user_id)
        return RevocationResult(
            provider=self.provider_name,
            user_id=user_id,
            revoked=error is None,
            error=error,
        )

    # ── Helpers ─────────────────────────────────────────────────────────

    async def _post_form(self, url: str, data: Dict[str, Any]) -> httpx.Response:
        extra, auth = self._client_credentials()
        return await self._http.post(
            url,
            data={**data, **extra},
            auth=auth,
            headers={"Accept": "application/json"},
        )

    async def _bearer_headers(self, user_id: str, record: TokenRecord) -> Dict[str, str]:
        token = await self.get_access_token(user_id, record)
        return {"Authorization": f"Bearer {token}"}
