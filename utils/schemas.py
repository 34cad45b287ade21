"""
Pydantic schemas shared by the connectors and the linking core.
"""

from __future__ import annotations

import time
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ═══════════════════════════════════════════════════════════════════════════════
# OAuth2 — token endpoint responses and stored records
# ═══════════════════════════════════════════════════════════════════════════════


class TokenGrant(BaseModel):
    """Body of a successful token-endpoint response (code or refresh grant)."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 3600
    scope: str = ""
    token_type: str = "Bearer"
    user_id: Optional[str] = None  # Fitbit returns the owner id with every grant


class TokenRecord(BaseModel):
    """
    Tokens stored per provider, per user.

    ``expires_at`` is an absolute epoch timestamp in milliseconds.
    """

    access_token: str
    refresh_token: str
    expires_at: int
    scope: str = ""
    # Fitbit record → paired Discord user id
    linked_user_id: Optional[str] = None
    code_verifier: Optional[str] = None

    @classmethod
    def from_grant(cls, grant: TokenGrant, *, issued_at: Optional[int] = None, **extra: Any) -> "TokenRecord":
        issued_at = now_ms() if issued_at is None else issued_at
        return cls(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or "",
            expires_at=issued_at + grant.expires_in * 1000,
            scope=grant.scope,
            **extra,
        )

    def is_expired(self, at_ms: Optional[int] = None) -> bool:
        return (now_ms() if at_ms is None else at_ms) >= self.expires_at


class AuthorizationRequest(BaseModel):
    """What ``build_authorization_url`` hands back to the caller."""

    url: str
    state: str
    code_verifier: Optional[str] = None


class RevocationResult(BaseModel):
    """Outcome of a best-effort revocation. Local cleanup always happens."""

    provider: str
    user_id: str
    revoked: bool
    error: Optional[str] = None


class StateRecord(BaseModel):
    """Payload parked under a state token while the user is at the provider."""

    provider: str
    discord_user_id: Optional[str] = None
    code_verifier: Optional[str] = None
    cookie_bound: bool = False


# ═══════════════════════════════════════════════════════════════════════════════
# Provider documents
# ═══════════════════════════════════════════════════════════════════════════════


class DiscordUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    username: str = ""


class DiscordAuthorizationInfo(BaseModel):
    """``GET /oauth2/@me`` response (only the parts we read)."""

    model_config = ConfigDict(extra="ignore")

    user: DiscordUser
    scopes: List[str] = Field(default_factory=list)


class FitbitUser(BaseModel):
    """Subset of the Fitbit ``user`` document the metadata schema is built from."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    encoded_id: Optional[str] = Field(default=None, alias="encodedId")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    average_daily_steps: Optional[int] = Field(default=None, alias="averageDailySteps")
    ambassador: Optional[bool] = None
    member_since: Optional[str] = Field(default=None, alias="memberSince")
    is_coach: Optional[bool] = Field(default=None, alias="isCoach")


class FitbitProfile(BaseModel):
    """``GET /1/user/-/profile.json`` response."""

    model_config = ConfigDict(extra="ignore")

    user: FitbitUser


class WebhookNotification(BaseModel):
    """One entry of a Fitbit subscription notification."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    owner_id: str = Field(alias="ownerId", min_length=1)
    collection_type: Optional[str] = Field(default=None, alias="collectionType")
    date: Optional[str] = None
    owner_type: Optional[str] = Field(default=None, alias="ownerType")
    subscription_id: Optional[str] = Field(default=None, alias="subscriptionId")
