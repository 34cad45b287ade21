"""
Exception taxonomy for the linking / sync core.

Upstream failures carry the provider's HTTP status and body so the
caller can log exactly what the provider said.
"""

from __future__ import annotations

from typing import Optional


class LinkedRolesError(Exception):
    """Base class for every error raised by this service."""


# ── Upstream (provider) failures ─────────────────────────────────────────


class ProviderHTTPError(LinkedRolesError):
    """A provider answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        detail = f"[{status_code}] {body}" if status_code is not None else body
        super().__init__(f"{message}: {detail}" if detail else message)


class OAuthExchangeError(ProviderHTTPError):
    """The authorization-code grant was rejected."""


class OAuthRefreshError(ProviderHTTPError):
    """
    The refresh-token grant was rejected.

    Terminal for the user: consent was revoked or the refresh token is
    stale, so the user has to authorize again.  Never retried.
    """


class ProfileFetchError(ProviderHTTPError):
    """Reading the Fitbit profile failed."""


class MetadataPushError(ProviderHTTPError):
    """Writing role-connection metadata to Discord failed."""


class SubscriptionError(ProviderHTTPError):
    """Creating the Fitbit webhook subscription failed."""


# ── Flow failures ────────────────────────────────────────────────────────


class StateMismatchError(LinkedRolesError):
    """OAuth callback state is forged, expired or already used."""


class UnlinkedUserError(LinkedRolesError):
    """No stored tokens / link for the user."""

    def __init__(self, user_id: str, provider: str):
        self.user_id = user_id
        self.provider = provider
        super().__init__(f"No {provider} tokens stored for user {user_id}")


class WebhookPayloadError(LinkedRolesError):
    """Webhook envelope does not carry an owner id."""
