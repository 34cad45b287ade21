"""
Application settings loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Discord OAuth2 (role-connection metadata lives here) ──────────────
    discord_client_id: str = ""
    discord_client_secret: str = ""
    discord_redirect_uri: str = "http://localhost:3000/discord-oauth-callback"
    discord_platform_name: str = "Fitbit Linked Roles"

    # ── Fitbit OAuth2 (profile facts + webhook subscriptions) ─────────────
    fitbit_client_id: str = ""
    fitbit_client_secret: str = ""
    fitbit_redirect_uri: str = "http://localhost:3000/fitbit-oauth-callback"
    fitbit_subscriber_verify: str = ""   # verification code shown in the Fitbit dev console
    fitbit_subscriber_id: str = ""       # optional X-Fitbit-Subscriber-Id

    # ── Security Secrets ──────────────────────────────────────────────────
    cookie_secret: str = "change-me-cookie-secret"   # HMAC secret for the signed state cookie
    state_ttl_seconds: int = 300                     # lifetime of an OAuth state token
    token_encryption_key: str = ""                   # Fernet key for encrypting OAuth tokens at rest

    # ── Storage ──────────────────────────────────────────────────────────
    database_url: str = ""   # empty → in-memory storage

    # ── Outbound HTTP ────────────────────────────────────────────────────
    http_timeout_seconds: float = 10.0

    # ── Server ───────────────────────────────────────────────────────────
    port: int = 3000
    host: str = "0.0.0.0"
    debug: bool = False
    verification_url: str = "http://localhost:3000/verified-role"

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }


config = Settings()
