"""
connectors — OAuth2 integration with Discord and Fitbit.

Provides a shared OAuth2 client that handles:
  • Consent-URL generation (state + optional PKCE)
  • Callback handling (code → token exchange)
  • Per-user token storage & lazy refresh under a per-user lock
  • Fernet encryption of tokens at rest
  • Best-effort revocation

Each provider (Discord, Fitbit) is a subclass of OAuth2Client.
"""
