"""
connectors — Fitbit OAuth2 (Authorization Code + PKCE) integration.

Provides:
  • PKCE verifier / challenge generation
  • Single-use, expiring state records for redirect correlation
  • Code → token exchange against the Fitbit token endpoint
  • Per-user credential storage with Fernet encryption at rest
  • Connection status, local disconnect, timezone diagnostics, daily sync
"""
