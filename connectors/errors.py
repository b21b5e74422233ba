"""
Error taxonomy for the Fitbit connector.

Every error carries the HTTP status it maps to and a fixed public message.
Anything more specific (provider error strings, the failing user) goes in
``detail`` and is only ever logged.
"""

from __future__ import annotations

from typing import Optional


class ConnectorError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.public_message
        super().__init__(self.detail)


class Unauthenticated(ConnectorError):
    status_code = 401
    public_message = "Invalid or missing identity token"


class BadRequest(ConnectorError):
    status_code = 400
    public_message = "Missing required parameters"


class InvalidOrExpiredState(ConnectorError):
    """State never issued, already consumed, expired, or without a user."""

    status_code = 400
    public_message = "Invalid or expired authorization state"


class ConfigurationError(ConnectorError):
    status_code = 500
    public_message = "Server configuration error"


class TokenExchangeFailed(ConnectorError):
    status_code = 502
    public_message = "Fitbit token exchange failed"

    def __init__(self, detail: Optional[str] = None, status: Optional[int] = None) -> None:
        self.upstream_status = status
        super().__init__(detail)


class StorageError(ConnectorError):
    status_code = 503
    public_message = "Storage unavailable"


class NotConnected(ConnectorError):
    status_code = 404
    public_message = "Fitbit not connected"


class CredentialExpired(ConnectorError):
    status_code = 401
    public_message = "Fitbit authorization expired, reconnect required"
