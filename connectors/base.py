"""
BaseConnector — abstract interface for OAuth2 + PKCE provider connectors.

A provider subclass knows its endpoints, how to build the consent URL,
how to trade an authorization code for tokens, and how to read its data
API with a bearer token.  State and credential storage live elsewhere.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List

from connectors.errors import ConfigurationError
from connectors.pkce import PkcePair


@dataclass(frozen=True)
class TokenGrant:
    """Normalised token endpoint response."""

    access_token: str
    refresh_token: str
    provider_user_id: str
    expires_in: int
    scope: str = ""


class BaseConnector(ABC):
    """Abstract base for provider connectors."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique slug, e.g. 'fitbit'."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        """Scopes requested at consent time."""
        ...

    # ── OAuth flow ──────────────────────────────────────────────────────

    @abstractmethod
    def require_config(self) -> None:
        """Raise ``ConfigurationError`` unless everything the flow needs is set."""
        ...

    @abstractmethod
    def get_auth_url(self, state: str, pkce: PkcePair) -> str:
        """
        Build the provider's authorization URL.

        Parameters
        ----------
        state : str
            Random single-use token stored server-side.
        pkce : PkcePair
            Only the challenge and method are placed in the URL.
        """
        ...

    @abstractmethod
    async def exchange_code(self, code: str, code_verifier: str) -> TokenGrant:
        """
        Exchange the authorization code for tokens.

        Raises ``TokenExchangeFailed`` on any non-success outcome.
        """
        ...

    @abstractmethod
    async def get_json(self, path: str, access_token: str) -> Any:
        """
        GET a data endpoint with the user's bearer token and return the decoded JSON.

        Raises ``ProviderRequestError`` on non-2xx responses and network errors.
        """
        ...

    # ── Helpers ─────────────────────────────────────────────────────────

    def is_configured(self) -> bool:
        try:
            self.require_config()
        except ConfigurationError:
            return False
        return True


class ProviderRequestError(Exception):
    """A data endpoint call failed; ``payload`` is the provider's error body if any."""

    def __init__(self, message: str, status: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload

    def as_inline(self) -> Dict[str, Any]:
        inline: Dict[str, Any] = {"error": str(self), "status": self.status}
        if self.payload is not None:
            inline["response"] = self.payload
        return inline
