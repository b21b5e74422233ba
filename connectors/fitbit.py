"""
FitbitConnector — OAuth2 Authorization Code + PKCE for the Fitbit Web API.

Client credentials go to the token endpoint as HTTP Basic auth, the
authorization code and PKCE verifier as a form body.  Data endpoints are
read with the user's bearer token.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector, ProviderRequestError, TokenGrant
from connectors.errors import ConfigurationError, TokenExchangeFailed
from connectors.pkce import PkcePair

logger = logging.getLogger(__name__)

PROFILE_PATH = "/1/user/-/profile.json"
DEVICES_PATH = "/1/user/-/devices.json"


def activity_path(day: str) -> str:
    return f"/1/user/-/activities/date/{day}.json"


def weight_path(day: str) -> str:
    return f"/1/user/-/body/log/weight/date/{day}.json"


def _error_detail(resp: httpx.Response) -> str:
    """Pull a human-readable message out of a Fitbit error response."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            first = errors[0]
            return first.get("message") or first.get("errorType") or f"HTTP {resp.status_code}"
        if body.get("error_description") or body.get("error"):
            return body.get("error_description") or body["error"]
    return f"HTTP {resp.status_code}"


class FitbitConnector(BaseConnector):
    """OAuth2 connector for Fitbit."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "fitbit"

    @property
    def display_name(self) -> str:
        return "Fitbit"

    @property
    def scopes(self) -> List[str]:
        return config.fitbit_scopes.split()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=config.http_timeout_seconds,
        )

    def require_config(self) -> None:
        missing = config.missing_fitbit_settings()
        if missing:
            logger.error("Fitbit OAuth is not configured; missing %s", ", ".join(missing))
            raise ConfigurationError(f"Missing environment variables: {', '.join(missing)}")

    def get_auth_url(self, state: str, pkce: PkcePair) -> str:
        params = {
            "response_type": "code",
            "client_id": config.fitbit_client_id,
            "redirect_uri": config.fitbit_redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            "code_challenge": pkce.challenge,
            "code_challenge_method": pkce.method.value,
        }
        return f"{config.fitbit_auth_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str) -> TokenGrant:
        """Trade the authorization code plus PKCE verifier for tokens."""
        if not config.fitbit_client_secret:
            logger.error("FITBIT_CLIENT_SECRET is not set; cannot exchange authorization code")
            raise ConfigurationError("Missing environment variables: FITBIT_CLIENT_SECRET")

        async with self._client() as client:
            try:
                resp = await client.post(
                    config.fitbit_token_url,
                    auth=(config.fitbit_client_id, config.fitbit_client_secret),
                    data={
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": config.fitbit_redirect_uri,
                        "code_verifier": code_verifier,
                    },
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as exc:
                raise TokenExchangeFailed(f"token endpoint unreachable: {type(exc).__name__}") from exc

        if resp.is_error:
            raise TokenExchangeFailed(_error_detail(resp), status=resp.status_code)

        try:
            data = resp.json()
            return TokenGrant(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token") or "",
                provider_user_id=str(data["user_id"]),
                expires_in=int(data["expires_in"]),
                scope=data.get("scope", ""),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise TokenExchangeFailed(f"malformed token response: {exc!r}", status=resp.status_code) from exc

    async def get_json(self, path: str, access_token: str) -> Any:
        async with self._client() as client:
            try:
                resp = await client.get(
                    f"{config.fitbit_api_base}{path}",
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            except httpx.HTTPError as exc:
                raise ProviderRequestError(f"{path} unreachable: {type(exc).__name__}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.is_error:
            raise ProviderRequestError(_error_detail(resp), status=resp.status_code, payload=body)
        if body is None:
            raise ProviderRequestError(f"{path} returned a non-JSON body", status=resp.status_code)
        return body
