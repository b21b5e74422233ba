"""
Shared fixtures: Fitbit settings, an in-memory database, and a scripted
Fitbit API behind ``httpx.MockTransport``.
"""

from typing import Callable, Dict, List, Tuple, Union

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config.settings import config
from connectors import encryption
from connectors.fitbit import FitbitConnector
from connectors.pkce import ChallengeMethod
from database.models import Base

REDIRECT_URI = "https://app.example.com/api/v1/fitbit/callback"
SCOPES = "activity nutrition weight profile"

Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


@pytest.fixture(autouse=True)
def fitbit_settings(monkeypatch):
    monkeypatch.setattr(config, "fitbit_client_id", "CLIENT123")
    monkeypatch.setattr(config, "fitbit_client_secret", "s3cr3t-client-secret")
    monkeypatch.setattr(config, "fitbit_redirect_uri", REDIRECT_URI)
    monkeypatch.setattr(config, "fitbit_scopes", SCOPES)
    monkeypatch.setattr(config, "fitbit_pkce_method", ChallengeMethod.S256)
    monkeypatch.setattr(config, "oauth_state_ttl_seconds", 600)
    monkeypatch.setattr(config, "frontend_url", "https://app.example.com")
    monkeypatch.setattr(config, "jwt_secret", "test-jwt-secret")
    monkeypatch.setattr(config, "token_encryption_key", "")
    encryption.reset_cipher()
    yield config
    encryption.reset_cipher()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


class FakeFitbit:
    """Routes requests by (method, path) to canned responses and records them."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method.upper(), path)] = handler

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"errors": [{"errorType": "not_found", "message": "no route"}]})
        if callable(handler):
            return handler(request)
        return handler

    def connector(self) -> FitbitConnector:
        return FitbitConnector(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_fitbit() -> FakeFitbit:
    return FakeFitbit()


def token_response(**overrides) -> httpx.Response:
    body = {
        "access_token": "access-abc",
        "refresh_token": "refresh-xyz",
        "user_id": "FB1234",
        "expires_in": 28800,
        "token_type": "Bearer",
        "scope": "activity weight profile nutrition",
    }
    body.update(overrides)
    return httpx.Response(200, json=body)
