"""
FastAPI dependencies (shared across routes).
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth.jwt import verify_token
from connectors.errors import Unauthenticated
from connectors.fitbit import FitbitConnector
from database.session import get_db_session

_bearer_scheme = HTTPBearer(auto_error=False)
_fitbit = FitbitConnector()


async def db_session(session: AsyncSession = Depends(get_db_session)) -> AsyncGenerator[AsyncSession, None]:
    """Re-export so routes import from a single place."""
    yield session


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> str:
    """
    Extract and verify the Bearer identity token, returning the
    authenticated ``user_id``.
    """
    if credentials is None:
        raise Unauthenticated("missing Bearer token")
    return verify_token(credentials.credentials)


def get_fitbit_connector() -> FitbitConnector:
    return _fitbit
