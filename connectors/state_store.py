"""
State store — single-use, expiring authorization state records.

A state row is keyed by its own random token so the callback can find it
with nothing but the ``state`` query parameter.  ``consume_state`` reads
and deletes in one step; the conditional ``DELETE`` is the arbiter, so of
two concurrent deliveries of the same state only the one whose delete
removed the row gets the record back.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import config
from connectors.errors import StorageError
from connectors.models import OAuthState

logger = logging.getLogger(__name__)

STATE_BYTES = 32


@dataclass(frozen=True)
class ResolvedState:
    state: str
    user_id: Optional[str]
    provider: str
    code_verifier: str
    created_at: int


def now_ms() -> int:
    return int(time.time() * 1000)


def new_state_token() -> str:
    return secrets.token_urlsafe(STATE_BYTES)


def _cutoff_ms() -> int:
    return now_ms() - config.oauth_state_ttl_seconds * 1000


async def create_state(
    session: AsyncSession,
    *,
    user_id: str,
    code_verifier: str,
    provider: str = "fitbit",
    state: Optional[str] = None,
) -> str:
    """
    Insert a state record, commit it and return the state token.

    The commit happens here because the authorization URL must never be
    handed out for a state that is not durably stored.
    """
    token = state or new_state_token()
    record = OAuthState(
        state=token,
        user_id=user_id,
        provider=provider,
        code_verifier=code_verifier,
        created_at=now_ms(),
    )
    try:
        session.add(record)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Failed to persist OAuth state for user %s: %s", user_id, exc)
        raise StorageError("could not persist authorization state") from exc
    return token


async def consume_state(session: AsyncSession, state: str) -> Optional[ResolvedState]:
    """
    Resolve and invalidate ``state``.

    Returns the record when this caller removed it and it had not expired,
    otherwise ``None``.  Expired rows are deleted as well.  The deletion is
    committed before returning.
    """
    try:
        result = await session.execute(select(OAuthState).where(OAuthState.state == state))
        row = result.scalar_one_or_none()
        if row is None:
            return None
        record = ResolvedState(
            state=row.state,
            user_id=row.user_id,
            provider=row.provider,
            code_verifier=row.code_verifier,
            created_at=row.created_at,
        )

        deleted = await session.execute(
            delete(OAuthState)
            .where(OAuthState.state == state)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Failed to consume OAuth state: %s", exc)
        raise StorageError("could not consume authorization state") from exc

    if deleted.rowcount != 1:
        logger.warning("OAuth state consumed concurrently by another request")
        return None
    if record.created_at < _cutoff_ms():
        logger.info("OAuth state for user %s expired before callback", record.user_id)
        return None
    return record


async def prune_expired_states(session: AsyncSession) -> int:
    """Delete states older than the TTL.  Returns the number removed."""
    try:
        result = await session.execute(
            delete(OAuthState)
            .where(OAuthState.created_at < _cutoff_ms())
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError("could not prune authorization states") from exc
    return result.rowcount or 0
