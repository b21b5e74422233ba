"""
Token manager — store / read / delete per-user provider credentials.

One record per (user, provider).  Writes are merge upserts: only the
columns passed in are touched, so a partial write never drops sibling
fields of an existing record.  Access and refresh tokens are encrypted
on the way in and decrypted on the way out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.encryption import decrypt_token, encrypt_token
from connectors.errors import NotConnected, StorageError
from connectors.models import ProviderCredential

logger = logging.getLogger(__name__)

_WRITABLE = {"provider_user_id", "access_token", "refresh_token", "expires_at", "scopes"}
_ENCRYPTED = {"access_token", "refresh_token"}


@dataclass(frozen=True)
class StoredCredential:
    user_id: str
    provider: str
    provider_user_id: Optional[str]
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[int]
    scopes: Optional[str]
    last_updated: Optional[datetime]


def _to_stored(row: ProviderCredential) -> StoredCredential:
    return StoredCredential(
        user_id=row.user_id,
        provider=row.provider,
        provider_user_id=row.provider_user_id,
        access_token=decrypt_token(row.access_token),
        refresh_token=decrypt_token(row.refresh_token),
        expires_at=row.expires_at,
        scopes=row.scopes,
        last_updated=row.last_updated,
    )


async def _load(session: AsyncSession, user_id: str, provider: str) -> Optional[ProviderCredential]:
    result = await session.execute(
        select(ProviderCredential).where(
            ProviderCredential.user_id == user_id,
            ProviderCredential.provider == provider,
        )
    )
    return result.scalar_one_or_none()


async def store_credential(
    session: AsyncSession,
    user_id: str,
    values: Dict[str, Any],
    *,
    provider: str = "fitbit",
) -> None:
    """
    Merge ``values`` into the user's credential record and commit.

    Parameters
    ----------
    values : dict
        Any of provider_user_id, access_token, refresh_token, expires_at
        (epoch ms), scopes.  Keys that are absent are left untouched.
    """
    unknown = set(values) - _WRITABLE
    if unknown:
        raise ValueError(f"Unknown credential fields: {sorted(unknown)}")

    prepared = {
        key: encrypt_token(value) if key in _ENCRYPTED else value
        for key, value in values.items()
    }
    try:
        existing = await _load(session, user_id, provider)
        if existing:
            for key, value in prepared.items():
                setattr(existing, key, value)
            existing.last_updated = datetime.now(timezone.utc)
            logger.info("Updated %s credential for user %s", provider, user_id)
        else:
            session.add(
                ProviderCredential(
                    user_id=user_id,
                    provider=provider,
                    last_updated=datetime.now(timezone.utc),
                    **prepared,
                )
            )
            logger.info("Created %s credential for user %s", provider, user_id)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(f"could not write {provider} credential for user {user_id}") from exc


async def get_credential(
    session: AsyncSession,
    user_id: str,
    *,
    provider: str = "fitbit",
) -> Optional[StoredCredential]:
    try:
        row = await _load(session, user_id, provider)
    except SQLAlchemyError as exc:
        raise StorageError(f"could not read {provider} credential") from exc
    return _to_stored(row) if row else None


async def require_credential(
    session: AsyncSession,
    user_id: str,
    *,
    provider: str = "fitbit",
) -> StoredCredential:
    """Return the credential, raising ``NotConnected`` when there is no usable token."""
    cred = await get_credential(session, user_id, provider=provider)
    if cred is None or not cred.access_token:
        raise NotConnected(f"no {provider} access token for user {user_id}")
    return cred


async def is_connected(
    session: AsyncSession,
    user_id: str,
    *,
    provider: str = "fitbit",
) -> bool:
    """True when a record exists with a non-empty access token.  Expiry is not checked."""
    cred = await get_credential(session, user_id, provider=provider)
    return bool(cred and cred.access_token)


async def delete_credential(
    session: AsyncSession,
    user_id: str,
    *,
    provider: str = "fitbit",
) -> bool:
    """
    Delete the user's credential if present and commit.

    Local only, nothing is revoked at the provider.  Returns whether a
    record existed; a missing record is not an error.
    """
    try:
        result = await session.execute(
            delete(ProviderCredential)
            .where(
                ProviderCredential.user_id == user_id,
                ProviderCredential.provider == provider,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(f"could not delete {provider} credential") from exc

    existed = bool(result.rowcount)
    logger.info("Disconnected %s for user %s (record existed: %s)", provider, user_id, existed)
    return existed
