"""
Authorization flow — initiate and callback.

    initiate:  verified user → PKCE pair + state row (committed) → consent URL
    callback:  code + state → consume state (committed) → token exchange
               → credential upsert

The state row is deleted before the exchange runs, so a replayed or
duplicated callback cannot reuse it even while the first exchange is still
in flight.  Nothing here retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import config
from connectors import pkce
from connectors.base import BaseConnector
from connectors.errors import BadRequest, InvalidOrExpiredState, StorageError, TokenExchangeFailed
from connectors.state_store import consume_state, create_state, now_ms, prune_expired_states
from connectors.token_manager import store_credential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialWritten:
    user_id: str
    provider_user_id: str
    expires_at: int
    scopes: str


async def initiate(
    session: AsyncSession,
    connector: BaseConnector,
    user_id: str,
) -> str:
    """Start the flow for an already-verified user and return the consent URL."""
    connector.require_config()

    pair = pkce.generate(config.fitbit_pkce_method)

    try:
        pruned = await prune_expired_states(session)
    except StorageError:
        logger.warning("Could not prune expired OAuth states", exc_info=True)
    else:
        if pruned:
            logger.debug("Pruned %d expired OAuth states", pruned)

    state = await create_state(
        session,
        user_id=user_id,
        code_verifier=pair.verifier,
        provider=connector.provider_name,
    )
    logger.info(
        "Initiated %s authorization for user %s (pkce=%s)",
        connector.provider_name, user_id, pair.method.value,
    )
    return connector.get_auth_url(state, pair)


async def handle_callback(
    session: AsyncSession,
    connector: BaseConnector,
    code: Optional[str],
    state: Optional[str],
) -> CredentialWritten:
    """Complete the flow started by ``initiate``."""
    if not code or not state:
        raise BadRequest("callback requires both code and state")

    record = await consume_state(session, state)
    if record is None:
        raise InvalidOrExpiredState("state not found, already used, or expired")
    if not record.user_id:
        raise InvalidOrExpiredState("state record carries no user")
    if record.provider != connector.provider_name:
        raise InvalidOrExpiredState(f"state issued for provider {record.provider}")

    user_id = record.user_id

    try:
        grant = await connector.exchange_code(code, record.code_verifier)
    except TokenExchangeFailed as exc:
        logger.warning(
            "%s token exchange failed for user %s (HTTP %s): %s",
            connector.provider_name, user_id, exc.upstream_status, exc.detail,
        )
        raise

    expires_at = now_ms() + grant.expires_in * 1000
    scopes = config.fitbit_scopes

    try:
        await store_credential(
            session,
            user_id,
            {
                "provider_user_id": grant.provider_user_id,
                "access_token": grant.access_token,
                "refresh_token": grant.refresh_token,
                "expires_at": expires_at,
                "scopes": scopes,
            },
            provider=connector.provider_name,
        )
    except Exception:
        logger.critical(
            "UNSTORED GRANT: %s issued tokens for user %s (provider account %s) "
            "but the credential write failed; a live grant exists upstream",
            connector.provider_name, user_id, grant.provider_user_id,
            exc_info=True,
        )
        raise

    logger.info(
        "%s connected: user=%s account=%s granted_scope=%r",
        connector.display_name, user_id, grant.provider_user_id, grant.scope,
    )
    return CredentialWritten(
        user_id=user_id,
        provider_user_id=grant.provider_user_id,
        expires_at=expires_at,
        scopes=scopes,
    )
