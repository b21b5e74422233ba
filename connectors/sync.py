"""
Daily sync — pull today's weight and activity summary into the user's log.

"Today" is the Fitbit account's local date, not the server's.  One log
entry per day (``fitbit_<date>``) is upserted, so syncing repeatedly just
refreshes the numbers.  Expired access tokens are not refreshed here; the
user has to reconnect.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.base import BaseConnector, ProviderRequestError
from connectors.diagnostics import fetch_profile, provider_today, utc_now
from connectors.errors import CredentialExpired, StorageError
from connectors.fitbit import activity_path, weight_path
from connectors.models import DailyActivityLog
from connectors.schemas import SyncResult
from connectors.state_store import now_ms
from connectors.token_manager import require_credential

logger = logging.getLogger(__name__)


def latest_weight(payload: Any) -> float:
    entries = payload.get("weight") if isinstance(payload, dict) else None
    if not entries:
        return 0
    return float(entries[-1].get("weight") or 0)


def activity_totals(payload: Any) -> Tuple[int, int]:
    summary = payload.get("summary") if isinstance(payload, dict) else None
    if not isinstance(summary, dict):
        return 0, 0
    return int(summary.get("steps") or 0), int(summary.get("caloriesOut") or 0)


async def _fetch_or_none(connector: BaseConnector, path: str, token: str) -> Any:
    try:
        return await connector.get_json(path, token)
    except ProviderRequestError as exc:
        logger.warning("Sync fetch %s failed (HTTP %s): %s", path, exc.status, exc)
        return None


async def sync_today(
    session: AsyncSession,
    connector: BaseConnector,
    user_id: str,
) -> SyncResult:
    cred = await require_credential(session, user_id, provider=connector.provider_name)
    if cred.expires_at is not None and cred.expires_at <= now_ms():
        raise CredentialExpired(f"{connector.provider_name} token for user {user_id} expired")
    token = cred.access_token

    _, offset_millis, _ = await fetch_profile(connector, token)
    today = provider_today(utc_now(), offset_millis)

    weight_json, activity_json = await asyncio.gather(
        _fetch_or_none(connector, weight_path(today), token),
        _fetch_or_none(connector, activity_path(today), token),
    )
    weight = latest_weight(weight_json)
    steps, calories = activity_totals(activity_json)

    entry_id = f"{connector.provider_name}_{today}"
    try:
        result = await session.execute(
            select(DailyActivityLog).where(
                DailyActivityLog.user_id == user_id,
                DailyActivityLog.entry_id == entry_id,
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            entry = DailyActivityLog(
                user_id=user_id,
                entry_id=entry_id,
                entry_type=f"{connector.provider_name}_data",
                log_date=date.fromisoformat(today),
            )
            session.add(entry)
        entry.weight = weight
        entry.steps = steps
        entry.calories_burned = calories
        entry.last_synced = datetime.now(timezone.utc)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(f"could not write daily log {entry_id}") from exc

    logger.info("Synced %s for user %s: steps=%d weight=%s", entry_id, user_id, steps, weight)
    return SyncResult(date=today, weight=weight, steps=steps, calories_burned=calories)
