"""
Sync-delay diagnostics.

Data that looks "missing" is usually a timezone skew: the app asks for
today's date in one zone while the Fitbit account lives in another.  The
report shows the server clock, the account's UTC offset, the date Fitbit
considers "today", and what the activity, weight and device endpoints
return for that date.  Each sub-fetch fails on its own and is reported
inline.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from connectors.base import BaseConnector, ProviderRequestError
from connectors.fitbit import DEVICES_PATH, PROFILE_PATH, activity_path, weight_path
from connectors.schemas import DebugInfo, DiagnosticReport, RawResponses
from connectors.token_manager import require_credential

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def provider_today(now: datetime, offset_millis: int) -> str:
    """Calendar date at the account's UTC offset, as YYYY-MM-DD."""
    return (now + timedelta(milliseconds=offset_millis)).date().isoformat()


def timezone_warning(client_tz: Optional[str], provider_tz: Optional[str]) -> Optional[str]:
    if not client_tz or not provider_tz or client_tz == provider_tz:
        return None
    return (
        f"Timezone mismatch: this device reports {client_tz} but the Fitbit account "
        f"is set to {provider_tz}. Data may appear under a different day than expected."
    )


async def _fetch(connector: BaseConnector, path: str, token: str) -> Any:
    try:
        return await connector.get_json(path, token)
    except ProviderRequestError as exc:
        logger.info("Diagnostics fetch %s failed (HTTP %s): %s", path, exc.status, exc)
        return exc.as_inline()


async def fetch_profile(connector: BaseConnector, token: str) -> Tuple[Dict[str, Any], int, Optional[str]]:
    """Return (raw profile, offsetFromUTCMillis, timezone name)."""
    profile = await _fetch(connector, PROFILE_PATH, token)
    user = profile.get("user") if isinstance(profile, dict) else None
    if not isinstance(user, dict):
        user = {}
    offset = user.get("offsetFromUTCMillis") or 0
    return profile, int(offset), user.get("timezone")


async def diagnose(
    session: AsyncSession,
    connector: BaseConnector,
    user_id: str,
    client_timezone: Optional[str] = None,
) -> DiagnosticReport:
    cred = await require_credential(session, user_id, provider=connector.provider_name)
    token = cred.access_token

    profile, offset_millis, provider_tz = await fetch_profile(connector, token)

    now = utc_now()
    today = provider_today(now, offset_millis)

    activity, weight, devices = await asyncio.gather(
        _fetch(connector, activity_path(today), token),
        _fetch(connector, weight_path(today), token),
        _fetch(connector, DEVICES_PATH, token),
    )

    warning = timezone_warning(client_timezone, provider_tz)
    if warning:
        logger.info("Timezone mismatch for user %s: %s vs %s", user_id, client_timezone, provider_tz)

    return DiagnosticReport(
        debug_info=DebugInfo(
            server_time=now.isoformat(),
            user_offset_hours=offset_millis / 3_600_000,
            calculated_today=today,
            permissions_scope=cred.scopes,
            provider_user_id=cred.provider_user_id,
            token_expires_at=cred.expires_at,
            client_timezone=client_timezone,
            provider_timezone=provider_tz,
            timezone_match=None if not (client_timezone and provider_tz) else client_timezone == provider_tz,
            timezone_warning=warning,
        ),
        raw_responses=RawResponses(
            profile=profile,
            activity=activity,
            weight=weight,
            devices=devices,
        ),
    )
