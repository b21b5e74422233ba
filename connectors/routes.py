"""
Fitbit connector API routes — initiate, callback, status, disconnect,
diagnostics, sync.

Route prefix: /api/v1/fitbit
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import db_session, get_current_user_id, get_fitbit_connector
from config.settings import config
from connectors.diagnostics import diagnose
from connectors.errors import ConnectorError
from connectors.fitbit import FitbitConnector
from connectors.oauth_flow import handle_callback, initiate
from connectors.schemas import (
    DiagnoseRequest,
    DiagnosticReport,
    DisconnectResponse,
    InitiateResponse,
    StatusResponse,
    SyncResult,
)
from connectors.sync import sync_today
from connectors.token_manager import delete_credential, is_connected

logger = logging.getLogger(__name__)

router = APIRouter(tags=["fitbit"])


def _frontend_redirect(path: str) -> RedirectResponse:
    return RedirectResponse(url=f"{config.frontend_url}{path}")


@router.post("/initiate", response_model=InitiateResponse)
async def initiate_route(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    connector: FitbitConnector = Depends(get_fitbit_connector),
) -> InitiateResponse:
    """Return the Fitbit consent URL; the frontend navigates the browser to it."""
    url = await initiate(session, connector, user_id)
    return InitiateResponse(url=url)


@router.get("/callback")
async def callback_route(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    session: AsyncSession = Depends(db_session),
    connector: FitbitConnector = Depends(get_fitbit_connector),
) -> RedirectResponse:
    """
    Fitbit redirects here after consent.

    Always answers with a redirect to the frontend; the outcome is a bare
    query flag and no token or reason ever appears in the URL.
    """
    if error:
        logger.info("Fitbit consent returned error=%s", error)
        return _frontend_redirect(config.fitbit_error_path)

    try:
        await handle_callback(session, connector, code, state)
    except ConnectorError as exc:
        logger.warning("Fitbit callback failed (%s): %s", type(exc).__name__, exc.detail)
        return _frontend_redirect(config.fitbit_error_path)
    except Exception:
        logger.exception("Unexpected error in Fitbit callback")
        return _frontend_redirect(config.fitbit_error_path)
    return _frontend_redirect(config.fitbit_success_path)


@router.get("/status", response_model=StatusResponse, response_model_by_alias=True)
async def status_route(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    connector: FitbitConnector = Depends(get_fitbit_connector),
) -> StatusResponse:
    connected = await is_connected(session, user_id, provider=connector.provider_name)
    return StatusResponse(is_connected=connected)


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect_route(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    connector: FitbitConnector = Depends(get_fitbit_connector),
) -> DisconnectResponse:
    """Forget the stored credential.  Nothing is revoked at Fitbit."""
    await delete_credential(session, user_id, provider=connector.provider_name)
    return DisconnectResponse()


@router.post("/debug", response_model=DiagnosticReport)
async def debug_route(
    req: Optional[DiagnoseRequest] = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    connector: FitbitConnector = Depends(get_fitbit_connector),
) -> DiagnosticReport:
    client_tz = req.timezone if req else None
    return await diagnose(session, connector, user_id, client_tz)


@router.post("/sync", response_model=SyncResult)
async def sync_route(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    connector: FitbitConnector = Depends(get_fitbit_connector),
) -> SyncResult:
    return await sync_today(session, connector, user_id)
