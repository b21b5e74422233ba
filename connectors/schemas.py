"""
Pydantic request / response schemas for the Fitbit routes.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class InitiateResponse(BaseModel):
    url: str


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_connected: bool = Field(..., alias="isConnected")


class DisconnectResponse(BaseModel):
    success: bool = True
    message: str = "Fitbit disconnected successfully"


class DiagnoseRequest(BaseModel):
    timezone: Optional[str] = Field(None, max_length=64, description="IANA zone name of the client")


class DebugInfo(BaseModel):
    server_time: str
    user_offset_hours: float
    calculated_today: str
    permissions_scope: Optional[str] = None
    provider_user_id: Optional[str] = None
    token_expires_at: Optional[int] = None
    client_timezone: Optional[str] = None
    provider_timezone: Optional[str] = None
    timezone_match: Optional[bool] = None
    timezone_warning: Optional[str] = None


class RawResponses(BaseModel):
    profile: Any = None
    activity: Any = None
    weight: Any = None
    devices: Any = None


class DiagnosticReport(BaseModel):
    debug_info: DebugInfo
    raw_responses: RawResponses


class SyncResult(BaseModel):
    success: bool = True
    date: str
    weight: float = 0
    steps: int = 0
    calories_burned: int = 0
