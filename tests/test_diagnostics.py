"""
Tests for the timezone / data-freshness diagnostics report.
"""

from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest

from connectors.diagnostics import diagnose, provider_today, timezone_warning
from connectors.errors import NotConnected
from connectors.token_manager import store_credential

NOW = datetime(2026, 3, 10, 2, 30, tzinfo=timezone.utc)


async def _connect(session, user_id="user-1"):
    await store_credential(
        session,
        user_id,
        {
            "provider_user_id": "FB1",
            "access_token": "tok",
            "refresh_token": "rt",
            "expires_at": 1_900_000_000_000,
            "scopes": "activity weight profile",
        },
    )


def _profile(tz: str, offset_millis: int) -> httpx.Response:
    return httpx.Response(200, json={"user": {"timezone": tz, "offsetFromUTCMillis": offset_millis}})


class TestHelpers:
    def test_provider_today_uses_account_offset(self):
        assert provider_today(NOW, 0) == "2026-03-10"
        assert provider_today(NOW, -5 * 3_600_000) == "2026-03-09"

    def test_warning_names_both_zones(self):
        warning = timezone_warning("America/New_York", "Europe/London")
        assert "America/New_York" in warning
        assert "Europe/London" in warning

    def test_no_warning_when_equal_or_unknown(self):
        assert timezone_warning("Europe/London", "Europe/London") is None
        assert timezone_warning(None, "Europe/London") is None
        assert timezone_warning("Europe/London", None) is None


class TestDiagnose:
    @pytest.mark.asyncio
    async def test_mismatch_report(self, session, fake_fitbit):
        await _connect(session)
        fake_fitbit.on("GET", "/1/user/-/profile.json", _profile("Europe/London", 0))
        fake_fitbit.on("GET", "/1/user/-/activities/date/2026-03-10.json", httpx.Response(200, json={"summary": {"steps": 42}}))
        fake_fitbit.on("GET", "/1/user/-/body/log/weight/date/2026-03-10.json", httpx.Response(200, json={"weight": []}))
        fake_fitbit.on("GET", "/1/user/-/devices.json", httpx.Response(200, json=[{"id": "d1", "lastSyncTime": "2026-03-10T01:00:00"}]))

        with patch("connectors.diagnostics.utc_now", return_value=NOW):
            report = await diagnose(session, fake_fitbit.connector(), "user-1", "America/New_York")

        info = report.debug_info
        assert info.calculated_today == "2026-03-10"
        assert info.server_time == NOW.isoformat()
        assert info.user_offset_hours == 0
        assert info.provider_timezone == "Europe/London"
        assert info.timezone_match is False
        assert "America/New_York" in info.timezone_warning
        assert "Europe/London" in info.timezone_warning
        assert info.permissions_scope == "activity weight profile"
        assert info.provider_user_id == "FB1"
        assert info.token_expires_at == 1_900_000_000_000
        assert report.raw_responses.activity == {"summary": {"steps": 42}}
        assert report.raw_responses.devices[0]["id"] == "d1"

    @pytest.mark.asyncio
    async def test_today_follows_account_offset_not_server(self, session, fake_fitbit):
        await _connect(session)
        fake_fitbit.on("GET", "/1/user/-/profile.json", _profile("America/New_York", -5 * 3_600_000))

        with patch("connectors.diagnostics.utc_now", return_value=NOW):
            report = await diagnose(session, fake_fitbit.connector(), "user-1", "America/New_York")

        assert report.debug_info.calculated_today == "2026-03-09"
        assert report.debug_info.user_offset_hours == -5
        assert report.debug_info.timezone_match is True
        assert report.debug_info.timezone_warning is None
        assert "/1/user/-/activities/date/2026-03-09.json" in fake_fitbit.paths()
        assert "/1/user/-/body/log/weight/date/2026-03-09.json" in fake_fitbit.paths()

    @pytest.mark.asyncio
    async def test_failed_subfetch_degrades_inline(self, session, fake_fitbit):
        await _connect(session)
        fake_fitbit.on("GET", "/1/user/-/profile.json", _profile("UTC", 0))
        fake_fitbit.on("GET", "/1/user/-/activities/date/2026-03-10.json", httpx.Response(200, json={"summary": {}}))
        fake_fitbit.on("GET", "/1/user/-/body/log/weight/date/2026-03-10.json", httpx.Response(200, json={"weight": []}))
        fake_fitbit.on(
            "GET",
            "/1/user/-/devices.json",
            httpx.Response(403, json={"errors": [{"errorType": "insufficient_scope", "message": "needs settings"}]}),
        )

        with patch("connectors.diagnostics.utc_now", return_value=NOW):
            report = await diagnose(session, fake_fitbit.connector(), "user-1", "UTC")

        assert report.raw_responses.devices["error"] == "needs settings"
        assert report.raw_responses.devices["status"] == 403
        assert report.raw_responses.activity == {"summary": {}}
        assert report.raw_responses.weight == {"weight": []}

    @pytest.mark.asyncio
    async def test_profile_failure_falls_back_to_utc(self, session, fake_fitbit):
        await _connect(session)
        fake_fitbit.on("GET", "/1/user/-/profile.json", httpx.Response(401, json={"errors": [{"message": "expired"}]}))

        with patch("connectors.diagnostics.utc_now", return_value=NOW):
            report = await diagnose(session, fake_fitbit.connector(), "user-1", "Europe/Paris")

        assert report.debug_info.calculated_today == "2026-03-10"
        assert report.debug_info.provider_timezone is None
        assert report.debug_info.timezone_warning is None
        assert report.raw_responses.profile["status"] == 401

    @pytest.mark.asyncio
    async def test_not_connected(self, session, fake_fitbit):
        with pytest.raises(NotConnected):
            await diagnose(session, fake_fitbit.connector(), "nobody", "UTC")
        assert fake_fitbit.requests == []
