"""
Tests for identity assertion verification.
"""

import json
from base64 import b64encode

import pytest

from auth.jwt import _sign, create_token, verify_token
from connectors.errors import Unauthenticated


class TestVerifyToken:
    def test_round_trip(self):
        assert verify_token(create_token("user-1")) == "user-1"

    def test_expired(self):
        with pytest.raises(Unauthenticated, match="expired"):
            verify_token(create_token("user-1", expires_in=-10))

    def test_tampered_signature(self):
        token = create_token("user-1")
        with pytest.raises(Unauthenticated, match="signature"):
            verify_token(token[:-1] + ("0" if token[-1] != "0" else "1"))

    def test_signed_with_other_secret(self, monkeypatch, fitbit_settings):
        token = create_token("user-1")
        monkeypatch.setattr(fitbit_settings, "jwt_secret", "another-secret")
        with pytest.raises(Unauthenticated):
            verify_token(token)

    @pytest.mark.parametrize("token", ["", "no-dot", "!!!.abc", "bm90IGpzb24=.deadbeef"])
    def test_malformed(self, token):
        with pytest.raises(Unauthenticated):
            verify_token(token)

    @pytest.mark.parametrize("exp", ["tomorrow", None, [1], True])
    def test_signed_payload_with_bad_expiry(self, exp):
        raw = json.dumps({"user_id": "user-1", "exp": exp}).encode()
        token = b64encode(raw).decode() + "." + _sign(raw)

        with pytest.raises(Unauthenticated, match="expiry"):
            verify_token(token)
