"""
Identity assertions issued by the application's identity provider.

An assertion is a base64-encoded JSON payload (``user_id``, ``exp``) and an
HMAC-SHA256 signature, joined by ``.``.  The signing secret is shared with
the identity provider via ``config.jwt_secret`` (env var: ``JWT_SECRET``).
This service only ever needs ``verify_token``; ``create_token`` is what the
identity provider (and the test suite) uses to mint them.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import json
import time
from base64 import b64decode, b64encode
from typing import Optional

from config.settings import config
from connectors.errors import Unauthenticated


def _sign(raw: bytes) -> str:
    return hmac.new(config.jwt_secret.encode(), raw, hashlib.sha256).hexdigest()


def create_token(user_id: str, expires_in: Optional[int] = None) -> str:
    """Mint a signed assertion for ``user_id``."""
    ttl = config.jwt_expiry_seconds if expires_in is None else expires_in
    payload = {"user_id": user_id, "exp": int(time.time()) + ttl}
    raw = json.dumps(payload).encode()
    return b64encode(raw).decode() + "." + _sign(raw)


def verify_token(token: str) -> str:
    """
    Verify an assertion and return its ``user_id``.

    Raises ``Unauthenticated`` for anything malformed, forged or expired.
    """
    if not token:
        raise Unauthenticated("missing identity token")
    try:
        encoded, sig = token.split(".", 1)
        raw = b64decode(encoded, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise Unauthenticated("malformed identity token") from exc

    if not hmac.compare_digest(sig.encode(), _sign(raw).encode()):
        raise Unauthenticated("bad identity token signature")

    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise Unauthenticated("unreadable identity token payload") from exc
    if not isinstance(payload, dict) or not payload.get("user_id"):
        raise Unauthenticated("identity token has no user")
    exp = payload.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        raise Unauthenticated("identity token has no valid expiry")
    if exp < time.time():
        raise Unauthenticated("identity token expired")
    return str(payload["user_id"])
