"""
PKCE (RFC 7636) verifier / challenge generation.

The verifier stays server-side in the state record; only the challenge
travels through the browser redirect.  ``S256`` is the default.  ``PLAIN``
sends the verifier itself as the challenge, so anyone who sees the
authorization URL also holds the proof; it exists only for legacy
provider registrations and every use is logged as a warning.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

VERIFIER_BYTES = 32  # 43 chars once encoded, the RFC minimum


class ChallengeMethod(str, Enum):
    S256 = "S256"
    PLAIN = "plain"


@dataclass(frozen=True)
class PkcePair:
    verifier: str
    challenge: str
    method: ChallengeMethod = ChallengeMethod.S256


def b64url_nopad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def compute_challenge(verifier: str, method: ChallengeMethod = ChallengeMethod.S256) -> str:
    """Derive the challenge the provider will compare the verifier against."""
    if method is ChallengeMethod.PLAIN:
        return verifier
    return b64url_nopad(hashlib.sha256(verifier.encode("ascii")).digest())


def generate(method: ChallengeMethod = ChallengeMethod.S256) -> PkcePair:
    """Return a fresh verifier and its challenge."""
    if method is ChallengeMethod.PLAIN:
        logger.warning(
            "PKCE 'plain' method in use — the challenge equals the verifier. "
            "Switch FITBIT_PKCE_METHOD to S256 unless the provider app requires plain."
        )
    verifier = b64url_nopad(secrets.token_bytes(VERIFIER_BYTES))
    return PkcePair(verifier=verifier, challenge=compute_challenge(verifier, method), method=method)
