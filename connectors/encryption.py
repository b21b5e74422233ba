"""
Token encryption — encrypt / decrypt provider tokens at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library,
keyed by ``config.token_encryption_key`` (env var: ``TOKEN_ENCRYPTION_KEY``).

Without a key, tokens are stored as plaintext and a warning is logged once.
A key that Fernet rejects is a deployment error and raises
``ConfigurationError`` instead of silently downgrading.  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config
from connectors.errors import ConfigurationError

logger = logging.getLogger(__name__)

_fernet: Optional[Fernet] = None
_initialised = False


def _cipher() -> Optional[Fernet]:
    """Build the Fernet cipher on first use; ``None`` means plaintext mode."""
    global _fernet, _initialised
    if _initialised:
        return _fernet

    key = config.token_encryption_key
    if not key:
        logger.warning("TOKEN_ENCRYPTION_KEY not set — provider tokens will be stored as plaintext")
        _fernet = None
    else:
        try:
            _fernet = Fernet(key.encode())
        except (ValueError, TypeError) as exc:
            logger.error("TOKEN_ENCRYPTION_KEY is not a valid Fernet key: %s", exc)
            raise ConfigurationError("invalid TOKEN_ENCRYPTION_KEY") from exc
        logger.info("Token encryption enabled (Fernet)")
    _initialised = True
    return _fernet


def reset_cipher() -> None:
    """Forget the cached cipher so the next call re-reads the key."""
    global _fernet, _initialised
    _fernet = None
    _initialised = False


def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    if plaintext is None:
        return None
    cipher = _cipher()
    if cipher is None:
        return plaintext
    return cipher.encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored token.

    Values written before encryption was switched on are not Fernet tokens
    and are returned unchanged.
    """
    if ciphertext is None:
        return None
    cipher = _cipher()
    if cipher is None:
        return ciphertext
    try:
        return cipher.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        return ciphertext


def is_encryption_enabled() -> bool:
    return _cipher() is not None
