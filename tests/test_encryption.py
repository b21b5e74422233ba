"""
Tests for token encryption at rest.
"""

import pytest
from cryptography.fernet import Fernet

from connectors import encryption
from connectors.errors import ConfigurationError


class TestEncryption:
    def test_plaintext_mode_without_key(self):
        assert encryption.is_encryption_enabled() is False
        assert encryption.encrypt_token("tok") == "tok"
        assert encryption.decrypt_token("tok") == "tok"

    def test_fernet_mode(self, monkeypatch, fitbit_settings):
        monkeypatch.setattr(fitbit_settings, "token_encryption_key", Fernet.generate_key().decode())
        encryption.reset_cipher()

        ciphertext = encryption.encrypt_token("tok")

        assert ciphertext != "tok"
        assert encryption.decrypt_token(ciphertext) == "tok"
        # rows written before the key was configured still read back
        assert encryption.decrypt_token("legacy-plain") == "legacy-plain"

    def test_invalid_key_is_configuration_error(self, monkeypatch, fitbit_settings):
        monkeypatch.setattr(fitbit_settings, "token_encryption_key", "not-a-fernet-key")
        encryption.reset_cipher()

        with pytest.raises(ConfigurationError):
            encryption.encrypt_token("tok")

    def test_none_passes_through(self):
        assert encryption.encrypt_token(None) is None
        assert encryption.decrypt_token(None) is None
