"""AES-GCM storage of per-user API keys."""

from __future__ import annotations

import base64
import dataclasses
import hashlib

import pytest

from gardooner.domain.exceptions import ConfigurationError
from gardooner.security.encryption import KeyCipher, decrypt_api_key, derive_key, encrypt_api_key
from gardooner.services.container import ServiceContainer
from infrastructure.database.repositories import AccountRepository

HEX_KEY = "0f" * 32


class TestKeyDerivation:
    def test_hex_key_used_as_is(self):
        assert derive_key(HEX_KEY) == bytes.fromhex(HEX_KEY)

    def test_passphrase_is_hashed(self):
        assert derive_key("correct horse") == hashlib.sha256(b"correct horse").digest()

    def test_empty_secret_rejected(self):
        with pytest.raises(ConfigurationError):
            derive_key("")


class TestEncryptDecrypt:
    def test_round_trip(self):
        key = derive_key(HEX_KEY)
        token = encrypt_api_key("sk-ant-123", key)

        assert "sk-ant" not in token
        assert decrypt_api_key(token, key) == "sk-ant-123"

    def test_fresh_nonce_per_call(self):
        key = derive_key(HEX_KEY)
        assert encrypt_api_key("same", key) != encrypt_api_key("same", key)

    def test_wrong_key_fails(self):
        token = encrypt_api_key("sk-ant-123", derive_key(HEX_KEY))
        with pytest.raises(ConfigurationError):
            decrypt_api_key(token, derive_key("another secret"))

    def test_tampered_token_fails(self):
        key = derive_key(HEX_KEY)
        raw = bytearray(base64.b64decode(encrypt_api_key("sk-ant-123", key)))
        raw[14] ^= 0x01
        with pytest.raises(ConfigurationError):
            decrypt_api_key(base64.b64encode(bytes(raw)).decode(), key)

    @pytest.mark.parametrize("token", ["not base64!!", base64.b64encode(b"short").decode()])
    def test_malformed_token_fails(self, token):
        with pytest.raises(ConfigurationError):
            decrypt_api_key(token, derive_key(HEX_KEY))


def test_account_repository_decrypts_stored_key(db_handler, seed):
    cipher = KeyCipher("passphrase")
    user_id = seed.create_user()
    accounts = AccountRepository(db_handler, cipher)

    accounts.store_api_key(user_id, "kimi", cipher.encrypt("sk-kimi"))

    assert accounts.get_api_key(user_id, "kimi") == "sk-kimi"
    assert accounts.get_api_key(user_id, "claude") is None


def test_container_uses_configured_encryption_key(app_config, provider_factory):
    config = dataclasses.replace(app_config, encryption_key=HEX_KEY)
    container = ServiceContainer.build(config, provider_factory=provider_factory)
    try:
        accounts = container.account_repo
        user_id = accounts.create_user(email="a@example.com")
        accounts.store_api_key(user_id, "claude", KeyCipher(HEX_KEY).encrypt("sk-ant-456"))

        assert isinstance(accounts.decrypt, KeyCipher)
        assert accounts.get_api_key(user_id, "claude") == "sk-ant-456"
    finally:
        container.shutdown()
