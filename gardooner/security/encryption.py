"""
API Key Encryption
==================

Per-user LLM API keys are stored encrypted with **AES-256-GCM**.

Stored format (base64-encoded)::

    nonce (12 bytes) || ciphertext || auth-tag (16 bytes)

The key comes from ``GARDOONER_ENCRYPTION_KEY``: 64 hex characters are used
as-is, any other string is stretched to 32 bytes with SHA-256.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import re

from Crypto.Cipher import AES  # nosec B413 - pycryptodome
from Crypto.Random import get_random_bytes  # nosec B413

from gardooner.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_NONCE_BYTES = 12
_TAG_BYTES = 16
_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def derive_key(secret: str) -> bytes:
    """32-byte AES key from the configured secret."""
    if not secret:
        raise ConfigurationError("GARDOONER_ENCRYPTION_KEY is not set")
    if _HEX_KEY_RE.match(secret):
        return bytes.fromhex(secret)
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt_api_key(plaintext: str, key: bytes) -> str:
    """Encrypt *plaintext*; returns base64 ``nonce || ciphertext || tag``."""
    nonce = get_random_bytes(_NONCE_BYTES)
    cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
    ciphertext, tag = cipher.encrypt_and_digest(plaintext.encode("utf-8"))
    return base64.b64encode(nonce + ciphertext + tag).decode()


def decrypt_api_key(token: str, key: bytes) -> str:
    """
    Reverse :func:`encrypt_api_key`.

    Raises:
        ConfigurationError: the token is malformed or was encrypted with
            another key (GCM authentication failed).
    """
    try:
        raw = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationError("Stored API key is not valid base64") from exc
    if len(raw) <= _NONCE_BYTES + _TAG_BYTES:
        raise ConfigurationError("Stored API key is truncated")

    nonce, ciphertext, tag = raw[:_NONCE_BYTES], raw[_NONCE_BYTES:-_TAG_BYTES], raw[-_TAG_BYTES:]
    cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
    try:
        return cipher.decrypt_and_verify(ciphertext, tag).decode("utf-8")
    except ValueError as exc:
        logger.error("API key decryption failed; check GARDOONER_ENCRYPTION_KEY")
        raise ConfigurationError("Stored API key could not be decrypted") from exc


class KeyCipher:
    """Callable decryptor bound to one key, usable as ``AccountRepository(decrypt=...)``."""

    def __init__(self, secret: str):
        self._key = derive_key(secret)

    def encrypt(self, plaintext: str) -> str:
        return encrypt_api_key(plaintext, self._key)

    def __call__(self, token: str) -> str:
        return decrypt_api_key(token, self._key)
