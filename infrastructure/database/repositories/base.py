"""
Repository Protocols
====================

Structural contracts for collaborators the services depend on but do not
own. ``typing.Protocol`` lets tests pass any object with the right methods
(a MagicMock, a dict-backed fake) without inheriting from anything.

Usage in service type hints::

    from infrastructure.database.repositories.base import ApiKeyStore


    class MyService:
        def __init__(self, api_keys: ApiKeyStore) -> None: ...
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ApiKeyStore(Protocol):
    """Per-user LLM API keys keyed by (user id, provider name).

    Implementations return the *plaintext* key or None when the user has not
    configured that provider. How keys are encrypted at rest is the
    implementation's concern.
    """

    def get_api_key(self, user_id: str, provider: str) -> str | None: ...


class KeyDecryptor(Protocol):
    def __call__(self, ciphertext: str) -> str: ...
