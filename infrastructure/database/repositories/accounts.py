from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.database.ops.accounts import AccountOperations
from infrastructure.database.repositories.base import KeyDecryptor


@dataclass(frozen=True)
class AccountRepository:
    """
    Repository facade for users and their API keys.

    Satisfies :class:`~infrastructure.database.repositories.base.ApiKeyStore`.
    ``decrypt`` turns the stored ciphertext back into the key; without one the
    stored value is returned as-is (local development databases).
    """

    _backend: AccountOperations
    decrypt: KeyDecryptor | None = None

    def create_user(self, *, email: str | None = None, name: str | None = None, settings: dict | None = None) -> str:
        return self._backend.insert_user(email=email, name=name, settings=settings)

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        return self._backend.get_user(user_id)

    def get_settings(self, user_id: str) -> dict[str, Any]:
        user = self._backend.get_user(user_id)
        return (user or {}).get("settings") or {}

    def get_skill_level(self, user_id: str) -> str | None:
        return self.get_settings(user_id).get("skillLevel")

    def store_api_key(self, user_id: str, provider: str, encrypted_key: str) -> None:
        self._backend.upsert_api_key(user_id, provider, encrypted_key)

    def get_api_key(self, user_id: str, provider: str) -> str | None:
        row = self._backend.get_api_key_row(user_id, provider)
        if not row:
            return None
        if self.decrypt is None:
            return row["encrypted_key"]
        return self.decrypt(row["encrypted_key"])
