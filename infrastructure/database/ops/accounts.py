from __future__ import annotations

import logging
import sqlite3
from typing import Any

from gardooner.utils.time import iso_now
from infrastructure.database.utils import new_id, row_to_dict
from infrastructure.utils.structured_fields import dump_json_field

logger = logging.getLogger(__name__)


class AccountOperations:
    """Users and their stored (encrypted) LLM API keys."""

    def insert_user(
        self,
        *,
        email: str | None = None,
        name: str | None = None,
        settings: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> str:
        user_id = user_id or new_id()
        try:
            with self.connection() as db:
                db.execute(
                    "INSERT INTO users (id, email, name, settings, created_at) VALUES (?, ?, ?, ?, ?)",
                    (user_id, email, name, dump_json_field(settings or {}), iso_now()),
                )
        except sqlite3.Error as exc:
            logger.error("Error inserting user: %s", exc)
            raise
        return user_id

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return row_to_dict(row, json_dicts=("settings",))

    def update_user_settings(self, user_id: str, settings: dict[str, Any]) -> bool:
        with self.connection() as db:
            cur = db.execute("UPDATE users SET settings = ? WHERE id = ?", (dump_json_field(settings), user_id))
        return cur.rowcount == 1

    # --- API keys -------------------------------------------------------------
    def upsert_api_key(self, user_id: str, provider: str, encrypted_key: str) -> None:
        try:
            with self.connection() as db:
                db.execute(
                    """
                    INSERT INTO api_keys (id, user_id, provider, encrypted_key, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT (user_id, provider) DO UPDATE SET encrypted_key = excluded.encrypted_key
                    """,
                    (new_id(), user_id, provider, encrypted_key, iso_now()),
                )
        except sqlite3.Error as exc:
            logger.error("Error storing %s API key for user %s: %s", provider, user_id, exc)
            raise

    def get_api_key_row(self, user_id: str, provider: str) -> dict[str, Any] | None:
        row = self.get_db().execute(
            "SELECT * FROM api_keys WHERE user_id = ? AND provider = ?",
            (user_id, provider),
        ).fetchone()
        return row_to_dict(row)

    def delete_api_key(self, user_id: str, provider: str) -> bool:
        with self.connection() as db:
            cur = db.execute("DELETE FROM api_keys WHERE user_id = ? AND provider = ?", (user_id, provider))
        return cur.rowcount > 0
