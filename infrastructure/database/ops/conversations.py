from __future__ import annotations

import logging
from typing import Any

from gardooner.utils.time import iso_now
from infrastructure.database.utils import new_id, row_to_dict, rows_to_dicts
from infrastructure.utils.structured_fields import dump_json_field

logger = logging.getLogger(__name__)


class ConversationOperations:
    """Persisted chat conversations. Messages live in one JSON array column."""

    def insert_conversation(self, user_id: str, garden_id: str, title: str) -> str:
        conversation_id = new_id()
        now = iso_now()
        with self.connection() as db:
            db.execute(
                """
                INSERT INTO conversations (id, user_id, garden_id, title, messages, created_at, updated_at)
                VALUES (?, ?, ?, ?, '[]', ?, ?)
                """,
                (conversation_id, user_id, garden_id, title, now, now),
            )
        return conversation_id

    def get_conversation(self, conversation_id: str, user_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute(
            "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, user_id),
        ).fetchone()
        return row_to_dict(row, json_lists=("messages",))

    def list_conversations(self, user_id: str, garden_id: str) -> list[dict[str, Any]]:
        rows = self.get_db().execute(
            "SELECT * FROM conversations WHERE user_id = ? AND garden_id = ? ORDER BY updated_at DESC",
            (user_id, garden_id),
        ).fetchall()
        return rows_to_dicts(rows, json_lists=("messages",))

    def save_conversation_messages(self, conversation_id: str, title: str, messages: list[dict[str, Any]]) -> None:
        with self.connection() as db:
            db.execute(
                "UPDATE conversations SET title = ?, messages = ?, updated_at = ? WHERE id = ?",
                (title, dump_json_field(messages), iso_now(), conversation_id),
            )

    def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        with self.connection() as db:
            cur = db.execute(
                "DELETE FROM conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id),
            )
        return cur.rowcount > 0
