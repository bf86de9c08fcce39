from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.database.ops.conversations import ConversationOperations


@dataclass(frozen=True)
class ConversationRepository:
    """Repository facade for persisted chat conversations."""

    _backend: ConversationOperations

    def create(self, user_id: str, garden_id: str, title: str = "New conversation") -> str:
        return self._backend.insert_conversation(user_id, garden_id, title)

    def get(self, conversation_id: str, user_id: str) -> dict[str, Any] | None:
        return self._backend.get_conversation(conversation_id, user_id)

    def list_for_garden(self, user_id: str, garden_id: str) -> list[dict[str, Any]]:
        return self._backend.list_conversations(user_id, garden_id)

    def save_messages(self, conversation_id: str, title: str, messages: list[dict[str, Any]]) -> None:
        self._backend.save_conversation_messages(conversation_id, title, messages)

    def delete(self, conversation_id: str, user_id: str) -> bool:
        return self._backend.delete_conversation(conversation_id, user_id)
