"""
Chat API Blueprint
==================

Garden-aware chat with the user's configured LLM backend.

Endpoints:
- POST /api/chat/send - Stateless chat turn (no action execution)
- GET /api/chat/gardens/<garden_id>/conversations - List conversations
- POST /api/chat/gardens/<garden_id>/conversations - Start a conversation
- GET /api/chat/conversations/<id> - Conversation with messages
- DELETE /api/chat/conversations/<id> - Delete a conversation
- POST /api/chat/conversations/<id>/messages - Send a message; embedded actions are executed
"""

from __future__ import annotations

from flask import Blueprint, Response

from gardooner.blueprints.api._common import get_chat_service, get_user_id, parse_body, success
from gardooner.schemas import CreateConversationRequest, SendChatRequest, SendMessageRequest
from gardooner.utils.http import safe_route

chat_api = Blueprint("chat_api", __name__)


@chat_api.route("/send", methods=["POST"])
@safe_route("Failed to send chat message")
def send_chat() -> Response:
    """
    Request body:
    {
        "garden_id": "...",
        "messages": [{"role": "user", "content": "Should I water today?"}],
        "zone_id": "...",          (optional)
        "plant_id": "...",         (optional)
        "image_base64": "..."      (optional)
    }
    """
    user_id = get_user_id()
    body = parse_body(SendChatRequest)
    reply = get_chat_service().send(
        body.garden_id,
        user_id,
        [message.model_dump() for message in body.messages],
        zone_id=body.zone_id,
        plant_id=body.plant_id,
        image_base64=body.image_base64,
    )
    return success(reply)


@chat_api.route("/gardens/<garden_id>/conversations", methods=["GET"])
@safe_route("Failed to list conversations")
def list_conversations(garden_id: str) -> Response:
    return success(get_chat_service().list_conversations(get_user_id(), garden_id))


@chat_api.route("/gardens/<garden_id>/conversations", methods=["POST"])
@safe_route("Failed to create conversation")
def create_conversation(garden_id: str) -> Response:
    user_id = get_user_id()
    body = parse_body(CreateConversationRequest)
    conversation = get_chat_service().create_conversation(user_id, garden_id, body.title)
    return success(conversation, 201)


@chat_api.route("/conversations/<conversation_id>", methods=["GET"])
@safe_route("Failed to load conversation")
def get_conversation(conversation_id: str) -> Response:
    return success(get_chat_service().get_conversation(conversation_id, get_user_id()))


@chat_api.route("/conversations/<conversation_id>", methods=["DELETE"])
@safe_route("Failed to delete conversation")
def delete_conversation(conversation_id: str) -> Response:
    get_chat_service().delete_conversation(conversation_id, get_user_id())
    return success({"id": conversation_id}, message="Conversation deleted")


@chat_api.route("/conversations/<conversation_id>/messages", methods=["POST"])
@safe_route("Failed to send message")
def send_message(conversation_id: str) -> Response:
    """
    Request body:
    {
        "content": "I watered the tomatoes",
        "image_base64": "...",     (optional)
        "image_key": "photos/..."  (optional, stored on the message)
    }

    The assistant message in the response lists the outcome of every
    action the model asked for under ``actions``.
    """
    user_id = get_user_id()
    body = parse_body(SendMessageRequest)
    message = get_chat_service().send_message(
        conversation_id, user_id, body.content, body.image_base64, image_key=body.image_key
    )
    return success(message)
