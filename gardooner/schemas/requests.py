"""
Request Schemas
===============

Request bodies accepted by the chat and task endpoints.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class ChatMessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class SendChatRequest(BaseModel):
    """Stateless chat turn, optionally focused on one zone or plant."""

    garden_id: str = Field(..., min_length=1)
    messages: list[ChatMessageIn] = Field(..., min_length=1)
    zone_id: str | None = None
    plant_id: str | None = None
    image_base64: str | None = None


class CreateConversationRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, description="User message text")
    image_base64: str | None = Field(default=None, description="Optional photo, base64 or data URL")
    image_key: str | None = Field(default=None, max_length=500, description="Storage key of the attached photo")


class CompleteTaskRequest(BaseModel):
    garden_id: str = Field(..., min_length=1)
    notes: str | None = None


class DismissTaskRequest(BaseModel):
    garden_id: str = Field(..., min_length=1)


class SnoozeTaskRequest(BaseModel):
    garden_id: str = Field(..., min_length=1)
    suggested_date: date = Field(..., description="New suggested date (YYYY-MM-DD)")
