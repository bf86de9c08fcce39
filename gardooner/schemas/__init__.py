"""
Schemas Module
==============

Pydantic models for LLM output validation and HTTP request bodies.
"""

from gardooner.schemas.analysis import (
    AnalysisResultPayload,
    CancelOperation,
    CompleteOperation,
    CreateCareLogPayload,
    CreateOperation,
    CreateTaskPayload,
    TaskTransitionPayload,
    UpdateOperation,
    validate_analysis_result,
)
from gardooner.schemas.requests import (
    ChatMessageIn,
    CompleteTaskRequest,
    CreateConversationRequest,
    DismissTaskRequest,
    SendChatRequest,
    SendMessageRequest,
    SnoozeTaskRequest,
)

__all__ = [
    "AnalysisResultPayload",
    "CancelOperation",
    "ChatMessageIn",
    "CompleteOperation",
    "CompleteTaskRequest",
    "CreateCareLogPayload",
    "CreateConversationRequest",
    "CreateOperation",
    "CreateTaskPayload",
    "DismissTaskRequest",
    "SendChatRequest",
    "SendMessageRequest",
    "SnoozeTaskRequest",
    "TaskTransitionPayload",
    "UpdateOperation",
    "validate_analysis_result",
]
