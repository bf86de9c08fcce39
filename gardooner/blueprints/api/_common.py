"""
Blueprint Common Utilities
==========================

Shared helper functions for the API blueprints.

Usage:
    from gardooner.blueprints.api._common import (
        get_container, get_user_id, parse_body, success,
    )
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from flask import current_app, request, session
from pydantic import BaseModel

from gardooner.domain.exceptions import AuthenticationError
from gardooner.utils.http import success_response

if TYPE_CHECKING:
    from gardooner.services.application.chat_service import ChatService
    from gardooner.services.application.task_service import TaskService
    from gardooner.services.container import ServiceContainer

logger = logging.getLogger("api._common")

ModelT = TypeVar("ModelT", bound=BaseModel)

# ============================================================================
# User Session Utilities
# ============================================================================


def get_user_id() -> str:
    """
    Get the caller's user id from the session.

    Raises:
        AuthenticationError: no user is signed in
    """
    user_id = session.get("user_id")
    if not user_id:
        raise AuthenticationError("Authentication required")
    return str(user_id)


# ============================================================================
# CONTAINER ACCESS
# ============================================================================


def get_container() -> "ServiceContainer":
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def get_chat_service() -> "ChatService":
    return get_container().chat_service


def get_task_service() -> "TaskService":
    return get_container().task_service


# ============================================================================
# REQUEST HELPERS
# ============================================================================


def get_json() -> dict:
    """JSON request body, or an empty dict when absent or malformed."""
    return request.get_json(silent=True) or {}


def parse_body(model: type[ModelT]) -> ModelT:
    """Validate the JSON body against *model*; pydantic errors surface as 400 via ``safe_route``."""
    return model.model_validate(get_json())


# ============================================================================
# RESPONSE HELPERS
# ============================================================================


def success(data: dict | list | None = None, status: int = 200, *, message: str | None = None):
    """Standard success envelope: ``{"ok": true, "data": ..., "error": null}``."""
    return success_response(data, status, message=message)
