from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify
from pydantic import ValidationError as PydanticValidationError

from gardooner.utils.time import iso_now

_log = logging.getLogger(__name__)

# Client-facing messages for 5xx and untyped errors; internals stay in the logs
_GENERIC_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    401: "Authentication required",
    404: "Resource not found",
    409: "Conflict",
    412: "Precondition failed",
    500: "An internal error occurred",
    502: "Upstream service error",
}


def safe_error(
    exc: BaseException,
    status: int = 500,
    *,
    context: str = "",
) -> Response:
    """Return a generic error response while logging the real exception.

    Parameters
    ----------
    exc:
        The caught exception, logged server-side and never sent to the client.
    status:
        HTTP status code for the response (determines the generic message).
    context:
        Optional string logged alongside *exc*, e.g. ``"sending chat message"``.
    """
    _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    message = _GENERIC_MESSAGES.get(status, _GENERIC_MESSAGES[500])
    return error_response(message, status)


def success_response(
    data: dict | list | None = None,
    status: int = 200,
    *,
    message: str | None = None,
) -> Response:
    payload: dict[str, Any] = {"ok": True, "data": data, "error": None}
    if message is not None:
        payload["message"] = message
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(
    message: str,
    status: int = 500,
    *,
    details: dict | list | None = None,
) -> Response:
    error: dict[str, Any] = {"message": message, "timestamp": iso_now()}
    if details:
        error["details"] = details
    response = jsonify({"ok": False, "data": None, "error": error})
    response.status_code = status
    return response


def validation_error_response(exc: PydanticValidationError) -> Response:
    """400 response listing pydantic's errors without URLs or raw context objects."""
    return error_response(
        "Invalid request",
        400,
        details={"errors": exc.errors(include_url=False, include_context=False)},
    )


# ---------------------------------------------------------------------------
# Route decorator
# ---------------------------------------------------------------------------


def safe_route(
    error_message: str = "An internal error occurred",
    *,
    error_status: int = 500,
) -> Callable:
    """Wrap a Flask route handler with standardized error handling.

    :class:`~gardooner.domain.exceptions.GardoonerError` subclasses map to
    ``exc.http_status``; 4xx keep their message, 5xx are replaced by a
    generic one. Request-body validation failures become 400 with details.
    Anything else is logged and returns *error_status*.

    Usage::

        @tasks_api.get("/gardens/<garden_id>")
        @safe_route("Failed to list tasks")
        def list_tasks(garden_id):
            ...
    """
    from gardooner.domain.exceptions import GardoonerError

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except PydanticValidationError as exc:
                return validation_error_response(exc)
            except GardoonerError as exc:
                status = exc.http_status
                if status >= 500:
                    return safe_error(exc, status, context=error_message)
                return error_response(str(exc) or error_message, status)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
