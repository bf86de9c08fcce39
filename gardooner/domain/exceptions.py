"""Centralized exception hierarchy for Gardooner.

All domain and service exceptions inherit from :class:`GardoonerError` so
that callers can catch a single base class when they need a broad safety
net, yet still match on specific subclasses where narrower handling is
appropriate.

Blueprint-level error handling (see ``gardooner/utils/http.safe_route``)
maps these to the correct HTTP status codes automatically.

Conditions reachable from AI-proposed operations (target outside the
garden, task no longer pending) are *not* exceptions: the action engine
reports them as ``ActionResult(status="error")`` values.

Hierarchy
---------
::

    GardoonerError (base, maps to 500)
    ├── ValidationError             (400, bad input from caller)
    ├── AuthenticationError         (401, no caller identity)
    ├── NotFoundError               (404, entity does not exist)
    ├── ConflictError               (409, duplicate / state conflict)
    ├── PreconditionError           (412, e.g. no AI key configured)
    ├── ServiceError                (500, business-logic failure)
    │   ├── RepositoryError         (500, database / persistence)
    │   ├── ExternalServiceError    (502, weather and other HTTP deps)
    │   └── AIResponseError         (502, unusable LLM output)
    │       ├── ParseError          (reply is not JSON)
    │       └── SchemaValidationError (JSON fails the operation schema)
    └── ConfigurationError          (500, missing / invalid config)

Upstream LLM SDK errors (authentication, connection, rate limits) are never
wrapped in this hierarchy; they reach the caller untouched.
"""

from __future__ import annotations

from typing import Any


class GardoonerError(Exception):
    """Base exception for all Gardooner application errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client for 5xx errors).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(GardoonerError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400


class AuthenticationError(GardoonerError):
    """No authenticated user on the request (HTTP 401)."""

    http_status: int = 401


class NotFoundError(GardoonerError):
    """Requested entity does not exist (HTTP 404)."""

    http_status: int = 404


class ConflictError(GardoonerError):
    """Operation conflicts with existing state (HTTP 409)."""

    http_status: int = 409


class PreconditionError(GardoonerError):
    """A required user setup step is missing (HTTP 412)."""

    http_status: int = 412


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(GardoonerError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class RepositoryError(ServiceError):
    """Database / persistence layer failure (HTTP 500)."""

    http_status: int = 500


class ExternalServiceError(ServiceError):
    """Third-party or network dependency failure (HTTP 502)."""

    http_status: int = 502


class AIResponseError(ServiceError):
    """An LLM backend replied, but the reply cannot be used (HTTP 502)."""

    http_status: int = 502

    def __init__(self, message: str = "", *, provider: str, detail: dict | None = None) -> None:
        super().__init__(message, detail=detail)
        self.provider = provider


class ParseError(AIResponseError):
    """The backend reply is empty or is not valid (optionally fenced) JSON."""


class SchemaValidationError(AIResponseError):
    """The reply parsed as JSON but does not conform to the operation schema."""

    def __init__(
        self,
        message: str = "",
        *,
        provider: str = "",
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message, provider=provider, detail={"errors": errors or []})
        self.errors = errors or []


class ConfigurationError(GardoonerError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
