"""
AI Provider Contract
====================
One capability interface implemented by every LLM backend Gardooner talks to.

Supported backends
------------------
* **ClaudeProvider**: Anthropic Messages API via the ``anthropic`` SDK.
* **KimiProvider**: Moonshot's OpenAI-compatible API via the ``openai`` SDK.

Both expose the same two calls:

``analyze_zone(context, api_key)``
    Returns an :class:`AnalysisReply` whose ``result`` has already passed
    :func:`~gardooner.schemas.analysis.validate_analysis_result`. A reply
    that is not JSON raises :class:`ParseError`; JSON that does not fit the
    operation schema raises :class:`SchemaValidationError`.

``chat(messages, system_prompt, api_key, image_base64=None)``
    Returns a :class:`ChatReply` with the raw prose (which may embed
    ``<garden_action>`` tags, see :mod:`gardooner.services.ai.chat_actions`).

Authentication, connection and rate-limit errors raised by the SDKs are not
caught here. SDK clients are built with the configured ``timeout`` and
``max_retries``; the SDK only retries transient failures (connection errors,
408, 429, 5xx), never a bad reply.

The SDKs are imported lazily so importing this package does not require
both of them to be configured.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping, Sequence

from gardooner.domain.exceptions import ParseError
from gardooner.enums import ProviderName
from gardooner.schemas.analysis import AnalysisResultPayload, validate_analysis_result

if TYPE_CHECKING:
    from infrastructure.database.repositories.base import ApiKeyStore

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_DATA_URL_RE = re.compile(r"^data:(image/[a-z+]+);base64,(.+)$", re.DOTALL)

DEFAULT_IMAGE_MEDIA_TYPE = "image/jpeg"

ANALYSIS_USER_PROMPT = (
    "Analyze this garden zone. Review existing tasks and provide your operations "
    "(create/update/complete/cancel) as JSON."
)

ClientFactory = Callable[[str], Any]


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass
class AnalysisReply:
    """Validated zone analysis plus normalised token usage."""

    result: AnalysisResultPayload
    tokens_used: dict[str, int] = field(default_factory=lambda: {"input": 0, "output": 0})
    model: str = ""


@dataclass
class ChatReply:
    content: str
    tokens_used: dict[str, int] = field(default_factory=lambda: {"input": 0, "output": 0})
    model: str = ""


@dataclass(frozen=True)
class ProviderResolution:
    """Which backend to use for a user, and the key to use it with."""

    variant: ProviderName
    api_key: str


# ---------------------------------------------------------------------------
# Helpers shared by every backend
# ---------------------------------------------------------------------------


def extract_json(text: str) -> str:
    """Return the body of a markdown code fence if present, else the stripped text."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def decode_analysis_reply(text: str | None, provider: str) -> AnalysisResultPayload:
    """JSON-decode and schema-validate a raw analysis reply from *provider*."""
    if not text or not text.strip():
        raise ParseError(f"{provider} returned no text content in analysis response", provider=provider)
    json_str = extract_json(text)
    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise ParseError(
            f"{provider} returned invalid JSON: {json_str[:200]}",
            provider=provider,
            detail={"position": exc.pos},
        ) from exc
    return validate_analysis_result(parsed, provider=provider)


def normalize_usage(usage: Any, input_field: str = "input_tokens", output_field: str = "output_tokens") -> dict[str, int]:
    """Map an SDK usage object (or dict, or None) to ``{"input": n, "output": n}``."""
    if usage is None:
        return {"input": 0, "output": 0}
    if isinstance(usage, Mapping):
        raw_in, raw_out = usage.get(input_field), usage.get(output_field)
    else:
        raw_in, raw_out = getattr(usage, input_field, None), getattr(usage, output_field, None)
    return {
        "input": raw_in if isinstance(raw_in, int) else 0,
        "output": raw_out if isinstance(raw_out, int) else 0,
    }


def split_data_url(value: str) -> tuple[str, str] | None:
    """``data:image/png;base64,AAAA`` -> ``("image/png", "AAAA")``; None for anything else."""
    match = _DATA_URL_RE.match(value)
    if not match:
        return None
    return match.group(1), match.group(2)


def image_parts(image_base64: str, media_type: str | None = None) -> tuple[str, str]:
    """Accept either a bare base64 string or a data URL; return (media type, base64 data)."""
    parsed = split_data_url(image_base64)
    if parsed:
        return parsed
    return media_type or DEFAULT_IMAGE_MEDIA_TYPE, image_base64


# ---------------------------------------------------------------------------
# Abstract provider
# ---------------------------------------------------------------------------


class AIProvider(ABC):
    """
    Abstract base for an LLM backend.

    Parameters
    ----------
    model:
        Model identifier sent with every request.
    timeout:
        Per-call timeout in seconds passed to the SDK client.
    max_retries:
        SDK-level retries for transient transport errors.
    client_factory:
        Optional ``api_key -> client`` callable; tests use it to inject fakes.
    """

    def __init__(
        self,
        model: str,
        *,
        timeout: float = 60.0,
        max_retries: int = 2,
        analysis_max_tokens: int = 4096,
        chat_max_tokens: int = 2048,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.model = model
        self._timeout = timeout
        self._max_retries = max_retries
        self._analysis_max_tokens = analysis_max_tokens
        self._chat_max_tokens = chat_max_tokens
        self._client_factory = client_factory

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier (``"claude"`` or ``"kimi"``)."""

    @abstractmethod
    def _build_client(self, api_key: str) -> Any:
        """Construct the SDK client for *api_key*."""

    @abstractmethod
    def analyze_zone(self, context: dict[str, Any], api_key: str) -> AnalysisReply:
        """Run a zone analysis and return the validated result."""

    @abstractmethod
    def chat(
        self,
        messages: Sequence[Mapping[str, str]],
        system_prompt: str,
        api_key: str,
        image_base64: str | None = None,
        image_media_type: str | None = None,
    ) -> ChatReply:
        """Carry on one chat turn; the image, if any, rides on the last user message."""

    def client(self, api_key: str) -> Any:
        if self._client_factory is not None:
            return self._client_factory(api_key)
        return self._build_client(api_key)


# ---------------------------------------------------------------------------
# Resolution + factory
# ---------------------------------------------------------------------------

# Preference order when a user has configured several backends
PROVIDER_PREFERENCE: tuple[ProviderName, ...] = (ProviderName.CLAUDE, ProviderName.KIMI)


def resolve_provider(api_keys: "ApiKeyStore", user_id: str) -> ProviderResolution | None:
    """Pick the first backend the user holds a key for, or None."""
    for variant in PROVIDER_PREFERENCE:
        api_key = api_keys.get_api_key(user_id, variant.value)
        if api_key:
            return ProviderResolution(variant=variant, api_key=api_key)
    return None


def create_provider(variant: ProviderName | str, config: Any, *, client_factory: ClientFactory | None = None) -> AIProvider:
    """Build the provider for *variant* from an :class:`~gardooner.config.AppConfig`."""
    from gardooner.services.ai.claude import ClaudeProvider
    from gardooner.services.ai.kimi import KimiProvider

    variant = ProviderName(variant)
    common: dict[str, Any] = {
        "timeout": config.llm_timeout,
        "max_retries": config.llm_max_retries,
        "analysis_max_tokens": config.analysis_max_tokens,
        "chat_max_tokens": config.chat_max_tokens,
        "client_factory": client_factory,
    }
    if variant is ProviderName.CLAUDE:
        return ClaudeProvider(config.claude_model, **common)
    return KimiProvider(config.kimi_model, base_url=config.kimi_base_url, **common)
