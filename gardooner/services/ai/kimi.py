"""Kimi backend (Moonshot, OpenAI-compatible Chat Completions)."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from gardooner.domain.exceptions import ParseError
from gardooner.services.ai.prompts import build_analysis_system_prompt
from gardooner.services.ai.provider import (
    ANALYSIS_USER_PROMPT,
    AIProvider,
    AnalysisReply,
    ChatReply,
    decode_analysis_reply,
    image_parts,
    normalize_usage,
)

logger = logging.getLogger(__name__)


def _message_text(response: Any) -> str | None:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)


def _usage(response: Any) -> dict[str, int]:
    return normalize_usage(getattr(response, "usage", None), "prompt_tokens", "completion_tokens")


class KimiProvider(AIProvider):
    """
    Moonshot Kimi through the ``openai`` SDK.

    Parameters
    ----------
    base_url:
        Moonshot endpoint (``https://api.moonshot.ai/v1`` by default).
    """

    def __init__(self, model: str, *, base_url: str = "https://api.moonshot.ai/v1", **kwargs: Any) -> None:
        super().__init__(model, **kwargs)
        self._base_url = base_url

    @property
    def name(self) -> str:
        return "kimi"

    def _build_client(self, api_key: str) -> Any:
        import openai

        return openai.OpenAI(
            api_key=api_key,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=self._max_retries,
        )

    def analyze_zone(self, context: dict[str, Any], api_key: str) -> AnalysisReply:
        user_parts: list[dict[str, Any]] = [
            {"type": "image_url", "image_url": {"url": photo["dataUrl"]}} for photo in context.get("photos") or []
        ]
        user_parts.append({"type": "text", "text": ANALYSIS_USER_PROMPT})

        response = self.client(api_key).chat.completions.create(
            model=self.model,
            max_tokens=self._analysis_max_tokens,
            messages=[
                {"role": "system", "content": build_analysis_system_prompt(context)},
                {"role": "user", "content": user_parts},
            ],
            response_format={"type": "json_object"},
        )
        result = decode_analysis_reply(_message_text(response), self.name)
        return AnalysisReply(result=result, tokens_used=_usage(response), model=self.model)

    def chat(
        self,
        messages: Sequence[Mapping[str, str]],
        system_prompt: str,
        api_key: str,
        image_base64: str | None = None,
        image_media_type: str | None = None,
    ) -> ChatReply:
        payload: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        last = len(messages) - 1
        for index, message in enumerate(messages):
            if image_base64 and message["role"] == "user" and index == last:
                media_type, data = image_parts(image_base64, image_media_type)
                payload.append(
                    {
                        "role": "user",
                        "content": [
                            {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{data}"}},
                            {"type": "text", "text": message["content"]},
                        ],
                    }
                )
            else:
                payload.append({"role": message["role"], "content": message["content"]})

        response = self.client(api_key).chat.completions.create(
            model=self.model,
            max_tokens=self._chat_max_tokens,
            messages=payload,
        )
        content = _message_text(response)
        if not content:
            raise ParseError("Kimi returned no content in chat response", provider=self.name)
        logger.debug("Kimi chat reply: %d chars", len(content))
        return ChatReply(content=content, tokens_used=_usage(response), model=self.model)
