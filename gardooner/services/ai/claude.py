"""Claude backend (Anthropic Messages API)."""

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
    split_data_url,
)

logger = logging.getLogger(__name__)


def _first_text(response: Any) -> str | None:
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "text":
            return block.text
    return None


def _image_block(media_type: str, data: str) -> dict[str, Any]:
    return {"type": "image", "source": {"type": "base64", "media_type": media_type, "data": data}}


class ClaudeProvider(AIProvider):
    """Anthropic Claude. ``system`` is a top-level parameter, not a message."""

    @property
    def name(self) -> str:
        return "claude"

    def _build_client(self, api_key: str) -> Any:
        import anthropic

        return anthropic.Anthropic(api_key=api_key, timeout=self._timeout, max_retries=self._max_retries)

    def analyze_zone(self, context: dict[str, Any], api_key: str) -> AnalysisReply:
        content: list[dict[str, Any]] = []
        for photo in context.get("photos") or []:
            parsed = split_data_url(photo["dataUrl"])
            if parsed:
                content.append(_image_block(*parsed))
        content.append({"type": "text", "text": ANALYSIS_USER_PROMPT})

        response = self.client(api_key).messages.create(
            model=self.model,
            max_tokens=self._analysis_max_tokens,
            system=build_analysis_system_prompt(context),
            messages=[{"role": "user", "content": content}],
        )
        result = decode_analysis_reply(_first_text(response), self.name)
        usage = normalize_usage(getattr(response, "usage", None))
        logger.debug("Claude analysis used %s tokens", usage)
        return AnalysisReply(result=result, tokens_used=usage, model=self.model)

    def chat(
        self,
        messages: Sequence[Mapping[str, str]],
        system_prompt: str,
        api_key: str,
        image_base64: str | None = None,
        image_media_type: str | None = None,
    ) -> ChatReply:
        payload: list[dict[str, Any]] = []
        last = len(messages) - 1
        for index, message in enumerate(messages):
            if image_base64 and message["role"] == "user" and index == last:
                payload.append(
                    {
                        "role": "user",
                        "content": [
                            _image_block(*image_parts(image_base64, image_media_type)),
                            {"type": "text", "text": message["content"]},
                        ],
                    }
                )
            else:
                payload.append({"role": message["role"], "content": message["content"]})

        response = self.client(api_key).messages.create(
            model=self.model,
            max_tokens=self._chat_max_tokens,
            system=system_prompt,
            messages=payload,
        )
        text = _first_text(response)
        if text is None:
            raise ParseError("Claude returned no text content in chat response", provider=self.name)
        return ChatReply(content=text, tokens_used=normalize_usage(getattr(response, "usage", None)), model=self.model)
