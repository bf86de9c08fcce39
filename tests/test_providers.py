"""Claude and Kimi adapters, reply decoding and provider resolution."""

from __future__ import annotations

import json
import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from gardooner.domain.exceptions import ParseError, SchemaValidationError
from gardooner.enums import ProviderName
from gardooner.services.ai.claude import ClaudeProvider
from gardooner.services.ai.kimi import KimiProvider
from gardooner.services.ai.provider import (
    create_provider,
    decode_analysis_reply,
    extract_json,
    image_parts,
    normalize_usage,
    resolve_provider,
)


def claude_response(text, usage=None):
    content = [] if text is None else [SimpleNamespace(type="text", text=text)]
    return SimpleNamespace(content=content, usage=usage)


def kimi_response(text, usage=None):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))], usage=usage)


ZONE_ID = str(uuid.uuid4())

PAYLOAD = {
    "operations": [
        {
            "op": "create",
            "targetType": "zone",
            "targetId": ZONE_ID,
            "zoneId": ZONE_ID,
            "actionType": "water",
            "priority": "today",
            "label": "Deep water",
            "suggestedDate": "2026-06-01",
        }
    ],
    "observations": ["Soil is dry"],
}

CONTEXT = {
    "garden": {"name": "Backyard"},
    "zone": {"id": ZONE_ID, "name": "Bed", "plants": [], "recentCareLogs": []},
    "currentDate": "2026-06-01",
}


class TestDecoding:
    def test_fenced_and_bare_json_decode_identically(self):
        bare = json.dumps(PAYLOAD)
        fenced = f"```json\n{bare}\n```"
        assert decode_analysis_reply(bare, "claude") == decode_analysis_reply(fenced, "claude")

    def test_unlabelled_fence_is_stripped(self):
        assert extract_json("```\n{\"a\": 1}\n```") == '{"a": 1}'

    def test_invalid_json_raises_parse_error(self):
        with pytest.raises(ParseError) as exc_info:
            decode_analysis_reply("Here are my thoughts on your garden", "kimi")
        assert exc_info.value.provider == "kimi"
        assert not isinstance(exc_info.value, SchemaValidationError)

    def test_valid_json_with_wrong_shape_raises_schema_error(self):
        with pytest.raises(SchemaValidationError):
            decode_analysis_reply(json.dumps({"operations": [{"op": "create"}]}), "claude")

    def test_empty_reply_is_a_parse_error(self):
        with pytest.raises(ParseError):
            decode_analysis_reply(None, "claude")


class TestUsage:
    def test_missing_usage_defaults_to_zero(self):
        assert normalize_usage(None) == {"input": 0, "output": 0}

    def test_usage_object_and_mapping(self):
        assert normalize_usage(SimpleNamespace(input_tokens=12, output_tokens=4)) == {"input": 12, "output": 4}
        assert normalize_usage({"prompt_tokens": 3}, "prompt_tokens", "completion_tokens") == {
            "input": 3,
            "output": 0,
        }

    def test_non_integer_counts_become_zero(self):
        assert normalize_usage(SimpleNamespace(input_tokens=None, output_tokens="7")) == {"input": 0, "output": 0}


def test_image_parts_accepts_data_url_and_bare_base64():
    assert image_parts("data:image/png;base64,QUJD") == ("image/png", "QUJD")
    assert image_parts("QUJD") == ("image/jpeg", "QUJD")


class TestClaudeProvider:
    def _provider(self, client):
        return ClaudeProvider("claude-test", client_factory=lambda _key: client)

    def test_analyze_zone_returns_validated_result_and_usage(self):
        client = MagicMock()
        client.messages.create.return_value = claude_response(
            f"```json\n{json.dumps(PAYLOAD)}\n```", SimpleNamespace(input_tokens=100, output_tokens=20)
        )
        reply = self._provider(client).analyze_zone(CONTEXT, "sk-ant")

        assert reply.result.operations[0].label == "Deep water"
        assert reply.result.alerts == []
        assert reply.tokens_used == {"input": 100, "output": 20}
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert "Backyard" in kwargs["system"]

    def test_analyze_zone_without_usage(self):
        client = MagicMock()
        client.messages.create.return_value = claude_response(json.dumps({"operations": []}), None)
        reply = self._provider(client).analyze_zone(CONTEXT, "sk-ant")
        assert reply.tokens_used == {"input": 0, "output": 0}

    def test_photos_become_image_blocks(self):
        client = MagicMock()
        client.messages.create.return_value = claude_response(json.dumps({"operations": []}))
        context = {**CONTEXT, "photos": [{"dataUrl": "data:image/png;base64,QUJD", "description": "Leaf"}]}
        self._provider(client).analyze_zone(context, "sk-ant")

        content = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"]["data"] == "QUJD"
        assert content[-1]["type"] == "text"

    def test_upstream_errors_propagate(self):
        client = MagicMock()
        client.messages.create.side_effect = ConnectionError("network down")
        with pytest.raises(ConnectionError):
            self._provider(client).analyze_zone(CONTEXT, "sk-ant")

    def test_chat_attaches_image_to_last_user_message(self):
        client = MagicMock()
        client.messages.create.return_value = claude_response("Looks like blight.")
        reply = self._provider(client).chat(
            [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello"}, {"role": "user", "content": "What is this?"}],
            "system prompt",
            "sk-ant",
            "QUJD",
        )
        assert reply.content == "Looks like blight."
        messages = client.messages.create.call_args.kwargs["messages"]
        assert messages[0]["content"] == "Hi"
        assert messages[2]["content"][0]["type"] == "image"
        assert client.messages.create.call_args.kwargs["system"] == "system prompt"

    def test_chat_without_text_raises(self):
        client = MagicMock()
        client.messages.create.return_value = claude_response(None)
        with pytest.raises(ParseError):
            self._provider(client).chat([{"role": "user", "content": "Hi"}], "sys", "sk-ant")


class TestKimiProvider:
    def _provider(self, client):
        return KimiProvider("kimi-test", client_factory=lambda _key: client)

    def test_analyze_zone_requests_json_object(self):
        client = MagicMock()
        client.chat.completions.create.return_value = kimi_response(
            json.dumps(PAYLOAD), SimpleNamespace(prompt_tokens=50, completion_tokens=9)
        )
        reply = self._provider(client).analyze_zone(CONTEXT, "sk-kimi")

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"
        assert reply.tokens_used == {"input": 50, "output": 9}
        assert reply.result.observations == ["Soil is dry"]

    def test_invalid_json_names_kimi(self):
        client = MagicMock()
        client.chat.completions.create.return_value = kimi_response("not json")
        with pytest.raises(ParseError) as exc_info:
            self._provider(client).analyze_zone(CONTEXT, "sk-kimi")
        assert exc_info.value.provider == "kimi"

    def test_chat_sends_image_as_data_url(self):
        client = MagicMock()
        client.chat.completions.create.return_value = kimi_response("Water it.")
        reply = self._provider(client).chat([{"role": "user", "content": "Help"}], "sys", "sk-kimi", "QUJD")

        assert reply.content == "Water it."
        user = client.chat.completions.create.call_args.kwargs["messages"][1]
        assert user["content"][0]["image_url"]["url"] == "data:image/jpeg;base64,QUJD"


class TestResolution:
    def test_claude_preferred_over_kimi(self, account_repo, seed):
        user_id = seed.create_user(claude_key="sk-ant", kimi_key="sk-kimi")
        resolution = resolve_provider(account_repo, user_id)
        assert resolution.variant is ProviderName.CLAUDE
        assert resolution.api_key == "sk-ant"

    def test_falls_back_to_kimi(self, account_repo, seed):
        user_id = seed.create_user(kimi_key="sk-kimi")
        resolution = resolve_provider(account_repo, user_id)
        assert resolution.variant is ProviderName.KIMI

    def test_none_when_no_keys(self, account_repo, seed):
        assert resolve_provider(account_repo, seed.create_user()) is None

    def test_keys_pass_through_decrypt(self, db_handler, seed):
        from infrastructure.database.repositories import AccountRepository

        user_id = seed.create_user(claude_key="cipher")
        accounts = AccountRepository(db_handler, decrypt=lambda value: value.upper())
        assert resolve_provider(accounts, user_id).api_key == "CIPHER"

    def test_create_provider_uses_config(self, app_config):
        claude = create_provider("claude", app_config)
        kimi = create_provider(ProviderName.KIMI, app_config)
        assert isinstance(claude, ClaudeProvider) and claude.model == app_config.claude_model
        assert isinstance(kimi, KimiProvider) and kimi.model == app_config.kimi_model
