"""
AI Services
===========
LLM backends and the action engine for the analysis pipeline.

Services:
- AIProvider: capability interface shared by every backend
- ClaudeProvider / KimiProvider: concrete backends
- ActionEngine: applies AI-proposed operations to tasks and care logs

All public symbols are importable via ``from gardooner.services.ai import X``.
Imports are **lazy** so the SDK-backed modules load only when used.
"""

from __future__ import annotations

import importlib
from typing import Any

# ── Symbol → submodule mapping ──────────────────────────────────────
_LAZY_IMPORTS: dict[str, str] = {
    # chat_actions
    "ActionEngine": "gardooner.services.ai.chat_actions",
    "ActionResult": "gardooner.services.ai.chat_actions",
    "ParsedAction": "gardooner.services.ai.chat_actions",
    "parse_actions": "gardooner.services.ai.chat_actions",
    # claude / kimi
    "ClaudeProvider": "gardooner.services.ai.claude",
    "KimiProvider": "gardooner.services.ai.kimi",
    # prompts
    "build_analysis_system_prompt": "gardooner.services.ai.prompts",
    "build_chat_system_prompt": "gardooner.services.ai.prompts",
    # provider
    "AIProvider": "gardooner.services.ai.provider",
    "AnalysisReply": "gardooner.services.ai.provider",
    "ChatReply": "gardooner.services.ai.provider",
    "ProviderResolution": "gardooner.services.ai.provider",
    "create_provider": "gardooner.services.ai.provider",
    "extract_json": "gardooner.services.ai.provider",
    "normalize_usage": "gardooner.services.ai.provider",
    "resolve_provider": "gardooner.services.ai.provider",
}

__all__ = list(_LAZY_IMPORTS.keys())


def __getattr__(name: str) -> Any:
    """Lazy-load symbols on first access."""
    module_path = _LAZY_IMPORTS.get(name)
    if module_path is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = importlib.import_module(module_path)
    value = getattr(module, name)
    globals()[name] = value
    return value
