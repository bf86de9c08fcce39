"""JSON-in-TEXT columns: user settings, analysis payloads, weather, conversation messages."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def _decode(raw: Any) -> Any | None:
    if isinstance(raw, (dict, list)):
        return raw
    if not isinstance(raw, (str, bytes)):
        return None
    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Invalid JSON in structured column: %s", text[:200])
        return None


def parse_json_dict(raw: Any) -> dict[str, Any]:
    """Decode a JSON object column; anything else becomes ``{}``."""
    parsed = _decode(raw)
    return dict(parsed) if isinstance(parsed, dict) else {}


def parse_json_list(raw: Any) -> list[Any]:
    """Decode a JSON array column; anything else becomes ``[]``."""
    parsed = _decode(raw)
    return list(parsed) if isinstance(parsed, list) else []


def dump_json_field(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)
