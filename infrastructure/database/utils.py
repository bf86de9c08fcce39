"""
Database Utilities
==================

Shared helpers for turning sqlite rows into plain dictionaries.
"""

from __future__ import annotations

import sqlite3
import uuid
from typing import Any, Iterable, Sequence

from infrastructure.utils.structured_fields import parse_json_dict, parse_json_list


def new_id() -> str:
    """Primary keys are random UUID4 strings."""
    return str(uuid.uuid4())


def row_to_dict(
    row: sqlite3.Row | dict | None,
    *,
    json_dicts: Sequence[str] = (),
    json_lists: Sequence[str] = (),
    bools: Sequence[str] = (),
) -> dict[str, Any] | None:
    """
    Convert a database row to a dictionary, decoding JSON and boolean columns.

    Args:
        row: sqlite3.Row, dict, or None
        json_dicts: Columns holding a JSON object
        json_lists: Columns holding a JSON array
        bools: INTEGER 0/1 columns to expose as bool

    Returns:
        Dictionary representation of the row, or None when *row* is None
    """
    if row is None:
        return None
    data = dict(row) if isinstance(row, dict) else {key: row[key] for key in row.keys()}
    for column in json_dicts:
        if column in data and data[column] is not None:
            data[column] = parse_json_dict(data[column])
    for column in json_lists:
        if column in data:
            data[column] = parse_json_list(data[column])
    for column in bools:
        if column in data and data[column] is not None:
            data[column] = bool(data[column])
    return data


def rows_to_dicts(rows: Iterable[sqlite3.Row], **options: Sequence[str]) -> list[dict[str, Any]]:
    return [row_to_dict(row, **options) for row in rows]


def placeholders(values: Sequence[Any]) -> str:
    """``?, ?, ?`` for an IN (...) clause."""
    return ", ".join("?" for _ in values)
