from __future__ import annotations

import logging
import sqlite3
from typing import Any

from gardooner.utils.time import iso_now
from infrastructure.database.utils import new_id, row_to_dict, rows_to_dicts
from infrastructure.utils.structured_fields import dump_json_field

logger = logging.getLogger(__name__)

_ANALYSIS_JSON = ("result", "tokens_used")


class AnalysisOperations:
    """Append-only analysis results and the per-garden weather cache."""

    def insert_analysis_result(
        self,
        *,
        garden_id: str,
        scope: str,
        target_id: str | None,
        result: dict[str, Any],
        model_used: str | None,
        tokens_used: dict[str, int] | None,
        generated_at: str | None = None,
    ) -> str:
        analysis_id = new_id()
        try:
            with self.connection() as db:
                db.execute(
                    """
                    INSERT INTO analysis_results (
                        id, garden_id, scope, target_id, result, model_used, tokens_used, generated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        analysis_id,
                        garden_id,
                        scope,
                        target_id,
                        dump_json_field(result),
                        model_used,
                        dump_json_field(tokens_used),
                        generated_at or iso_now(),
                    ),
                )
        except sqlite3.Error as exc:
            logger.error("Error storing analysis result for garden %s: %s", garden_id, exc)
            raise
        return analysis_id

    def get_analysis_result(self, analysis_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute("SELECT * FROM analysis_results WHERE id = ?", (analysis_id,)).fetchone()
        return row_to_dict(row, json_dicts=_ANALYSIS_JSON)

    def list_analysis_results(
        self,
        garden_id: str,
        *,
        target_id: str | None = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        query = "SELECT * FROM analysis_results WHERE garden_id = ?"
        params: list[Any] = [garden_id]
        if target_id is not None:
            query += " AND target_id = ?"
            params.append(target_id)
        query += " ORDER BY generated_at DESC LIMIT ?"
        params.append(limit)
        return rows_to_dicts(self.get_db().execute(query, params).fetchall(), json_dicts=_ANALYSIS_JSON)

    # --- Weather cache -----------------------------------------------------------
    def insert_weather_snapshot(self, garden_id: str, forecast: dict[str, Any], fetched_at: str | None = None) -> str:
        snapshot_id = new_id()
        with self.connection() as db:
            db.execute(
                "INSERT INTO weather_cache (id, garden_id, forecast, fetched_at) VALUES (?, ?, ?, ?)",
                (snapshot_id, garden_id, dump_json_field(forecast), fetched_at or iso_now()),
            )
        return snapshot_id

    def get_latest_weather(self, garden_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute(
            "SELECT * FROM weather_cache WHERE garden_id = ? ORDER BY fetched_at DESC LIMIT 1",
            (garden_id,),
        ).fetchone()
        return row_to_dict(row, json_dicts=("forecast",))
