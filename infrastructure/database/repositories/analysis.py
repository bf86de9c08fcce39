from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.database.ops.analysis import AnalysisOperations


@dataclass(frozen=True)
class AnalysisRepository:
    """Repository facade for analysis results (append-only) and cached weather."""

    _backend: AnalysisOperations

    def create_result(self, **fields: Any) -> str:
        return self._backend.insert_analysis_result(**fields)

    def get_result(self, analysis_id: str) -> dict[str, Any] | None:
        return self._backend.get_analysis_result(analysis_id)

    def list_results(self, garden_id: str, *, target_id: str | None = None, limit: int = 10):
        return self._backend.list_analysis_results(garden_id, target_id=target_id, limit=limit)

    def latest_per_target(self, garden_id: str, *, scan: int = 10) -> list[dict[str, Any]]:
        """Newest result per target among the *scan* most recent rows."""
        seen: set[str] = set()
        latest: list[dict[str, Any]] = []
        for row in self._backend.list_analysis_results(garden_id, limit=scan):
            key = row.get("target_id") or "garden"
            if key in seen:
                continue
            seen.add(key)
            latest.append(row)
        return latest

    def cache_weather(self, garden_id: str, forecast: dict[str, Any]) -> str:
        return self._backend.insert_weather_snapshot(garden_id, forecast)

    def latest_weather(self, garden_id: str) -> dict[str, Any] | None:
        return self._backend.get_latest_weather(garden_id)
