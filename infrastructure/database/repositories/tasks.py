from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from infrastructure.database.ops.care import CareOperations


@dataclass(frozen=True)
class TaskRepository:
    """Repository facade over the task / care-log state machine."""

    _backend: CareOperations

    # --- tasks ---
    def create_task(self, **fields: Any) -> str:
        return self._backend.insert_task(**fields)

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        return self._backend.get_task(task_id)

    def find_pending(self, task_id: str, *, garden_id: str | None = None, zone_id: str | None = None):
        return self._backend.find_pending_task(task_id, garden_id=garden_id, zone_id=zone_id)

    def list_pending(self, *, garden_id: str | None = None, zone_id: str | None = None) -> list[dict[str, Any]]:
        return self._backend.list_tasks(garden_id=garden_id, zone_id=zone_id)

    def list_recently_resolved(self, zone_id: str, since: str) -> list[dict[str, Any]]:
        return self._backend.list_tasks(zone_id=zone_id, statuses=("completed", "cancelled"), resolved_since=since)

    def update_pending(self, task_id: str, changes: dict[str, Any], **scope: Any) -> bool:
        return self._backend.update_pending_task(task_id, changes, **scope)

    def complete(self, task_id: str, *, completed_via: str, **options: Any) -> dict[str, Any] | None:
        return self._backend.complete_pending_task(task_id, completed_via=completed_via, **options)

    def cancel(self, task_id: str, *, completed_via: str, **options: Any) -> dict[str, Any] | None:
        return self._backend.cancel_pending_task(task_id, completed_via=completed_via, **options)

    def snooze(self, task_id: str, garden_id: str, suggested_date: str) -> bool:
        return self._backend.snooze_pending_task(task_id, garden_id, suggested_date)

    # --- care logs ---
    def create_care_log(self, target_type: str, target_id: str, action_type: str, **fields: Any) -> str:
        return self._backend.insert_care_log(target_type, target_id, action_type, **fields)

    def get_care_log(self, care_log_id: str) -> dict[str, Any] | None:
        return self._backend.get_care_log(care_log_id)

    def recent_care_logs(self, target_ids: Sequence[str], since: str, *, limit: int | None = None):
        return self._backend.list_care_logs(target_ids, since, limit=limit)

    def count_care_logs(self, target_id: str) -> int:
        return self._backend.count_care_logs_for_target(target_id)
