"""
Task Service
============

User-facing operations on the task list: list pending tasks, complete,
dismiss and snooze them, and read back recent analysis results.

Transitions go through the same guarded repository calls the action engine
uses, so a user and the AI can never both close the same task.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any

from gardooner.domain.exceptions import ConflictError, NotFoundError
from gardooner.enums import CompletedVia

if TYPE_CHECKING:
    from infrastructure.database.repositories import AnalysisRepository, GardenRepository, TaskRepository
    from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(
        self,
        gardens: "GardenRepository",
        tasks: "TaskRepository",
        analysis: "AnalysisRepository",
        audit: "AuditLogger | None" = None,
    ):
        self._gardens = gardens
        self._tasks = tasks
        self._analysis = analysis
        self._audit = audit

    def _assert_garden(self, garden_id: str, user_id: str) -> None:
        if not self._gardens.get_owned_garden(garden_id, user_id):
            raise NotFoundError(f"Garden {garden_id} not found")

    def _closed(self, task_id: str, garden_id: str) -> ConflictError | NotFoundError:
        """The error to raise when a guarded transition matched no pending row."""
        task = self._tasks.get_task(task_id)
        if task is None or task["garden_id"] != garden_id:
            return NotFoundError(f"Task {task_id} not found")
        return ConflictError(f"Task {task_id} is already {task['status']}")

    def _audit_event(self, user_id: str, action: str, task_id: str, **meta: Any) -> None:
        if self._audit is not None:
            self._audit.log_event(f"user:{user_id}", action, f"task:{task_id}", "success", **meta)

    def list_pending(self, garden_id: str, user_id: str) -> list[dict[str, Any]]:
        self._assert_garden(garden_id, user_id)
        return self._tasks.list_pending(garden_id=garden_id)

    def complete(self, task_id: str, garden_id: str, user_id: str, notes: str | None = None) -> dict[str, Any]:
        """Mark a task done; a care log is written in the same transaction."""
        self._assert_garden(garden_id, user_id)
        task = self._tasks.complete(task_id, completed_via=CompletedVia.USER.value, notes=notes, garden_id=garden_id)
        if task is None:
            raise self._closed(task_id, garden_id)
        self._audit_event(user_id, "complete_task", task_id, care_log_id=task["care_log_id"])
        return task

    def dismiss(self, task_id: str, garden_id: str, user_id: str) -> dict[str, Any]:
        self._assert_garden(garden_id, user_id)
        task = self._tasks.cancel(task_id, completed_via=CompletedVia.USER_DISMISSED.value, garden_id=garden_id)
        if task is None:
            raise self._closed(task_id, garden_id)
        self._audit_event(user_id, "dismiss_task", task_id)
        return task

    def snooze(self, task_id: str, garden_id: str, user_id: str, suggested_date: date) -> dict[str, Any]:
        self._assert_garden(garden_id, user_id)
        if not self._tasks.snooze(task_id, garden_id, suggested_date.isoformat()):
            raise self._closed(task_id, garden_id)
        self._audit_event(user_id, "snooze_task", task_id, suggested_date=suggested_date.isoformat())
        return self._tasks.get_task(task_id)

    def latest_analysis(self, garden_id: str, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        self._assert_garden(garden_id, user_id)
        return self._analysis.list_results(garden_id, limit=limit)
