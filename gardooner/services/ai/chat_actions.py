"""
Action Engine
=============
Turns AI-proposed instructions into task / care-log mutations.

Two entry points share the same primitives:

* :func:`parse_actions` + :meth:`ActionEngine.execute_action` for the
  ``<garden_action type="...">{json}</garden_action>`` tags a chat reply
  may embed.
* :meth:`ActionEngine.apply_analysis_operations` for the validated
  ``operations`` of a scheduled zone analysis.

Conditions reachable from untrusted model output (target outside the
garden, task no longer pending, payload that fails the schema) come back as
``ActionResult(status="error")``. The engine never raises to its caller.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

from gardooner.enums import ActionStatus, ChatActionType, CompletedVia, TargetType
from gardooner.schemas.analysis import (
    CancelOperation,
    CompleteOperation,
    CreateCareLogPayload,
    CreateOperation,
    CreateTaskPayload,
    TaskFields,
    TaskTransitionPayload,
    UpdateOperation,
)

if TYPE_CHECKING:
    from infrastructure.database.repositories import GardenRepository, TaskRepository
    from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)

ACTION_TAG_RE = re.compile(r'<garden_action\s+type="([^"]+)">([\s\S]*?)</garden_action>')


@dataclass
class ParsedAction:
    type: str
    payload: dict[str, Any]


@dataclass
class ActionResult:
    type: str
    status: str
    summary: str
    details: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == ActionStatus.SUCCESS.value

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "status": self.status, "summary": self.summary}
        if self.details is not None:
            data["details"] = self.details
        if self.error is not None:
            data["error"] = self.error
        return data


def _success(action_type: str, summary: str, details: dict[str, Any] | None = None) -> ActionResult:
    return ActionResult(type=action_type, status=ActionStatus.SUCCESS.value, summary=summary, details=details)


def _failure(action_type: str, summary: str, error: str) -> ActionResult:
    return ActionResult(type=action_type, status=ActionStatus.ERROR.value, summary=summary, error=error)


def parse_actions(raw_text: str) -> tuple[str, list[ParsedAction]]:
    """
    Strip every action tag from *raw_text* and decode its JSON body.

    A tag whose body is not a JSON object is dropped with a warning; the
    remaining tags and the prose are unaffected.
    """
    parsed: list[ParsedAction] = []

    def _collect(match: re.Match[str]) -> str:
        action_type, body = match.group(1), match.group(2)
        try:
            payload = json.loads(body.strip())
        except json.JSONDecodeError:
            logger.warning("Failed to parse %s action payload: %s", action_type, body[:200])
            return ""
        if not isinstance(payload, dict):
            logger.warning("Ignoring %s action with non-object payload", action_type)
            return ""
        parsed.append(ParsedAction(type=action_type, payload=payload))
        return ""

    clean_text = ACTION_TAG_RE.sub(_collect, raw_text).strip()
    return clean_text, parsed


class ActionEngine:
    """Executes parsed actions and analysis operations against the task store."""

    def __init__(self, gardens: "GardenRepository", tasks: "TaskRepository", audit: "AuditLogger | None" = None):
        self._gardens = gardens
        self._tasks = tasks
        self._audit = audit

    # ------------------------------------------------------------------
    # Chat actions
    # ------------------------------------------------------------------
    def execute_action(self, garden_id: str, user_id: str, action: ParsedAction) -> ActionResult:
        handlers = {
            ChatActionType.CREATE_TASK.value: self._create_task,
            ChatActionType.COMPLETE_TASK.value: self._complete_task,
            ChatActionType.CANCEL_TASK.value: self._cancel_task,
            ChatActionType.CREATE_CARE_LOG.value: self._create_care_log,
        }
        handler = handlers.get(action.type)
        if handler is None:
            result = _failure(action.type, f"Unknown action type: {action.type}", "Unsupported action type")
        else:
            try:
                result = handler(garden_id, action.payload)
            except Exception as exc:
                logger.exception("Failed to execute %s for garden %s", action.type, garden_id)
                result = _failure(action.type, f"Failed to execute {action.type}", str(exc))
        self._record(CompletedVia.AI_CHAT.value, action.type, garden_id, result, user_id=user_id)
        return result

    def execute_all(self, garden_id: str, user_id: str, actions: Sequence[ParsedAction]) -> list[ActionResult]:
        return [self.execute_action(garden_id, user_id, action) for action in actions]

    def _create_task(self, garden_id: str, payload: dict[str, Any]) -> ActionResult:
        data = CreateTaskPayload.model_validate(payload)
        problem = self._task_target_problem(garden_id, data)
        if problem:
            return _failure(ChatActionType.CREATE_TASK.value, *problem)
        task_id = self._insert_task(garden_id, data)
        return _success(
            ChatActionType.CREATE_TASK.value,
            f"Created task: {data.label}",
            {"taskId": task_id, "priority": data.priority},
        )

    def _complete_task(self, garden_id: str, payload: dict[str, Any]) -> ActionResult:
        data = TaskTransitionPayload.model_validate(payload)
        task = self._tasks.complete(
            data.task_id,
            completed_via=CompletedVia.AI_CHAT.value,
            notes=data.reason,
            reason=data.reason,
            garden_id=garden_id,
        )
        if task is None:
            return _not_pending(ChatActionType.COMPLETE_TASK.value, data.task_id)
        return _success(
            ChatActionType.COMPLETE_TASK.value,
            f"Completed task: {task['label']}",
            {"taskId": data.task_id, "careLogId": task["care_log_id"]},
        )

    def _cancel_task(self, garden_id: str, payload: dict[str, Any]) -> ActionResult:
        data = TaskTransitionPayload.model_validate(payload)
        task = self._tasks.cancel(
            data.task_id,
            completed_via=CompletedVia.AI_CHAT.value,
            reason=data.reason,
            garden_id=garden_id,
        )
        if task is None:
            return _not_pending(ChatActionType.CANCEL_TASK.value, data.task_id)
        return _success(ChatActionType.CANCEL_TASK.value, f"Cancelled task: {task['label']}", {"taskId": data.task_id})

    def _create_care_log(self, garden_id: str, payload: dict[str, Any]) -> ActionResult:
        data = CreateCareLogPayload.model_validate(payload)
        if data.target_type == TargetType.ZONE.value:
            owned = self._gardens.get_zone_in_garden(data.target_id, garden_id) is not None
        else:
            plant = self._gardens.get_plant(data.target_id)
            owned = plant is not None and self._gardens.get_zone_in_garden(plant["zone_id"], garden_id) is not None
        if not owned:
            return _failure(
                ChatActionType.CREATE_CARE_LOG.value,
                f"{data.target_type.capitalize()} not found in this garden",
                f"{data.target_type.capitalize()} {data.target_id} not found in garden {garden_id}",
            )
        care_log_id = self._tasks.create_care_log(data.target_type, data.target_id, data.action_type, notes=data.notes)
        return _success(
            ChatActionType.CREATE_CARE_LOG.value,
            f"Logged {data.action_type} for {data.target_type}",
            {"careLogId": care_log_id},
        )

    # ------------------------------------------------------------------
    # Analysis operations
    # ------------------------------------------------------------------
    def apply_analysis_operations(
        self,
        garden_id: str,
        zone_id: str,
        analysis_id: str,
        operations: Sequence[CreateOperation | UpdateOperation | CompleteOperation | CancelOperation],
    ) -> list[ActionResult]:
        """Apply each operation scoped to the analysed zone; one failure never stops the rest."""
        results: list[ActionResult] = []
        for operation in operations:
            try:
                result = self._apply_operation(garden_id, zone_id, analysis_id, operation)
            except Exception as exc:
                logger.exception("Failed to apply %s operation for zone %s", operation.op, zone_id)
                result = _failure(operation.op, f"Failed to apply {operation.op} operation", str(exc))
            if not result.ok:
                logger.warning("Skipped %s operation for zone %s: %s", operation.op, zone_id, result.error)
            self._record(CompletedVia.AI.value, operation.op, garden_id, result, zone_id=zone_id, analysis_id=analysis_id)
            results.append(result)
        return results

    def _apply_operation(self, garden_id: str, zone_id: str, analysis_id: str, operation: Any) -> ActionResult:
        if isinstance(operation, CreateOperation):
            if operation.zone_id != zone_id:
                return _failure("create", "Task outside the analysed zone", f"Zone {operation.zone_id} != {zone_id}")
            problem = self._task_target_problem(garden_id, operation)
            if problem:
                return _failure("create", *problem)
            task_id = self._insert_task(garden_id, operation, source_analysis_id=analysis_id)
            return _success("create", f"Created task: {operation.label}", {"taskId": task_id})

        if isinstance(operation, UpdateOperation):
            changes = operation.changes()
            if not changes:
                return _success("update", "Nothing to update", {"taskId": operation.task_id})
            if not self._tasks.update_pending(
                operation.task_id, changes, zone_id=zone_id, source_analysis_id=analysis_id
            ):
                return _not_pending("update", operation.task_id)
            return _success("update", f"Updated task {operation.task_id}", {"taskId": operation.task_id, "fields": sorted(changes)})

        if isinstance(operation, CompleteOperation):
            task = self._tasks.complete(
                operation.task_id,
                completed_via=CompletedVia.AI.value,
                notes=operation.reason,
                reason=operation.reason,
                garden_id=garden_id,
                zone_id=zone_id,
                source_analysis_id=analysis_id,
            )
            if task is None:
                return _not_pending("complete", operation.task_id)
            return _success(
                "complete", f"Completed task: {task['label']}", {"taskId": operation.task_id, "careLogId": task["care_log_id"]}
            )

        if isinstance(operation, CancelOperation):
            task = self._tasks.cancel(
                operation.task_id,
                completed_via=CompletedVia.AI.value,
                reason=operation.reason,
                garden_id=garden_id,
                zone_id=zone_id,
                source_analysis_id=analysis_id,
            )
            if task is None:
                return _not_pending("cancel", operation.task_id)
            return _success("cancel", f"Cancelled task: {task['label']}", {"taskId": operation.task_id})

        return _failure(str(getattr(operation, "op", "unknown")), "Unknown operation", "Unsupported operation")

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    def _task_target_problem(self, garden_id: str, data: TaskFields) -> tuple[str, str] | None:
        """(summary, error) when the task target is outside the garden, else None."""
        if self._gardens.get_zone_in_garden(data.zone_id, garden_id) is None:
            return "Zone not found in this garden", f"Zone {data.zone_id} not found"
        if data.target_type == TargetType.PLANT.value:
            if self._gardens.get_plant_in_zone(data.target_id, data.zone_id) is None:
                return "Plant not found in zone", f"Plant {data.target_id} not found in zone {data.zone_id}"
        elif data.target_id != data.zone_id:
            return "Zone target does not match zoneId", f"Zone target {data.target_id} is not zone {data.zone_id}"
        return None

    def _insert_task(self, garden_id: str, data: TaskFields, *, source_analysis_id: str | None = None) -> str:
        return self._tasks.create_task(
            garden_id=garden_id,
            zone_id=data.zone_id,
            target_type=data.target_type,
            target_id=data.target_id,
            action_type=data.action_type,
            priority=data.priority,
            label=data.label,
            suggested_date=data.suggested_date,
            context=data.context,
            recurrence=data.recurrence,
            photo_requested=bool(data.photo_requested),
            source_analysis_id=source_analysis_id,
        )

    def _record(self, actor: str, action: str, garden_id: str, result: ActionResult, **meta: Any) -> None:
        if self._audit is None:
            return
        # The mutation is already committed; an audit failure must not change its result
        try:
            self._audit.log_event(
                actor,
                action,
                f"garden:{garden_id}",
                result.status,
                summary=result.summary,
                details=result.details,
                error=result.error,
                **meta,
            )
        except Exception:
            logger.exception("Failed to write audit record for %s in garden %s", action, garden_id)


def _not_pending(action_type: str, task_id: str) -> ActionResult:
    return _failure(action_type, "Task not found or not pending", f"Task {task_id} not found or not pending")
