"""
Tasks API Blueprint
===================

Pending garden tasks and the analyses that produced them.

Endpoints:
- GET /api/tasks/gardens/<garden_id> - Pending tasks for a garden
- GET /api/tasks/gardens/<garden_id>/analysis - Latest stored analysis results
- POST /api/tasks/<task_id>/complete - Mark done (writes a care log)
- POST /api/tasks/<task_id>/dismiss - Cancel without a care log
- POST /api/tasks/<task_id>/snooze - Move the suggested date
"""

from __future__ import annotations

from flask import Blueprint, Response, request

from gardooner.blueprints.api._common import get_task_service, get_user_id, parse_body, success
from gardooner.schemas import CompleteTaskRequest, DismissTaskRequest, SnoozeTaskRequest
from gardooner.utils.http import safe_route

tasks_api = Blueprint("tasks_api", __name__)

MAX_ANALYSIS_LIMIT = 50


@tasks_api.route("/gardens/<garden_id>", methods=["GET"])
@safe_route("Failed to list tasks")
def list_tasks(garden_id: str) -> Response:
    tasks = get_task_service().list_pending(garden_id, get_user_id())
    return success({"tasks": tasks, "count": len(tasks)})


@tasks_api.route("/gardens/<garden_id>/analysis", methods=["GET"])
@safe_route("Failed to load analysis results")
def latest_analysis(garden_id: str) -> Response:
    """
    Query params:
    - limit: number of results, newest first (default 10, max 50)
    """
    limit = min(max(request.args.get("limit", 10, type=int) or 10, 1), MAX_ANALYSIS_LIMIT)
    results = get_task_service().latest_analysis(garden_id, get_user_id(), limit)
    return success({"results": results, "count": len(results)})


@tasks_api.route("/<task_id>/complete", methods=["POST"])
@safe_route("Failed to complete task")
def complete_task(task_id: str) -> Response:
    """
    Request body:
    {
        "garden_id": "...",
        "notes": "Watered deeply"   (optional)
    }
    """
    user_id = get_user_id()
    body = parse_body(CompleteTaskRequest)
    task = get_task_service().complete(task_id, body.garden_id, user_id, body.notes)
    return success(task, message="Task completed")


@tasks_api.route("/<task_id>/dismiss", methods=["POST"])
@safe_route("Failed to dismiss task")
def dismiss_task(task_id: str) -> Response:
    user_id = get_user_id()
    body = parse_body(DismissTaskRequest)
    return success(get_task_service().dismiss(task_id, body.garden_id, user_id), message="Task dismissed")


@tasks_api.route("/<task_id>/snooze", methods=["POST"])
@safe_route("Failed to snooze task")
def snooze_task(task_id: str) -> Response:
    """
    Request body:
    {
        "garden_id": "...",
        "suggested_date": "2026-05-01"
    }
    """
    user_id = get_user_id()
    body = parse_body(SnoozeTaskRequest)
    task = get_task_service().snooze(task_id, body.garden_id, user_id, body.suggested_date)
    return success(task, message="Task snoozed")
