"""Action-tag parsing and execution through the ActionEngine."""

from __future__ import annotations

import json

from gardooner.schemas import validate_analysis_result
from gardooner.services.ai.chat_actions import ParsedAction, parse_actions

MISSING_TASK_ID = "00000000-0000-4000-8000-000000000000"


def _tag(action_type: str, payload) -> str:
    body = payload if isinstance(payload, str) else json.dumps(payload)
    return f'<garden_action type="{action_type}">{body}</garden_action>'


def _task_payload(zone_id: str, **overrides):
    payload = {
        "targetType": "zone",
        "targetId": zone_id,
        "zoneId": zone_id,
        "actionType": "water",
        "priority": "today",
        "label": "Water the bed",
        "suggestedDate": "2026-06-01",
    }
    payload.update(overrides)
    return payload


class TestParseActions:
    def test_tags_are_stripped_and_collected(self):
        text = (
            "I'll log that for you. "
            + _tag("create_care_log", {"targetType": "zone", "targetId": "z", "actionType": "water"})
            + " Anything else?"
        )
        clean, actions = parse_actions(text)
        assert "garden_action" not in clean
        assert clean.startswith("I'll log that for you.")
        assert clean.endswith("Anything else?")
        assert actions == [
            ParsedAction("create_care_log", {"targetType": "zone", "targetId": "z", "actionType": "water"})
        ]

    def test_malformed_payload_is_skipped_without_losing_others(self):
        text = _tag("cancel_task", "{not json") + "Done." + _tag("cancel_task", {"taskId": "abc"})
        clean, actions = parse_actions(text)
        assert clean == "Done."
        assert [a.payload for a in actions] == [{"taskId": "abc"}]

    def test_non_object_payload_is_skipped(self):
        _, actions = parse_actions(_tag("create_task", "[1, 2]"))
        assert actions == []

    def test_plain_reply_has_no_actions(self):
        assert parse_actions("  Just water in the morning.  ") == ("Just water in the morning.", [])

    def test_multiline_payload(self):
        _, actions = parse_actions('<garden_action type="cancel_task">\n{\n  "taskId": "t1"\n}\n</garden_action>')
        assert actions[0].payload == {"taskId": "t1"}


class TestCreateTask:
    def test_creates_pending_task(self, action_engine, seed, task_repo):
        user_id, garden_id, zone_id = seed.garden_with_zone()
        result = action_engine.execute_action(garden_id, user_id, ParsedAction("create_task", _task_payload(zone_id)))

        assert result.ok, result.error
        task = task_repo.get_task(result.details["taskId"])
        assert task["status"] == "pending"
        assert task["garden_id"] == garden_id
        assert task["label"] == "Water the bed"

    def test_plant_outside_zone_is_an_error(self, action_engine, seed, task_repo):
        user_id, garden_id, zone_id = seed.garden_with_zone()
        other_zone = seed.create_zone(garden_id, "Herb spiral")
        plant_id = seed.create_plant(other_zone, "Basil")

        result = action_engine.execute_action(
            garden_id,
            user_id,
            ParsedAction("create_task", _task_payload(zone_id, targetType="plant", targetId=plant_id)),
        )
        assert result.status == "error"
        assert task_repo.list_pending(garden_id=garden_id) == []

    def test_zone_from_another_garden_is_an_error(self, action_engine, seed):
        user_id, garden_id, _ = seed.garden_with_zone()
        _, _, foreign_zone = seed.garden_with_zone()

        result = action_engine.execute_action(garden_id, user_id, ParsedAction("create_task", _task_payload(foreign_zone)))
        assert result.status == "error"
        assert "not found" in result.summary.lower()

    def test_invalid_payload_is_an_error_result(self, action_engine, seed):
        user_id, garden_id, zone_id = seed.garden_with_zone()
        result = action_engine.execute_action(
            garden_id, user_id, ParsedAction("create_task", _task_payload(zone_id, label="x" * 61))
        )
        assert result.status == "error"
        assert result.error


class TestTaskTransitions:
    def test_complete_writes_one_care_log_and_links_it(self, action_engine, seed, task_repo):
        user_id, garden_id, zone_id = seed.garden_with_zone()
        task_id = seed.create_task(garden_id, zone_id)

        result = action_engine.execute_action(garden_id, user_id, ParsedAction("complete_task", {"taskId": task_id}))

        assert result.ok, result.error
        task = task_repo.get_task(task_id)
        assert task["status"] == "completed"
        assert task["completed_via"] == "ai_chat"
        care_log = task_repo.get_care_log(task["care_log_id"])
        assert care_log["target_id"] == zone_id
        assert care_log["notes"] == "Completed: Water the bed"
        assert task_repo.count_care_logs(zone_id) == 1

    def test_complete_on_closed_task_is_an_error_without_writes(self, action_engine, seed, task_repo):
        user_id, garden_id, zone_id = seed.garden_with_zone()
        task_id = seed.create_task(garden_id, zone_id)
        action_engine.execute_action(garden_id, user_id, ParsedAction("cancel_task", {"taskId": task_id}))

        result = action_engine.execute_action(garden_id, user_id, ParsedAction("complete_task", {"taskId": task_id}))

        assert result.status == "error"
        assert task_repo.get_task(task_id)["status"] == "cancelled"
        assert task_repo.count_care_logs(zone_id) == 0

    def test_second_cancel_is_an_error(self, action_engine, seed, task_repo):
        user_id, garden_id, zone_id = seed.garden_with_zone()
        task_id = seed.create_task(garden_id, zone_id)
        action = ParsedAction("cancel_task", {"taskId": task_id, "reason": "Rained"})

        first = action_engine.execute_action(garden_id, user_id, action)
        second = action_engine.execute_action(garden_id, user_id, action)

        assert first.status == "success"
        assert second.status == "error"
        assert task_repo.count_care_logs(zone_id) == 0

    def test_task_in_another_garden_is_not_touched(self, action_engine, seed, task_repo):
        user_id, garden_id, _ = seed.garden_with_zone()
        _, other_garden, other_zone = seed.garden_with_zone()
        task_id = seed.create_task(other_garden, other_zone)

        result = action_engine.execute_action(garden_id, user_id, ParsedAction("complete_task", {"taskId": task_id}))

        assert result.status == "error"
        assert task_repo.get_task(task_id)["status"] == "pending"


class TestCareLogsAndDispatch:
    def test_create_care_log_for_plant(self, action_engine, seed, task_repo):
        user_id, garden_id, zone_id = seed.garden_with_zone()
        plant_id = seed.create_plant(zone_id)

        result = action_engine.execute_action(
            garden_id,
            user_id,
            ParsedAction(
                "create_care_log",
                {"targetType": "plant", "targetId": plant_id, "actionType": "fertilize", "notes": "Fish emulsion"},
            ),
        )
        assert result.ok, result.error
        assert task_repo.get_care_log(result.details["careLogId"])["notes"] == "Fish emulsion"

    def test_unknown_type_is_an_error_result(self, action_engine, seed):
        user_id, garden_id, _ = seed.garden_with_zone()
        result = action_engine.execute_action(garden_id, user_id, ParsedAction("delete_garden", {}))
        assert result.status == "error"
        assert "delete_garden" in result.summary

    def test_unexpected_exception_becomes_error_result(self, garden_repo, seed, mock_audit_logger):
        from unittest.mock import MagicMock

        from gardooner.services.ai.chat_actions import ActionEngine

        tasks = MagicMock()
        tasks.cancel.side_effect = RuntimeError("disk full")
        engine = ActionEngine(garden_repo, tasks, mock_audit_logger)
        user_id, garden_id, _ = seed.garden_with_zone()

        result = engine.execute_action(garden_id, user_id, ParsedAction("cancel_task", {"taskId": MISSING_TASK_ID}))
        assert result.status == "error"
        assert result.error == "disk full"

    def test_audit_failure_keeps_the_result(self, garden_repo, task_repo, seed):
        from unittest.mock import MagicMock

        from gardooner.services.ai.chat_actions import ActionEngine

        audit = MagicMock()
        audit.log_event.side_effect = OSError("audit disk full")
        engine = ActionEngine(garden_repo, task_repo, audit)
        user_id, garden_id, zone_id = seed.garden_with_zone()
        action = ParsedAction("create_care_log", {"targetType": "zone", "targetId": zone_id, "actionType": "water"})

        result = engine.execute_action(garden_id, user_id, action)

        assert result.status == "success"
        assert task_repo.count_care_logs(zone_id) == 1
        audit.log_event.assert_called_once()

    def test_execute_all_continues_after_failures(self, action_engine, seed, mock_audit_logger):
        user_id, garden_id, zone_id = seed.garden_with_zone()
        actions = [
            ParsedAction("complete_task", {"taskId": MISSING_TASK_ID}),
            ParsedAction("create_task", _task_payload(zone_id)),
        ]
        results = action_engine.execute_all(garden_id, user_id, actions)

        assert [r.status for r in results] == ["error", "success"]
        assert mock_audit_logger.log_event.call_count == 2
        assert mock_audit_logger.log_event.call_args.args[0] == "ai_chat"


class TestAnalysisOperations:
    def _apply(self, engine, garden_id, zone_id, operations):
        result = validate_analysis_result({"operations": operations})
        return engine.apply_analysis_operations(garden_id, zone_id, "analysis-1", result.operations)

    def test_create_links_source_analysis(self, action_engine, seed, task_repo):
        _, garden_id, zone_id = seed.garden_with_zone()
        results = self._apply(action_engine, garden_id, zone_id, [{"op": "create", **_task_payload(zone_id)}])

        assert results[0].ok
        task = task_repo.get_task(results[0].details["taskId"])
        assert task["source_analysis_id"] == "analysis-1"

    def test_create_for_another_zone_is_rejected(self, action_engine, seed, task_repo):
        _, garden_id, zone_id = seed.garden_with_zone()
        sibling = seed.create_zone(garden_id, "Sibling")
        results = self._apply(action_engine, garden_id, zone_id, [{"op": "create", **_task_payload(sibling)}])

        assert results[0].status == "error"
        assert task_repo.list_pending(garden_id=garden_id) == []

    def test_update_complete_cancel(self, action_engine, seed, task_repo):
        _, garden_id, zone_id = seed.garden_with_zone()
        to_update = seed.create_task(garden_id, zone_id)
        to_complete = seed.create_task(garden_id, zone_id, label="Harvest beans", action_type="harvest")
        to_cancel = seed.create_task(garden_id, zone_id, label="Cover bed")

        results = self._apply(
            action_engine,
            garden_id,
            zone_id,
            [
                {"op": "update", "taskId": to_update, "priority": "urgent", "label": "Water now"},
                {"op": "complete", "taskId": to_complete, "reason": "Harvested yesterday"},
                {"op": "cancel", "taskId": to_cancel, "reason": "No frost expected"},
            ],
        )

        assert all(r.ok for r in results), [r.error for r in results]
        updated = task_repo.get_task(to_update)
        assert (updated["priority"], updated["label"]) == ("urgent", "Water now")
        completed = task_repo.get_task(to_complete)
        assert completed["completed_via"] == "ai"
        assert task_repo.get_care_log(completed["care_log_id"])["action_type"] == "harvest"
        assert task_repo.get_task(to_cancel)["status"] == "cancelled"

    def test_one_failure_does_not_stop_the_rest(self, action_engine, seed, task_repo):
        _, garden_id, zone_id = seed.garden_with_zone()
        task_id = seed.create_task(garden_id, zone_id)
        results = self._apply(
            action_engine,
            garden_id,
            zone_id,
            [{"op": "cancel", "taskId": MISSING_TASK_ID}, {"op": "cancel", "taskId": task_id}],
        )
        assert [r.status for r in results] == ["error", "success"]
