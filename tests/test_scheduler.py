"""AnalysisScheduler timing and manual runs."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

from gardooner.workers.daily_analysis import TRIGGER_JOB
from gardooner.workers.job_queue import InProcessJobQueue
from gardooner.workers.scheduler import AnalysisScheduler, next_daily_run


class TestNextDailyRun:
    def test_later_today(self):
        now = datetime(2026, 6, 1, 5, 30, tzinfo=timezone.utc)
        assert next_daily_run("06:00", now) == datetime(2026, 6, 1, 6, 0, tzinfo=timezone.utc)

    def test_already_passed_rolls_to_tomorrow(self):
        now = datetime(2026, 6, 1, 6, 0, 1, tzinfo=timezone.utc)
        assert next_daily_run("06:00", now) == datetime(2026, 6, 2, 6, 0, tzinfo=timezone.utc)

    def test_exact_time_is_not_now(self):
        now = datetime(2026, 12, 31, 23, 45, tzinfo=timezone.utc)
        assert next_daily_run("23:45", now) == datetime(2027, 1, 1, 23, 45, tzinfo=timezone.utc)


class TestAnalysisScheduler:
    def test_run_now_sends_trigger_and_drains(self):
        queue = InProcessJobQueue()
        trigger = MagicMock()
        queue.work(TRIGGER_JOB, trigger)
        scheduler = AnalysisScheduler(queue)

        assert scheduler.run_now() == 1
        trigger.assert_called_once()
        status = scheduler.get_status()
        assert status["run_count"] == 1
        assert status["last_run"] is not None
        assert status["pending_jobs"] == 0

    def test_start_and_stop(self):
        scheduler = AnalysisScheduler(InProcessJobQueue(), "06:00", check_interval_seconds=0.01)
        scheduler.start()
        try:
            assert scheduler.is_running()
            assert scheduler.get_status()["next_run"] is not None
        finally:
            scheduler.shutdown()
        assert not scheduler.is_running()

    def test_stop_when_not_running_is_a_noop(self):
        scheduler = AnalysisScheduler(InProcessJobQueue())
        scheduler.stop()
        assert scheduler.get_status()["running"] is False


def test_cli_parser():
    from gardooner.workers.scheduler_cli import build_parser

    args = build_parser().parse_args(["--run-now", "--time", "04:30"])
    assert args.run_now is True
    assert args.time_of_day == "04:30"
    assert build_parser().parse_args([]).time_of_day is None


def test_container_run_now_processes_gardens(container, api_seed, fake_claude_client):
    api_seed.garden_with_zone(claude_key="sk-ant")

    container.scheduler.run_now()

    assert fake_claude_client.messages.create.call_count == 1
    assert container.job_queue.failed == []
    assert container.status()["scheduler"]["run_count"] == 1
