"""InProcessJobQueue batching, retries and singleton keys."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

from gardooner.workers import job_queue
from gardooner.workers.job_queue import InProcessJobQueue, JobQueue


class TestSend:
    def test_send_returns_job_id_and_queues_payload(self):
        queue = InProcessJobQueue()
        job_id = queue.send("analyze-garden", {"garden_id": "g1"}, retry_limit=2)

        pending = queue.pending()
        assert job_id == pending[0].id
        assert pending[0].data == {"garden_id": "g1"}
        assert pending[0].retry_limit == 2

    def test_duplicate_singleton_key_is_rejected(self):
        queue = InProcessJobQueue()
        assert queue.send("analyze-garden", {"garden_id": "g1"}, singleton_key="k1")
        assert queue.send("analyze-garden", {"garden_id": "g1"}, singleton_key="k1") is None
        assert len(queue.pending()) == 1

    def test_keys_survive_a_new_queue_with_the_same_store(self, db_handler):
        InProcessJobQueue(store=db_handler).send("analyze-garden", singleton_key="analyze-garden:g1:2026-06-01")
        restarted = InProcessJobQueue(store=db_handler)
        assert restarted.send("analyze-garden", singleton_key="analyze-garden:g1:2026-06-01") is None

    def test_satisfies_protocol(self):
        assert isinstance(InProcessJobQueue(), JobQueue)


class TestDrain:
    def test_batches_group_jobs_of_one_kind(self):
        queue = InProcessJobQueue(batch_size=2)
        handler = MagicMock()
        queue.work("analyze-zone", handler)
        for zone in ("z1", "z2", "z3"):
            queue.send("analyze-zone", {"zone_id": zone})

        assert queue.drain() == 2
        sizes = [len(call.args[0]) for call in handler.call_args_list]
        assert sizes == [2, 1]

    def test_jobs_sent_by_handlers_are_processed_in_the_same_drain(self):
        queue = InProcessJobQueue()
        seen = []
        queue.work("parent", lambda jobs: [queue.send("child", {"n": i}) for i in range(3)])
        queue.work("child", lambda jobs: seen.extend(job.data["n"] for job in jobs))
        queue.send("parent")

        queue.drain()

        assert sorted(seen) == [0, 1, 2]
        assert queue.pending() == []

    def test_failed_batch_is_retried_until_limit(self):
        queue = InProcessJobQueue()
        handler = MagicMock(side_effect=RuntimeError("boom"))
        queue.work("analyze-garden", handler)
        queue.send("analyze-garden", {"garden_id": "g1"}, retry_limit=2)

        queue.drain()

        assert handler.call_count == 3
        assert [job.retry_count for job in queue.failed] == [2]

    def test_retry_then_success(self):
        queue = InProcessJobQueue()
        handler = MagicMock(side_effect=[RuntimeError("flaky"), None])
        queue.work("analyze-garden", handler)
        queue.send("analyze-garden", retry_limit=1)

        queue.drain()

        assert handler.call_count == 2
        assert queue.failed == []

    def test_job_without_handler_fails(self):
        queue = InProcessJobQueue()
        queue.send("unknown")
        assert queue.drain() == 1
        assert [job.name for job in queue.failed] == ["unknown"]

    def test_empty_drain(self):
        assert InProcessJobQueue().drain() == 0


class TestLongLivedQueue:
    """Dedup keys and failures stay bounded over many daily runs."""

    def test_store_owns_keys_and_pruning_releases_them(self, db_handler):
        queue = InProcessJobQueue(store=db_handler)
        for i in range(50):
            queue.send("analyze-zone", singleton_key=f"analyze-zone:g1:z{i}:2020-01-01")
        queue.drain()

        assert queue.known_keys() == []
        assert db_handler.prune_job_keys("2999-01-01T00:00:00+00:00") == 50
        assert queue.send("analyze-zone", singleton_key="analyze-zone:g1:z0:2020-01-01")

    def test_in_memory_keys_expire(self, monkeypatch):
        queue = InProcessJobQueue()
        monkeypatch.setattr(job_queue, "utc_now", lambda: datetime(2026, 6, 1, 6, 0, tzinfo=timezone.utc))
        for i in range(50):
            queue.send("analyze-zone", singleton_key=f"analyze-zone:g1:z{i}:2026-06-01")
        assert len(queue.known_keys()) == 50

        monkeypatch.setattr(job_queue, "utc_now", lambda: datetime(2026, 6, 9, 6, 0, tzinfo=timezone.utc))
        assert queue.send("analyze-zone", singleton_key="analyze-zone:g1:z0:2026-06-09")
        assert queue.known_keys() == ["analyze-zone:g1:z0:2026-06-09"]

    def test_failed_jobs_are_capped(self):
        queue = InProcessJobQueue(max_failed=3)
        for i in range(5):
            queue.send("unknown", {"n": i})
        queue.drain()

        assert [job.data["n"] for job in queue.failed] == [2, 3, 4]
