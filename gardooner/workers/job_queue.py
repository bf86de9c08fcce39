"""
Job queue used by the analysis fan-out.

Handlers receive a batch of jobs of one kind and process them sequentially.
``InProcessJobQueue`` gives at-least-once delivery inside one process: a
handler that raises gets its whole batch re-queued until each job's
``retry_limit`` is spent. Singleton keys suppress duplicate enqueues; with a
store attached they are claimed only in the ``job_dedupe`` table, so duplicates
are rejected across restarts and the table's pruning bounds them. Without a
store, keys are kept in memory for ``key_retention``. Permanently failed jobs
are kept up to ``max_failed``.
"""
from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from gardooner.utils.time import iso_now, to_iso, utc_now

if TYPE_CHECKING:
    from infrastructure.database.ops.jobs import JobOperations

logger = logging.getLogger(__name__)

# Bounds for a long-lived queue without a store
KEY_RETENTION = timedelta(days=7)
MAX_FAILED_JOBS = 500


@dataclass
class Job:
    """One queued unit of work."""

    id: str
    name: str
    data: dict[str, Any]
    singleton_key: str | None = None
    retry_limit: int = 0
    retry_count: int = 0
    created_at: str = field(default_factory=iso_now)


JobHandler = Callable[[list[Job]], None]


@runtime_checkable
class JobQueue(Protocol):
    def send(
        self,
        name: str,
        payload: dict[str, Any] | None = None,
        *,
        singleton_key: str | None = None,
        retry_limit: int = 0,
    ) -> str | None: ...

    def work(self, name: str, handler: JobHandler) -> None: ...


class InProcessJobQueue:
    """Thread-safe FIFO queue with batch dispatch, retries and singleton keys."""

    def __init__(
        self,
        store: "JobOperations | None" = None,
        *,
        batch_size: int = 10,
        key_retention: timedelta = KEY_RETENTION,
        max_failed: int = MAX_FAILED_JOBS,
    ):
        self._store = store
        self._batch_size = max(1, int(batch_size))
        self._pending: deque[Job] = deque()
        self._handlers: dict[str, JobHandler] = {}
        self._key_retention = key_retention
        # singleton key -> claimed at; only used when there is no store
        self._seen_keys: OrderedDict[str, str] = OrderedDict()
        self._failed: deque[Job] = deque(maxlen=max(1, int(max_failed)))
        self._lock = threading.RLock()
        self._drain_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------
    def send(
        self,
        name: str,
        payload: dict[str, Any] | None = None,
        *,
        singleton_key: str | None = None,
        retry_limit: int = 0,
    ) -> str | None:
        """Enqueue a job; returns its id, or None when *singleton_key* was already used."""
        with self._lock:
            if singleton_key and not self._claim(singleton_key, name):
                logger.info("Skipping duplicate %s job (%s)", name, singleton_key)
                return None
            job = Job(
                id=str(uuid.uuid4()),
                name=name,
                data=dict(payload or {}),
                singleton_key=singleton_key,
                retry_limit=max(0, int(retry_limit)),
            )
            self._pending.append(job)
        logger.debug("Queued %s job %s", name, job.id)
        return job.id

    def _claim(self, singleton_key: str, name: str) -> bool:
        if self._store is not None:
            return self._store.claim_job_key(singleton_key, name)
        self._forget_stale_keys()
        if singleton_key in self._seen_keys:
            return False
        self._seen_keys[singleton_key] = to_iso(utc_now())
        return True

    def _forget_stale_keys(self) -> None:
        cutoff = to_iso(utc_now() - self._key_retention)
        while self._seen_keys:
            key, claimed_at = next(iter(self._seen_keys.items()))
            if claimed_at >= cutoff:
                break
            del self._seen_keys[key]

    def known_keys(self) -> list[str]:
        """Singleton keys held in memory (empty when a store owns dedup)."""
        with self._lock:
            self._forget_stale_keys()
            return list(self._seen_keys)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------
    def work(self, name: str, handler: JobHandler) -> None:
        """Register the batch handler for jobs called *name*."""
        with self._lock:
            self._handlers[name] = handler
        logger.debug("Registered handler for %s", name)

    def _next_batch(self) -> list[Job]:
        with self._lock:
            if not self._pending:
                return []
            name = self._pending[0].name
            batch: list[Job] = []
            remaining: deque[Job] = deque()
            while self._pending:
                job = self._pending.popleft()
                if job.name == name and len(batch) < self._batch_size:
                    batch.append(job)
                else:
                    remaining.append(job)
            self._pending = remaining
            return batch

    def _dispatch(self, batch: list[Job]) -> None:
        name = batch[0].name
        handler = self._handlers.get(name)
        if handler is None:
            logger.error("No handler registered for %s; dropping %d job(s)", name, len(batch))
            with self._lock:
                self._failed.extend(batch)
            return

        try:
            handler(batch)
        except Exception as exc:
            logger.error("Handler for %s failed on a batch of %d: %s", name, len(batch), exc, exc_info=True)
            with self._lock:
                for job in batch:
                    if job.retry_count < job.retry_limit:
                        job.retry_count += 1
                        self._pending.append(job)
                        logger.info("Retrying %s job %s (%d/%d)", name, job.id, job.retry_count, job.retry_limit)
                    else:
                        self._failed.append(job)
                        logger.warning("Giving up on %s job %s after %d retries", name, job.id, job.retry_count)

    def drain(self) -> int:
        """Process batches until the queue is empty; returns the number of batches dispatched."""
        dispatched = 0
        with self._drain_lock:
            while True:
                batch = self._next_batch()
                if not batch:
                    break
                self._dispatch(batch)
                dispatched += 1
        if dispatched:
            logger.debug("Drained %d batch(es)", dispatched)
        return dispatched

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def pending(self, name: str | None = None) -> list[Job]:
        with self._lock:
            return [job for job in self._pending if name is None or job.name == name]

    @property
    def failed(self) -> list[Job]:
        with self._lock:
            return list(self._failed)
