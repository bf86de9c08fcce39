from __future__ import annotations

import logging

from gardooner.utils.time import iso_now

logger = logging.getLogger(__name__)


class JobOperations:
    """Durable dedup keys for enqueued background jobs."""

    def claim_job_key(self, dedup_key: str, job_name: str) -> bool:
        """Record *dedup_key*; False when it was already claimed."""
        with self.connection() as db:
            cur = db.execute(
                "INSERT OR IGNORE INTO job_dedupe (dedup_key, job_name, created_at) VALUES (?, ?, ?)",
                (dedup_key, job_name, iso_now()),
            )
        claimed = cur.rowcount == 1
        if not claimed:
            logger.debug("Job key %s already claimed", dedup_key)
        return claimed

    def release_job_key(self, dedup_key: str) -> None:
        with self.connection() as db:
            db.execute("DELETE FROM job_dedupe WHERE dedup_key = ?", (dedup_key,))

    def prune_job_keys(self, older_than: str) -> int:
        with self.connection() as db:
            cur = db.execute("DELETE FROM job_dedupe WHERE created_at < ?", (older_than,))
        return cur.rowcount
