from __future__ import annotations

import logging
import sqlite3
from typing import Any, Sequence

from gardooner.utils.time import iso_now
from infrastructure.database.utils import new_id, placeholders, row_to_dict, rows_to_dicts

logger = logging.getLogger(__name__)

_TASK_BOOLS = ("photo_requested", "snoozed")

# Columns an "update" operation may patch on a pending task
TASK_MUTABLE_COLUMNS = frozenset(
    {"suggested_date", "priority", "label", "context", "recurrence", "photo_requested"}
)


class CareOperations:
    """
    Tasks and care logs.

    Terminal task transitions are guarded with ``status = 'pending'`` in the
    UPDATE itself, so a task can leave PENDING exactly once even with several
    writers. Completion writes its care log in the same transaction.
    """

    # --- Care logs ---------------------------------------------------------------
    @staticmethod
    def _insert_care_log_row(
        db: sqlite3.Connection,
        target_type: str,
        target_id: str,
        action_type: str,
        notes: str | None,
        photo_url: str | None,
        logged_at: str | None,
    ) -> str:
        care_log_id = new_id()
        db.execute(
            """
            INSERT INTO care_logs (id, target_type, target_id, action_type, notes, photo_url, logged_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (care_log_id, target_type, target_id, action_type, notes, photo_url, logged_at or iso_now()),
        )
        return care_log_id

    def insert_care_log(
        self,
        target_type: str,
        target_id: str,
        action_type: str,
        *,
        notes: str | None = None,
        photo_url: str | None = None,
        logged_at: str | None = None,
    ) -> str:
        try:
            with self.connection() as db:
                return self._insert_care_log_row(db, target_type, target_id, action_type, notes, photo_url, logged_at)
        except sqlite3.Error as exc:
            logger.error("Error inserting care log for %s %s: %s", target_type, target_id, exc)
            raise

    def get_care_log(self, care_log_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute("SELECT * FROM care_logs WHERE id = ?", (care_log_id,)).fetchone()
        return row_to_dict(row)

    def list_care_logs(self, target_ids: Sequence[str], since: str, *, limit: int | None = None) -> list[dict[str, Any]]:
        """Care logs for any of *target_ids* logged at or after *since*, newest first."""
        if not target_ids:
            return []
        query = (
            f"SELECT * FROM care_logs WHERE target_id IN ({placeholders(target_ids)}) "
            "AND logged_at >= ? ORDER BY logged_at DESC"
        )
        params: list[Any] = [*target_ids, since]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return rows_to_dicts(self.get_db().execute(query, params).fetchall())

    def count_care_logs_for_target(self, target_id: str) -> int:
        row = self.get_db().execute("SELECT COUNT(*) FROM care_logs WHERE target_id = ?", (target_id,)).fetchone()
        return int(row[0])

    # --- Tasks -------------------------------------------------------------------
    def insert_task(
        self,
        *,
        garden_id: str,
        zone_id: str,
        target_type: str,
        target_id: str,
        action_type: str,
        priority: str,
        label: str,
        suggested_date: str,
        context: str | None = None,
        recurrence: str | None = None,
        photo_requested: bool = False,
        source_analysis_id: str | None = None,
    ) -> str:
        task_id = new_id()
        now = iso_now()
        try:
            with self.connection() as db:
                db.execute(
                    """
                    INSERT INTO tasks (
                        id, garden_id, zone_id, target_type, target_id, action_type, priority,
                        status, label, suggested_date, context, recurrence, photo_requested,
                        source_analysis_id, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task_id,
                        garden_id,
                        zone_id,
                        target_type,
                        target_id,
                        action_type,
                        priority,
                        label,
                        suggested_date,
                        context,
                        recurrence,
                        int(bool(photo_requested)),
                        source_analysis_id,
                        now,
                        now,
                    ),
                )
        except sqlite3.Error as exc:
            logger.error("Error inserting task %r: %s", label, exc)
            raise
        return task_id

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return row_to_dict(row, bools=_TASK_BOOLS)

    @staticmethod
    def _pending_task_query(task_id: str, garden_id: str | None, zone_id: str | None) -> tuple[str, list[Any]]:
        conditions = ["id = ?", "status = 'pending'"]
        params: list[Any] = [task_id]
        if garden_id is not None:
            conditions.append("garden_id = ?")
            params.append(garden_id)
        if zone_id is not None:
            conditions.append("zone_id = ?")
            params.append(zone_id)
        return " AND ".join(conditions), params

    def find_pending_task(
        self,
        task_id: str,
        *,
        garden_id: str | None = None,
        zone_id: str | None = None,
    ) -> dict[str, Any] | None:
        where, params = self._pending_task_query(task_id, garden_id, zone_id)
        row = self.get_db().execute(f"SELECT * FROM tasks WHERE {where}", params).fetchone()
        return row_to_dict(row, bools=_TASK_BOOLS)

    def list_tasks(
        self,
        *,
        garden_id: str | None = None,
        zone_id: str | None = None,
        statuses: Sequence[str] = ("pending",),
        resolved_since: str | None = None,
    ) -> list[dict[str, Any]]:
        conditions = [f"status IN ({placeholders(statuses)})"]
        params: list[Any] = list(statuses)
        if garden_id is not None:
            conditions.append("garden_id = ?")
            params.append(garden_id)
        if zone_id is not None:
            conditions.append("zone_id = ?")
            params.append(zone_id)
        if resolved_since is not None:
            conditions.append("completed_at >= ?")
            params.append(resolved_since)
        query = "SELECT * FROM tasks WHERE " + " AND ".join(conditions) + " ORDER BY suggested_date, created_at"
        return rows_to_dicts(self.get_db().execute(query, params).fetchall(), bools=_TASK_BOOLS)

    def update_pending_task(
        self,
        task_id: str,
        changes: dict[str, Any],
        *,
        zone_id: str | None = None,
        source_analysis_id: str | None = None,
    ) -> bool:
        """Patch mutable columns of a pending task. False when it is not pending."""
        unknown = set(changes) - TASK_MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable: {sorted(unknown)}")
        assignments = [f"{column} = ?" for column in changes]
        values: list[Any] = [int(v) if column == "photo_requested" else v for column, v in changes.items()]
        assignments.append("updated_at = ?")
        values.append(iso_now())
        if source_analysis_id is not None:
            assignments.append("source_analysis_id = ?")
            values.append(source_analysis_id)
        where, params = self._pending_task_query(task_id, None, zone_id)
        with self.connection() as db:
            cur = db.execute(f"UPDATE tasks SET {', '.join(assignments)} WHERE {where}", [*values, *params])
        return cur.rowcount == 1

    def complete_pending_task(
        self,
        task_id: str,
        *,
        completed_via: str,
        notes: str | None = None,
        reason: str | None = None,
        garden_id: str | None = None,
        zone_id: str | None = None,
        source_analysis_id: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Complete a pending task and record its care log atomically.

        Returns the updated task (with ``care_log_id``) or None when the task
        does not exist in scope or is no longer pending. In the None case no
        row is written.
        """
        where, params = self._pending_task_query(task_id, garden_id, zone_id)
        with self.transaction() as db:
            row = db.execute(f"SELECT * FROM tasks WHERE {where}", params).fetchone()
            if row is None:
                return None
            care_log_id = self._insert_care_log_row(
                db,
                row["target_type"],
                row["target_id"],
                row["action_type"],
                notes if notes is not None else f"Completed: {row['label']}",
                None,
                None,
            )
            now = iso_now()
            cur = db.execute(
                f"""
                UPDATE tasks
                SET status = 'completed', completed_at = ?, completed_via = ?, care_log_id = ?,
                    context = COALESCE(?, context), updated_at = ?,
                    source_analysis_id = COALESCE(?, source_analysis_id)
                WHERE {where}
                """,
                [now, completed_via, care_log_id, reason, now, source_analysis_id, *params],
            )
            if cur.rowcount != 1:
                raise sqlite3.IntegrityError(f"Task {task_id} left pending state during completion")
            updated = db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return row_to_dict(updated, bools=_TASK_BOOLS)

    def cancel_pending_task(
        self,
        task_id: str,
        *,
        completed_via: str,
        reason: str | None = None,
        garden_id: str | None = None,
        zone_id: str | None = None,
        source_analysis_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Cancel a pending task (no care log). None when not pending in scope."""
        where, params = self._pending_task_query(task_id, garden_id, zone_id)
        now = iso_now()
        with self.transaction() as db:
            cur = db.execute(
                f"""
                UPDATE tasks
                SET status = 'cancelled', completed_at = ?, completed_via = ?,
                    context = COALESCE(?, context), updated_at = ?,
                    source_analysis_id = COALESCE(?, source_analysis_id)
                WHERE {where}
                """,
                [now, completed_via, reason, now, source_analysis_id, *params],
            )
            if cur.rowcount != 1:
                return None
            updated = db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return row_to_dict(updated, bools=_TASK_BOOLS)

    def snooze_pending_task(self, task_id: str, garden_id: str, suggested_date: str) -> bool:
        with self.connection() as db:
            cur = db.execute(
                """
                UPDATE tasks SET suggested_date = ?, snoozed = 1, updated_at = ?
                WHERE id = ? AND garden_id = ? AND status = 'pending'
                """,
                (suggested_date, iso_now(), task_id, garden_id),
            )
        return cur.rowcount == 1
