import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from infrastructure.database.ops.accounts import AccountOperations
from infrastructure.database.ops.analysis import AnalysisOperations
from infrastructure.database.ops.care import CareOperations
from infrastructure.database.ops.conversations import ConversationOperations
from infrastructure.database.ops.gardens import GardenOperations
from infrastructure.database.ops.jobs import JobOperations

logger = logging.getLogger(__name__)


class SQLiteDatabaseHandler(
    AccountOperations,
    GardenOperations,
    CareOperations,
    AnalysisOperations,
    ConversationOperations,
    JobOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals."""

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()

        if database_path != ":memory:":
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", db_path.parent)

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask | None = None) -> None:
        # An in-memory database lives only as long as its connection
        if app is not None and self._database_path != ":memory:":
            app.teardown_appcontext(self.close_db)
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._open_connection()
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """WAL for concurrent readers; foreign keys so zone/garden deletes cascade."""
        if self._database_path != ":memory:":
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute("PRAGMA synchronous=NORMAL")
            connection.execute("PRAGMA busy_timeout=5000")
        connection.execute("PRAGMA foreign_keys=ON")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        else:
            conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Explicit write transaction: every statement inside commits or none do."""
        conn = self.get_db()
        if conn.in_transaction:
            conn.commit()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        try:
            with self.connection() as db:
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                        id TEXT PRIMARY KEY,
                        email TEXT UNIQUE,
                        name TEXT,
                        settings TEXT,
                        created_at TEXT NOT NULL
                    )
                    """
                )
                # Ciphertext only; decryption is delegated to the key store collaborator
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS api_keys (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        provider TEXT NOT NULL CHECK (provider IN ('claude', 'kimi')),
                        encrypted_key TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        UNIQUE (user_id, provider),
                        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS gardens (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        location_lat REAL,
                        location_lng REAL,
                        hardiness_zone TEXT,
                        created_at TEXT NOT NULL,
                        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS zones (
                        id TEXT PRIMARY KEY,
                        garden_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        zone_type TEXT,
                        dimensions TEXT,
                        soil_type TEXT,
                        sun_exposure TEXT,
                        notes TEXT,
                        created_at TEXT NOT NULL,
                        FOREIGN KEY (garden_id) REFERENCES gardens(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS plants (
                        id TEXT PRIMARY KEY,
                        zone_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        variety TEXT,
                        date_planted TEXT,
                        growth_stage TEXT,
                        care_profile TEXT,
                        created_at TEXT NOT NULL,
                        FOREIGN KEY (zone_id) REFERENCES zones(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS sensors (
                        id TEXT PRIMARY KEY,
                        zone_id TEXT NOT NULL,
                        ha_entity_id TEXT NOT NULL,
                        sensor_type TEXT NOT NULL,
                        FOREIGN KEY (zone_id) REFERENCES zones(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS sensor_readings (
                        id TEXT PRIMARY KEY,
                        sensor_id TEXT NOT NULL,
                        value REAL NOT NULL,
                        unit TEXT NOT NULL,
                        recorded_at TEXT NOT NULL,
                        FOREIGN KEY (sensor_id) REFERENCES sensors(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS care_logs (
                        id TEXT PRIMARY KEY,
                        target_type TEXT NOT NULL CHECK (target_type IN ('zone', 'plant')),
                        target_id TEXT NOT NULL,
                        action_type TEXT NOT NULL,
                        notes TEXT,
                        photo_url TEXT,
                        logged_at TEXT NOT NULL
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS analysis_results (
                        id TEXT PRIMARY KEY,
                        garden_id TEXT NOT NULL,
                        scope TEXT NOT NULL CHECK (scope IN ('zone', 'plant', 'garden')),
                        target_id TEXT,
                        result TEXT NOT NULL,
                        model_used TEXT,
                        tokens_used TEXT,
                        generated_at TEXT NOT NULL,
                        FOREIGN KEY (garden_id) REFERENCES gardens(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS tasks (
                        id TEXT PRIMARY KEY,
                        garden_id TEXT NOT NULL,
                        zone_id TEXT NOT NULL,
                        target_type TEXT NOT NULL CHECK (target_type IN ('zone', 'plant')),
                        target_id TEXT NOT NULL,
                        action_type TEXT NOT NULL,
                        priority TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'pending'
                            CHECK (status IN ('pending', 'completed', 'cancelled')),
                        label TEXT NOT NULL,
                        suggested_date TEXT NOT NULL,
                        context TEXT,
                        recurrence TEXT,
                        photo_requested INTEGER NOT NULL DEFAULT 0,
                        snoozed INTEGER NOT NULL DEFAULT 0,
                        completed_at TEXT,
                        completed_via TEXT,
                        care_log_id TEXT,
                        source_analysis_id TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        FOREIGN KEY (garden_id) REFERENCES gardens(id) ON DELETE CASCADE,
                        FOREIGN KEY (zone_id) REFERENCES zones(id) ON DELETE CASCADE,
                        FOREIGN KEY (care_log_id) REFERENCES care_logs(id),
                        FOREIGN KEY (source_analysis_id) REFERENCES analysis_results(id)
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS weather_cache (
                        id TEXT PRIMARY KEY,
                        garden_id TEXT NOT NULL,
                        forecast TEXT NOT NULL,
                        fetched_at TEXT NOT NULL,
                        FOREIGN KEY (garden_id) REFERENCES gardens(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS conversations (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        garden_id TEXT NOT NULL,
                        title TEXT NOT NULL,
                        messages TEXT NOT NULL DEFAULT '[]',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                        FOREIGN KEY (garden_id) REFERENCES gardens(id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS job_dedupe (
                        dedup_key TEXT PRIMARY KEY,
                        job_name TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    """
                )

                db.execute("CREATE INDEX IF NOT EXISTS idx_zones_garden ON zones(garden_id)")
                db.execute("CREATE INDEX IF NOT EXISTS idx_plants_zone ON plants(zone_id)")
                db.execute("CREATE INDEX IF NOT EXISTS idx_sensors_zone ON sensors(zone_id)")
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_sensor_readings_sensor_time "
                    "ON sensor_readings(sensor_id, recorded_at)"
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_care_logs_target_time ON care_logs(target_id, logged_at DESC)"
                )
                db.execute("CREATE INDEX IF NOT EXISTS idx_tasks_garden_status ON tasks(garden_id, status)")
                db.execute("CREATE INDEX IF NOT EXISTS idx_tasks_zone_status ON tasks(zone_id, status)")
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_analysis_garden_time "
                    "ON analysis_results(garden_id, generated_at DESC)"
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_weather_garden_time ON weather_cache(garden_id, fetched_at DESC)"
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_conversations_user_garden "
                    "ON conversations(user_id, garden_id, updated_at DESC)"
                )
        except sqlite3.Error as exc:
            logger.error("Error creating tables: %s", exc)
            raise
