"""
Shared test fixtures for the Gardooner test suite.

Provides:
- In-memory SQLite database with all tables created
- Repository instances wired to the test database
- Fake LLM SDK clients built from MagicMock
- A recording job queue
- Helper utilities for seeding test data

Usage:
    def test_example(seed, task_repo):
        _, garden_id, zone_id = seed.garden_with_zone()
        assert task_repo.list_pending(zone_id=zone_id) == []
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from gardooner.config import AppConfig
from gardooner.enums import ProviderName
from gardooner.services.ai.chat_actions import ActionEngine
from gardooner.services.ai.provider import create_provider
from gardooner.services.application.context_builder import ZoneContextBuilder
from infrastructure.database.repositories import (
    AccountRepository,
    AnalysisRepository,
    ConversationRepository,
    GardenRepository,
    TaskRepository,
)
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("gardooner").setLevel(logging.WARNING)


# ========================== Config ==========================================


@pytest.fixture()
def app_config(tmp_path):
    """AppConfig pointing every file at a temp dir."""
    return AppConfig(
        environment="testing",
        database_path=":memory:",
        audit_log_path=str(tmp_path / "audit.log"),
        log_dir=str(tmp_path / "logs"),
        job_retry_limit=1,
    )


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database, no cross-test contamination.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close_db()


# ========================== Repository Fixtures ============================


@pytest.fixture()
def account_repo(db_handler):
    return AccountRepository(db_handler)


@pytest.fixture()
def garden_repo(db_handler):
    return GardenRepository(db_handler)


@pytest.fixture()
def task_repo(db_handler):
    return TaskRepository(db_handler)


@pytest.fixture()
def analysis_repo(db_handler):
    return AnalysisRepository(db_handler)


@pytest.fixture()
def conversation_repo(db_handler):
    return ConversationRepository(db_handler)


# ========================== Service Fixtures ================================


@pytest.fixture()
def mock_audit_logger():
    """Mock AuditLogger."""
    audit = MagicMock()
    audit.log_event = MagicMock()
    return audit


@pytest.fixture()
def action_engine(garden_repo, task_repo, mock_audit_logger):
    return ActionEngine(garden_repo, task_repo, mock_audit_logger)


@pytest.fixture()
def context_builder(garden_repo, task_repo, app_config):
    return ZoneContextBuilder(garden_repo, task_repo, app_config)


# ========================== Fake LLM clients ================================


def claude_response(text: str | None, usage: Any = None) -> SimpleNamespace:
    """Shape of an ``anthropic`` Messages response."""
    content = [] if text is None else [SimpleNamespace(type="text", text=text)]
    return SimpleNamespace(content=content, usage=usage)


def kimi_response(text: str | None, usage: Any = None) -> SimpleNamespace:
    """Shape of an ``openai`` chat completion."""
    choices = [SimpleNamespace(message=SimpleNamespace(content=text))]
    return SimpleNamespace(choices=choices, usage=usage)


@pytest.fixture()
def fake_claude_client():
    """MagicMock standing in for ``anthropic.Anthropic``; set ``messages.create.return_value``."""
    client = MagicMock()
    client.messages.create.return_value = claude_response(
        json.dumps({"operations": []}),
        SimpleNamespace(input_tokens=10, output_tokens=5),
    )
    return client


@pytest.fixture()
def fake_kimi_client():
    """MagicMock standing in for ``openai.OpenAI``."""
    client = MagicMock()
    client.chat.completions.create.return_value = kimi_response(
        json.dumps({"operations": []}),
        SimpleNamespace(prompt_tokens=7, completion_tokens=3),
    )
    return client


@pytest.fixture()
def provider_factory(app_config, fake_claude_client, fake_kimi_client):
    """``variant -> AIProvider`` using the fake SDK clients."""

    def factory(variant: ProviderName):
        client = fake_claude_client if ProviderName(variant) is ProviderName.CLAUDE else fake_kimi_client
        return create_provider(variant, app_config, client_factory=lambda _key: client)

    return factory


# ========================== Job queue =======================================


class RecordingQueue:
    """JobQueue that only records what was sent."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.handlers: dict[str, Any] = {}
        self._keys: set[str] = set()

    def send(self, name, payload=None, *, singleton_key=None, retry_limit=0):
        if singleton_key:
            if singleton_key in self._keys:
                return None
            self._keys.add(singleton_key)
        self.sent.append(
            {"name": name, "data": payload or {}, "singleton_key": singleton_key, "retry_limit": retry_limit}
        )
        return f"job-{len(self.sent)}"

    def work(self, name, handler):
        self.handlers[name] = handler

    def named(self, name: str) -> list[dict[str, Any]]:
        return [job for job in self.sent if job["name"] == name]


@pytest.fixture()
def recording_queue():
    return RecordingQueue()


# ========================== Seed Data Helpers ==============================


def days_ago(days: float) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


class SeedData:
    """Helper to create commonly needed test data.

    Usage in tests::

        def test_something(seed):
            user_id = seed.create_user(claude_key="sk-test")
            garden_id = seed.create_garden(user_id)
            zone_id = seed.create_zone(garden_id, "Raised bed")
            plant_id = seed.create_plant(zone_id, "Tomato")
    """

    def __init__(self, db_handler: SQLiteDatabaseHandler):
        self._db = db_handler
        self._user_count = 0

    def create_user(
        self,
        *,
        claude_key: str | None = None,
        kimi_key: str | None = None,
        skill_level: str | None = None,
    ) -> str:
        settings = {"skillLevel": skill_level} if skill_level else None
        self._user_count += 1
        email = f"gardener{self._user_count}@example.com"
        user_id = self._db.insert_user(email=email, name="Gardener", settings=settings)
        if claude_key:
            self._db.upsert_api_key(user_id, "claude", claude_key)
        if kimi_key:
            self._db.upsert_api_key(user_id, "kimi", kimi_key)
        return user_id

    def create_garden(
        self,
        user_id: str,
        name: str = "Backyard",
        *,
        lat: float | None = None,
        lng: float | None = None,
        hardiness_zone: str | None = "7b",
    ) -> str:
        return self._db.insert_garden(
            user_id, name, location_lat=lat, location_lng=lng, hardiness_zone=hardiness_zone
        )

    def create_zone(self, garden_id: str, name: str = "Raised bed", **fields: Any) -> str:
        return self._db.insert_zone(garden_id, name, **fields)

    def create_plant(self, zone_id: str, name: str = "Tomato", **fields: Any) -> str:
        return self._db.insert_plant(zone_id, name, **fields)

    def create_task(self, garden_id: str, zone_id: str, **overrides: Any) -> str:
        fields: dict[str, Any] = {
            "garden_id": garden_id,
            "zone_id": zone_id,
            "target_type": "zone",
            "target_id": zone_id,
            "action_type": "water",
            "priority": "today",
            "label": "Water the bed",
            "suggested_date": datetime.now(timezone.utc).date().isoformat(),
        }
        fields.update(overrides)
        return self._db.insert_task(**fields)

    def create_care_log(
        self,
        target_type: str,
        target_id: str,
        action_type: str = "water",
        *,
        notes: str | None = None,
        photo_url: str | None = None,
        logged_at: str | None = None,
    ) -> str:
        return self._db.insert_care_log(
            target_type, target_id, action_type, notes=notes, photo_url=photo_url, logged_at=logged_at
        )

    def garden_with_zone(self, **user_kwargs: Any) -> tuple[str, str, str]:
        """One user, one garden, one zone; returns ``(user_id, garden_id, zone_id)``."""
        user_id = self.create_user(**user_kwargs)
        garden_id = self.create_garden(user_id)
        zone_id = self.create_zone(garden_id)
        return user_id, garden_id, zone_id


@pytest.fixture()
def seed(db_handler):
    """SeedData helper for quickly populating the test database."""
    return SeedData(db_handler)


# ========================== Flask app =======================================


@pytest.fixture()
def container(app_config, provider_factory):
    """ServiceContainer on its own in-memory database with fake LLM and weather clients."""
    from gardooner.services.container import ServiceContainer

    weather = MagicMock()
    weather.fetch.return_value = {"current": {}, "daily": []}
    built = ServiceContainer.build(app_config, provider_factory=provider_factory, weather_client=weather)
    yield built
    built.shutdown()


@pytest.fixture()
def app(container):
    from gardooner import create_app

    flask_app = create_app(container=container)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def api_seed(container):
    """SeedData bound to the app container's database."""
    return SeedData(container.database)


def login(client, user_id: str) -> None:
    with client.session_transaction() as flask_session:
        flask_session["user_id"] = user_id


@pytest.fixture()
def login_as(client):
    """``login_as(user_id)`` puts *user_id* in the test client's session."""
    return lambda user_id: login(client, user_id)
