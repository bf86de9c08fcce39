from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from gardooner.config import AppConfig
from gardooner.enums import ProviderName
from gardooner.security.encryption import KeyCipher
from gardooner.services.ai.chat_actions import ActionEngine
from gardooner.services.ai.provider import AIProvider, create_provider
from gardooner.services.application.chat_service import ChatService
from gardooner.services.application.context_builder import ZoneContextBuilder
from gardooner.services.application.task_service import TaskService
from gardooner.services.utilities.weather import WeatherClient
from gardooner.workers.daily_analysis import AnalysisJobs, register_jobs
from gardooner.workers.job_queue import InProcessJobQueue
from gardooner.workers.scheduler import AnalysisScheduler
from infrastructure.database.repositories import (
    AccountRepository,
    AnalysisRepository,
    ConversationRepository,
    GardenRepository,
    TaskRepository,
)
from infrastructure.database.repositories.base import KeyDecryptor
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    account_repo: AccountRepository
    garden_repo: GardenRepository
    task_repo: TaskRepository
    analysis_repo: AnalysisRepository
    conversation_repo: ConversationRepository
    audit_logger: AuditLogger
    action_engine: ActionEngine
    context_builder: ZoneContextBuilder
    weather_client: Optional[WeatherClient]
    chat_service: ChatService
    task_service: TaskService
    job_queue: InProcessJobQueue
    analysis_jobs: AnalysisJobs
    scheduler: AnalysisScheduler

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        decrypt: KeyDecryptor | None = None,
        provider_factory: Callable[[ProviderName], AIProvider] | None = None,
        weather_client: WeatherClient | None = None,
        start_scheduler: bool = False,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            decrypt: Turns stored API-key ciphertext into the key;
                defaults to AES-GCM with GARDOONER_ENCRYPTION_KEY when set
            provider_factory: Overrides how LLM providers are built (tests)
            weather_client: Overrides the Open-Meteo client (tests)
            start_scheduler: Whether to start the daily analysis thread
        """
        logger.info("Building ServiceContainer...")
        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()

        if decrypt is None and config.encryption_key:
            decrypt = KeyCipher(config.encryption_key)
        accounts = AccountRepository(database, decrypt)
        gardens = GardenRepository(database)
        tasks = TaskRepository(database)
        analysis = AnalysisRepository(database)
        conversations = ConversationRepository(database)
        audit_logger = AuditLogger(config.audit_log_path, config.log_level)

        if provider_factory is None:
            def provider_factory(variant: ProviderName) -> AIProvider:
                return create_provider(variant, config)

        if weather_client is None:
            weather_client = WeatherClient(
                config.weather_api_url,
                forecast_days=config.weather_forecast_days,
                timeout=config.weather_timeout,
            )

        action_engine = ActionEngine(gardens, tasks, audit_logger)
        context_builder = ZoneContextBuilder(gardens, tasks, config)
        chat_service = ChatService(
            gardens=gardens,
            tasks=tasks,
            analysis=analysis,
            conversations=conversations,
            accounts=accounts,
            action_engine=action_engine,
            provider_factory=provider_factory,
            config=config,
        )
        task_service = TaskService(gardens, tasks, analysis, audit_logger)

        job_queue = InProcessJobQueue(store=database)
        analysis_jobs = AnalysisJobs(
            job_queue,
            gardens=gardens,
            analysis=analysis,
            accounts=accounts,
            context_builder=context_builder,
            action_engine=action_engine,
            weather=weather_client,
            provider_factory=provider_factory,
            config=config,
            job_store=database,
        )
        register_jobs(job_queue, analysis_jobs)
        scheduler = AnalysisScheduler(job_queue, config.analysis_time_utc)

        container = cls(
            config=config,
            database=database,
            account_repo=accounts,
            garden_repo=gardens,
            task_repo=tasks,
            analysis_repo=analysis,
            conversation_repo=conversations,
            audit_logger=audit_logger,
            action_engine=action_engine,
            context_builder=context_builder,
            weather_client=weather_client,
            chat_service=chat_service,
            task_service=task_service,
            job_queue=job_queue,
            analysis_jobs=analysis_jobs,
            scheduler=scheduler,
        )
        if start_scheduler:
            scheduler.start()

        logger.info("ServiceContainer built successfully.")
        return container

    def status(self) -> dict[str, Any]:
        return {"scheduler": self.scheduler.get_status(), "database": self.config.database_path}

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        try:
            self.scheduler.shutdown()
        except RuntimeError as e:
            logger.warning("Failed to stop AnalysisScheduler: %s", e)
        self.database.close_db()
        self.audit_logger.close()
        logger.info("ServiceContainer shutdown complete.")
