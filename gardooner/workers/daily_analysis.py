"""
Daily Analysis: trigger -> garden -> zone job fan-out.

Job kinds:
- daily-analysis-trigger: no payload; enqueues one analyze-garden job per garden
- analyze-garden: ``{garden_id}``; refreshes weather, enqueues one analyze-zone job per zone
- analyze-zone: ``{garden_id, zone_id, user_id, weather}``; runs the LLM analysis
  and stores an AnalysisResult row

There is no fan-in. A zone job swallows and logs every error so one bad zone
never fails its garden job or its siblings; success is observable only as a
new AnalysisResult row.

Usage:
    queue = InProcessJobQueue(store=db_handler)
    register_jobs(queue, AnalysisJobs(queue, ...))
    queue.send(TRIGGER_JOB)
    queue.drain()
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from gardooner.enums import AnalysisScope
from gardooner.schemas.analysis import validate_analysis_result
from gardooner.services.ai.provider import resolve_provider
from gardooner.utils.time import iso_cutoff, iso_now, utc_date, utc_now

if TYPE_CHECKING:
    from gardooner.config import AppConfig
    from gardooner.enums import ProviderName
    from gardooner.services.ai.chat_actions import ActionEngine
    from gardooner.services.ai.provider import AIProvider
    from gardooner.services.application.context_builder import ZoneContextBuilder
    from gardooner.services.utilities.weather import WeatherClient
    from gardooner.workers.job_queue import Job, JobQueue
    from infrastructure.database.ops.jobs import JobOperations
    from infrastructure.database.repositories import AccountRepository, AnalysisRepository, GardenRepository

logger = logging.getLogger(__name__)

TRIGGER_JOB = "daily-analysis-trigger"
GARDEN_JOB = "analyze-garden"
ZONE_JOB = "analyze-zone"

# Dedup keys older than this are pruned on every trigger run
DEDUP_RETENTION_DAYS = 7


def garden_job_key(garden_id: str, day: str) -> str:
    return f"{GARDEN_JOB}:{garden_id}:{day}"


def zone_job_key(garden_id: str, zone_id: str, day: str) -> str:
    return f"{ZONE_JOB}:{garden_id}:{zone_id}:{day}"


class AnalysisJobs:
    """Handlers for the three analysis job kinds."""

    def __init__(
        self,
        queue: "JobQueue",
        *,
        gardens: "GardenRepository",
        analysis: "AnalysisRepository",
        accounts: "AccountRepository",
        context_builder: "ZoneContextBuilder",
        action_engine: "ActionEngine",
        weather: "WeatherClient | None",
        provider_factory: Callable[["ProviderName"], "AIProvider"],
        config: "AppConfig",
        job_store: "JobOperations | None" = None,
    ):
        self._queue = queue
        self._gardens = gardens
        self._analysis = analysis
        self._accounts = accounts
        self._context_builder = context_builder
        self._engine = action_engine
        self._weather = weather
        self._provider_factory = provider_factory
        self._config = config
        self._job_store = job_store

    # ==================== Batch handlers ====================

    def handle_trigger(self, jobs: list["Job"]) -> None:
        for _ in jobs:
            self.run_trigger()

    def handle_garden(self, jobs: list["Job"]) -> None:
        for job in jobs:
            self.analyze_garden(job.data["garden_id"])

    def handle_zone(self, jobs: list["Job"]) -> None:
        for job in jobs:
            data = job.data
            self.analyze_zone(data["garden_id"], data["zone_id"], data["user_id"], data.get("weather"))

    # ==================== Trigger ====================

    def run_trigger(self, now: datetime | None = None) -> dict[str, Any]:
        """Enqueue one analyze-garden job per garden."""
        now = now or utc_now()
        day = utc_date(now)
        results: dict[str, Any] = {"gardens": 0, "enqueued": 0, "duplicates": 0}

        if self._job_store is not None:
            pruned = self._job_store.prune_job_keys(iso_cutoff(now, days=DEDUP_RETENTION_DAYS))
            if pruned:
                logger.debug("Pruned %d stale job keys", pruned)

        for garden in self._gardens.list_gardens():
            results["gardens"] += 1
            job_id = self._queue.send(
                GARDEN_JOB,
                {"garden_id": garden["id"]},
                singleton_key=garden_job_key(garden["id"], day),
                retry_limit=self._config.job_retry_limit,
            )
            results["enqueued" if job_id else "duplicates"] += 1

        logger.info(
            "Daily analysis trigger: %d garden job(s) enqueued for %s (%d duplicate)",
            results["enqueued"],
            day,
            results["duplicates"],
        )
        return results

    # ==================== Garden ====================

    def _refresh_weather(self, garden: dict[str, Any]) -> dict[str, Any] | None:
        lat, lng = garden.get("location_lat"), garden.get("location_lng")
        if self._weather is None or lat is None or lng is None:
            return None
        try:
            forecast = self._weather.fetch(lat, lng)
            self._analysis.cache_weather(garden["id"], forecast)
            return forecast
        except Exception as e:
            logger.warning(
                "Weather refresh failed for garden %s, analysing without it: %s", garden["id"], e, exc_info=True
            )
            return None

    def analyze_garden(self, garden_id: str, now: datetime | None = None) -> dict[str, Any]:
        """Refresh weather for the garden and enqueue one analyze-zone job per zone."""
        day = utc_date(now or utc_now())
        results: dict[str, Any] = {"zones": 0, "enqueued": 0, "weather": False}

        garden = self._gardens.get_garden(garden_id)
        if not garden:
            logger.warning("Garden %s vanished before analysis", garden_id)
            return results

        zones = self._gardens.list_zones(garden_id)
        weather = self._refresh_weather(garden)
        results["weather"] = weather is not None

        for zone in zones:
            results["zones"] += 1
            job_id = self._queue.send(
                ZONE_JOB,
                {
                    "garden_id": garden_id,
                    "zone_id": zone["id"],
                    "user_id": garden["user_id"],
                    "weather": weather,
                },
                singleton_key=zone_job_key(garden_id, zone["id"], day),
                retry_limit=self._config.job_retry_limit,
            )
            if job_id:
                results["enqueued"] += 1

        logger.info("Garden %s: %d of %d zone job(s) enqueued", garden_id, results["enqueued"], results["zones"])
        return results

    # ==================== Zone ====================

    def analyze_zone(
        self,
        garden_id: str,
        zone_id: str,
        user_id: str,
        weather: dict[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> str | None:
        """
        Analyse one zone and persist the result.

        Returns the new AnalysisResult id, or None when the zone was skipped
        or failed. Never raises.
        """
        try:
            return self._analyze_zone(garden_id, zone_id, user_id, weather, now=now)
        except Exception as e:
            logger.error("Zone analysis failed for %s in garden %s: %s", zone_id, garden_id, e, exc_info=True)
            return None

    def _analyze_zone(
        self,
        garden_id: str,
        zone_id: str,
        user_id: str,
        weather: dict[str, Any] | None,
        *,
        now: datetime | None,
    ) -> str | None:
        resolution = resolve_provider(self._accounts, user_id)
        if resolution is None:
            logger.warning("No AI API key for user %s, skipping zone %s", user_id, zone_id)
            return None

        context = self._context_builder.build_zone_context(
            garden_id,
            zone_id,
            weather,
            skill_level=self._accounts.get_skill_level(user_id),
            now=now,
        )
        photos = self._context_builder.gather_zone_photos(zone_id, self._gardens.list_plants([zone_id]), now=now)
        if photos:
            context["photos"] = photos

        provider = self._provider_factory(resolution.variant)
        reply = provider.analyze_zone(context, resolution.api_key)
        result = validate_analysis_result(reply.result.to_wire(), provider.name)

        analysis_id = self._analysis.create_result(
            garden_id=garden_id,
            scope=AnalysisScope.ZONE.value,
            target_id=zone_id,
            result=result.to_wire(),
            model_used=resolution.variant.value,
            tokens_used=reply.tokens_used,
            generated_at=iso_now(),
        )
        logger.info(
            "Stored analysis %s for zone %s: %d operation(s), %d alert(s)",
            analysis_id,
            zone_id,
            len(result.operations),
            len(result.alerts),
        )

        if self._config.analysis_apply_operations and result.operations:
            applied = self._engine.apply_analysis_operations(garden_id, zone_id, analysis_id, result.operations)
            logger.info(
                "Applied %d/%d operation(s) from analysis %s",
                sum(1 for r in applied if r.ok),
                len(applied),
                analysis_id,
            )
        return analysis_id


def register_jobs(queue: "JobQueue", jobs: AnalysisJobs) -> None:
    """Attach the analysis handlers to *queue*."""
    queue.work(TRIGGER_JOB, jobs.handle_trigger)
    queue.work(GARDEN_JOB, jobs.handle_garden)
    queue.work(ZONE_JOB, jobs.handle_zone)
