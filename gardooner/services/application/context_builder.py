"""
Zone Context Builder
====================

Assembles the snapshot an LLM sees when analysing one zone: garden
metadata, the zone and its plants, care logs from the last 14 days, sensor
readings from the last 48 hours, the zone's existing tasks, and optionally
a weather snapshot and care-log photos.

Keys are camelCase because the context is rendered straight into prompts.
Absent values are omitted rather than sent as nulls.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from gardooner.domain.exceptions import NotFoundError
from gardooner.utils.time import coerce_datetime, iso_cutoff, utc_date, utc_now

if TYPE_CHECKING:
    from gardooner.config import AppConfig
    from infrastructure.database.repositories import GardenRepository, TaskRepository

logger = logging.getLogger(__name__)

# Care logs scanned when picking photos
_PHOTO_SCAN_LIMIT = 100


def sparse(**fields: Any) -> dict[str, Any]:
    """Keep only the fields that carry a value."""
    return {key: value for key, value in fields.items() if value not in (None, "", [], {})}


def garden_summary(garden: dict[str, Any]) -> dict[str, Any]:
    location = None
    if garden.get("location_lat") is not None and garden.get("location_lng") is not None:
        location = {"lat": garden["location_lat"], "lng": garden["location_lng"]}
    return sparse(name=garden["name"], hardinessZone=garden.get("hardiness_zone"), location=location)


def plant_summary(plant: dict[str, Any]) -> dict[str, Any]:
    date_planted = plant.get("date_planted")
    return {
        "id": plant["id"],
        "name": plant["name"],
        **sparse(
            variety=plant.get("variety"),
            datePlanted=date_planted[:10] if date_planted else None,
            growthStage=plant.get("growth_stage"),
            careProfile=plant.get("care_profile"),
        ),
    }


def care_log_summary(log: dict[str, Any]) -> dict[str, Any]:
    return {
        "actionType": log["action_type"],
        "targetId": log["target_id"],
        "loggedAt": log["logged_at"],
        **sparse(notes=log.get("notes")),
    }


def task_summary(task: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": task["id"],
        "targetType": task["target_type"],
        "targetId": task["target_id"],
        "actionType": task["action_type"],
        "priority": task["priority"],
        "status": task["status"],
        "label": task["label"],
        "suggestedDate": task["suggested_date"],
        **sparse(
            context=task.get("context"),
            recurrence=task.get("recurrence"),
            photoRequested=True if task.get("photo_requested") else None,
            completedAt=task.get("completed_at"),
            completedVia=task.get("completed_via"),
        ),
    }


class ZoneContextBuilder:
    """Builds analysis contexts and gathers photos for zones."""

    def __init__(self, gardens: "GardenRepository", tasks: "TaskRepository", config: "AppConfig"):
        self._gardens = gardens
        self._tasks = tasks
        self._config = config

    def build_zone_context(
        self,
        garden_id: str,
        zone_id: str,
        weather: dict[str, Any] | None = None,
        *,
        skill_level: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Load everything the analysis prompt needs for one zone.

        Raises:
            NotFoundError: the garden or the zone (within that garden) does not exist.
        """
        now = now or utc_now()
        garden = self._gardens.get_garden(garden_id)
        if not garden:
            raise NotFoundError(f"Garden {garden_id} not found")
        zone = self._gardens.get_zone_in_garden(zone_id, garden_id)
        if not zone:
            raise NotFoundError(f"Zone {zone_id} not found")

        plants = self._gardens.list_plants([zone_id])
        target_ids = [zone_id, *(plant["id"] for plant in plants)]

        care_logs = self._tasks.recent_care_logs(
            target_ids, iso_cutoff(now, days=self._config.care_log_window_days)
        )
        readings = self._gardens.recent_sensor_readings(
            zone_id, iso_cutoff(now, hours=self._config.sensor_window_hours)
        )
        tasks = self._tasks.list_pending(zone_id=zone_id) + self._tasks.list_recently_resolved(
            zone_id, iso_cutoff(now, days=self._config.resolved_task_window_days)
        )

        zone_context: dict[str, Any] = {
            "id": zone["id"],
            "name": zone["name"],
            **sparse(
                zoneType=zone.get("zone_type"),
                dimensions=zone.get("dimensions"),
                soilType=zone.get("soil_type"),
                sunExposure=zone.get("sun_exposure"),
                notes=zone.get("notes"),
            ),
            "plants": [plant_summary(plant) for plant in plants],
            "recentCareLogs": [care_log_summary(log) for log in care_logs],
        }
        if readings:
            zone_context["sensorReadings"] = [
                {
                    "sensorType": reading["sensor_type"],
                    "value": reading["value"],
                    "unit": reading["unit"],
                    "recordedAt": reading["recorded_at"],
                }
                for reading in readings
            ]

        context: dict[str, Any] = {
            "garden": garden_summary(garden),
            "zone": zone_context,
            "currentDate": utc_date(now),
        }
        if tasks:
            context["existingTasks"] = [task_summary(task) for task in tasks]
        if weather:
            context["weather"] = {"current": weather.get("current", {}), "forecast": weather.get("daily", [])}
        if skill_level:
            context["userSkillLevel"] = skill_level
        return context

    def gather_zone_photos(
        self,
        zone_id: str,
        plants: Iterable[dict[str, Any]],
        *,
        now: datetime | None = None,
    ) -> list[dict[str, str]]:
        """
        Recent care-log photos for a zone and its plants.

        Picks the most recent ``photo_recent_limit`` photos from the photo
        window plus every photo from the last 24 hours. Only inline
        ``data:`` URLs are usable.
        """
        now = now or utc_now()
        plant_names = {plant["id"]: plant["name"] for plant in plants}
        logs = self._tasks.recent_care_logs(
            [zone_id, *plant_names],
            iso_cutoff(now, days=self._config.photo_window_days),
            limit=_PHOTO_SCAN_LIMIT,
        )
        with_photos = [log for log in logs if (log.get("photo_url") or "").startswith("data:")]

        selected = with_photos[: self._config.photo_recent_limit]
        selected_ids = {log["id"] for log in selected}
        day_ago = coerce_datetime(iso_cutoff(now, hours=24))
        for log in with_photos[self._config.photo_recent_limit :]:
            logged_at = coerce_datetime(log["logged_at"])
            if log["id"] not in selected_ids and logged_at is not None and logged_at >= day_ago:
                selected.append(log)
                selected_ids.add(log["id"])

        photos = []
        for log in selected:
            target_name = (
                plant_names.get(log["target_id"], "unknown plant") if log["target_type"] == "plant" else "zone"
            )
            description = (
                f"Care log photo: {log['action_type']} action on {log['target_type']} "
                f"'{target_name}' ({log['logged_at'][:10]})"
            )
            if log.get("notes"):
                description += f" - '{log['notes']}'"
            photos.append({"dataUrl": log["photo_url"], "description": description})
        return photos
