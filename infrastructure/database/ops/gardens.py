from __future__ import annotations

import logging
import sqlite3
from typing import Any, Sequence

from gardooner.utils.time import iso_now
from infrastructure.database.utils import new_id, placeholders, row_to_dict, rows_to_dicts
from infrastructure.utils.structured_fields import dump_json_field

logger = logging.getLogger(__name__)


class GardenOperations:
    """Gardens, zones, plants and the sensor readings attached to zones."""

    # --- Gardens -----------------------------------------------------------------
    def insert_garden(
        self,
        user_id: str,
        name: str,
        *,
        location_lat: float | None = None,
        location_lng: float | None = None,
        hardiness_zone: str | None = None,
    ) -> str:
        garden_id = new_id()
        try:
            with self.connection() as db:
                db.execute(
                    """
                    INSERT INTO gardens (id, user_id, name, location_lat, location_lng, hardiness_zone, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (garden_id, user_id, name, location_lat, location_lng, hardiness_zone, iso_now()),
                )
        except sqlite3.Error as exc:
            logger.error("Error inserting garden %r: %s", name, exc)
            raise
        return garden_id

    def get_garden(self, garden_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute("SELECT * FROM gardens WHERE id = ?", (garden_id,)).fetchone()
        return row_to_dict(row)

    def get_garden_for_user(self, garden_id: str, user_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute(
            "SELECT * FROM gardens WHERE id = ? AND user_id = ?",
            (garden_id, user_id),
        ).fetchone()
        return row_to_dict(row)

    def list_gardens(self) -> list[dict[str, Any]]:
        rows = self.get_db().execute("SELECT * FROM gardens ORDER BY created_at").fetchall()
        return rows_to_dicts(rows)

    # --- Zones -------------------------------------------------------------------
    def insert_zone(
        self,
        garden_id: str,
        name: str,
        *,
        zone_type: str | None = None,
        dimensions: str | None = None,
        soil_type: str | None = None,
        sun_exposure: str | None = None,
        notes: str | None = None,
    ) -> str:
        zone_id = new_id()
        with self.connection() as db:
            db.execute(
                """
                INSERT INTO zones (id, garden_id, name, zone_type, dimensions, soil_type, sun_exposure, notes, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (zone_id, garden_id, name, zone_type, dimensions, soil_type, sun_exposure, notes, iso_now()),
            )
        return zone_id

    def get_zone(self, zone_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute("SELECT * FROM zones WHERE id = ?", (zone_id,)).fetchone()
        return row_to_dict(row)

    def get_zone_in_garden(self, zone_id: str, garden_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute(
            "SELECT * FROM zones WHERE id = ? AND garden_id = ?",
            (zone_id, garden_id),
        ).fetchone()
        return row_to_dict(row)

    def list_zones(self, garden_id: str) -> list[dict[str, Any]]:
        rows = self.get_db().execute(
            "SELECT * FROM zones WHERE garden_id = ? ORDER BY created_at",
            (garden_id,),
        ).fetchall()
        return rows_to_dicts(rows)

    # --- Plants ------------------------------------------------------------------
    def insert_plant(
        self,
        zone_id: str,
        name: str,
        *,
        variety: str | None = None,
        date_planted: str | None = None,
        growth_stage: str | None = None,
        care_profile: dict[str, Any] | None = None,
    ) -> str:
        plant_id = new_id()
        with self.connection() as db:
            db.execute(
                """
                INSERT INTO plants (id, zone_id, name, variety, date_planted, growth_stage, care_profile, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    plant_id,
                    zone_id,
                    name,
                    variety,
                    date_planted,
                    growth_stage,
                    dump_json_field(care_profile),
                    iso_now(),
                ),
            )
        return plant_id

    def get_plant(self, plant_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute("SELECT * FROM plants WHERE id = ?", (plant_id,)).fetchone()
        return row_to_dict(row, json_dicts=("care_profile",))

    def get_plant_in_zone(self, plant_id: str, zone_id: str) -> dict[str, Any] | None:
        row = self.get_db().execute(
            "SELECT * FROM plants WHERE id = ? AND zone_id = ?",
            (plant_id, zone_id),
        ).fetchone()
        return row_to_dict(row, json_dicts=("care_profile",))

    def list_plants(self, zone_ids: Sequence[str]) -> list[dict[str, Any]]:
        if not zone_ids:
            return []
        rows = self.get_db().execute(
            f"SELECT * FROM plants WHERE zone_id IN ({placeholders(zone_ids)}) ORDER BY created_at",
            tuple(zone_ids),
        ).fetchall()
        return rows_to_dicts(rows, json_dicts=("care_profile",))

    # --- Sensors -----------------------------------------------------------------
    def insert_sensor(self, zone_id: str, sensor_type: str, ha_entity_id: str) -> str:
        sensor_id = new_id()
        with self.connection() as db:
            db.execute(
                "INSERT INTO sensors (id, zone_id, ha_entity_id, sensor_type) VALUES (?, ?, ?, ?)",
                (sensor_id, zone_id, ha_entity_id, sensor_type),
            )
        return sensor_id

    def insert_sensor_reading(self, sensor_id: str, value: float, unit: str, recorded_at: str | None = None) -> str:
        reading_id = new_id()
        with self.connection() as db:
            db.execute(
                "INSERT INTO sensor_readings (id, sensor_id, value, unit, recorded_at) VALUES (?, ?, ?, ?, ?)",
                (reading_id, sensor_id, value, unit, recorded_at or iso_now()),
            )
        return reading_id

    def get_zone_sensor_readings(self, zone_id: str, since: str) -> list[dict[str, Any]]:
        rows = self.get_db().execute(
            """
            SELECT s.sensor_type, r.value, r.unit, r.recorded_at
            FROM sensor_readings r
            JOIN sensors s ON s.id = r.sensor_id
            WHERE s.zone_id = ? AND r.recorded_at >= ?
            ORDER BY r.recorded_at
            """,
            (zone_id, since),
        ).fetchall()
        return rows_to_dicts(rows)
