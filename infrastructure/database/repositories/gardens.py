from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from infrastructure.database.ops.gardens import GardenOperations


@dataclass(frozen=True)
class GardenRepository:
    """Repository facade for gardens, zones, plants and sensor readings."""

    _backend: GardenOperations

    def create_garden(self, user_id: str, name: str, **fields: Any) -> str:
        return self._backend.insert_garden(user_id, name, **fields)

    def get_garden(self, garden_id: str) -> dict[str, Any] | None:
        return self._backend.get_garden(garden_id)

    def get_owned_garden(self, garden_id: str, user_id: str) -> dict[str, Any] | None:
        return self._backend.get_garden_for_user(garden_id, user_id)

    def list_gardens(self) -> list[dict[str, Any]]:
        return self._backend.list_gardens()

    def create_zone(self, garden_id: str, name: str, **fields: Any) -> str:
        return self._backend.insert_zone(garden_id, name, **fields)

    def get_zone(self, zone_id: str) -> dict[str, Any] | None:
        return self._backend.get_zone(zone_id)

    def get_zone_in_garden(self, zone_id: str, garden_id: str) -> dict[str, Any] | None:
        return self._backend.get_zone_in_garden(zone_id, garden_id)

    def list_zones(self, garden_id: str) -> list[dict[str, Any]]:
        return self._backend.list_zones(garden_id)

    def create_plant(self, zone_id: str, name: str, **fields: Any) -> str:
        return self._backend.insert_plant(zone_id, name, **fields)

    def get_plant(self, plant_id: str) -> dict[str, Any] | None:
        return self._backend.get_plant(plant_id)

    def get_plant_in_zone(self, plant_id: str, zone_id: str) -> dict[str, Any] | None:
        return self._backend.get_plant_in_zone(plant_id, zone_id)

    def list_plants(self, zone_ids: Sequence[str]) -> list[dict[str, Any]]:
        return self._backend.list_plants(zone_ids)

    def create_sensor(self, zone_id: str, sensor_type: str, ha_entity_id: str) -> str:
        return self._backend.insert_sensor(zone_id, sensor_type, ha_entity_id)

    def record_reading(self, sensor_id: str, value: float, unit: str, recorded_at: str | None = None) -> str:
        return self._backend.insert_sensor_reading(sensor_id, value, unit, recorded_at)

    def recent_sensor_readings(self, zone_id: str, since: str) -> list[dict[str, Any]]:
        return self._backend.get_zone_sensor_readings(zone_id, since)
