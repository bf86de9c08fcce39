"""
Weather Client
==============

Current conditions and a multi-day forecast from the free Open-Meteo API
(https://open-meteo.com), no authentication required.

The response is reshaped into ``{"current": {...}, "daily": [...]}`` with
camelCase keys; the analysis pipeline caches it per garden in
``weather_cache`` and folds it into zone contexts.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from gardooner.domain.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

# (Open-Meteo field, output key)
CURRENT_FIELDS = (
    ("temperature_2m", "temperature"),
    ("apparent_temperature", "apparentTemperature"),
    ("relative_humidity_2m", "humidity"),
    ("wind_speed_10m", "windSpeed"),
    ("wind_gusts_10m", "windGusts"),
    ("weather_code", "weatherCode"),
    ("uv_index", "uvIndex"),
    ("dew_point_2m", "dewPoint"),
    ("soil_temperature_0cm", "soilTemperature0cm"),
    ("soil_temperature_6cm", "soilTemperature6cm"),
    ("soil_moisture_0_to_1cm", "soilMoisture"),
)

DAILY_FIELDS = (
    ("temperature_2m_max", "tempMax"),
    ("temperature_2m_min", "tempMin"),
    ("apparent_temperature_max", "apparentTempMax"),
    ("apparent_temperature_min", "apparentTempMin"),
    ("precipitation_sum", "precipitationSum"),
    ("precipitation_probability_max", "precipitationProbability"),
    ("weather_code", "weatherCode"),
    ("sunrise", "sunrise"),
    ("sunset", "sunset"),
    ("uv_index_max", "uvIndexMax"),
    ("wind_gusts_10m_max", "windGustsMax"),
    ("et0_fao_evapotranspiration", "et0Evapotranspiration"),
    ("shortwave_radiation_sum", "shortwaveRadiationSum"),
)


class WeatherClient:
    """
    Thin wrapper around the Open-Meteo forecast endpoint.

    Args:
        api_url: Forecast endpoint URL
        forecast_days: Number of daily entries requested
        timeout: HTTP timeout in seconds
        session: Optional requests session (tests pass a mock)
    """

    def __init__(
        self,
        api_url: str = "https://api.open-meteo.com/v1/forecast",
        *,
        forecast_days: int = 7,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.forecast_days = forecast_days
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch(self, latitude: float, longitude: float) -> Dict[str, Any]:
        """
        Fetch current conditions and the daily forecast for a location.

        Raises:
            ExternalServiceError: on transport failure, a non-2xx status or a body
                that is not the expected JSON object.
        """
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": ",".join(name for name, _ in CURRENT_FIELDS),
            "daily": ",".join(name for name, _ in DAILY_FIELDS),
            "forecast_days": self.forecast_days,
            "timezone": "auto",
        }
        try:
            response = self._session.get(self.api_url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ExternalServiceError(f"Weather API request failed: {exc}") from exc

        if not response.ok:
            raise ExternalServiceError(
                f"Weather API error: {response.status_code}",
                detail={"status": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExternalServiceError("Weather API returned invalid JSON") from exc
        return self._parse(payload)

    @staticmethod
    def _parse(data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ExternalServiceError("Weather API returned an unexpected payload")
        current_raw = data.get("current") or {}
        daily_raw = data.get("daily") or {}
        if not isinstance(current_raw, dict) or not isinstance(daily_raw, dict):
            raise ExternalServiceError("Weather API returned an unexpected payload")

        current = {key: current_raw.get(name) for name, key in CURRENT_FIELDS}
        daily: List[Dict[str, Any]] = []
        days = daily_raw.get("time") or []
        columns = {name: daily_raw.get(name) or [] for name, _ in DAILY_FIELDS}
        if not isinstance(days, list) or not all(isinstance(values, list) for values in columns.values()):
            raise ExternalServiceError("Weather API returned an unexpected payload")
        for index, day in enumerate(days):
            entry: Dict[str, Any] = {"date": day}
            for name, key in DAILY_FIELDS:
                values = columns[name]
                entry[key] = values[index] if index < len(values) else None
            daily.append(entry)

        logger.debug("Parsed weather: %d daily entries", len(daily))
        return {"current": current, "daily": daily}
