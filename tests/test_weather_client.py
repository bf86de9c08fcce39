"""Open-Meteo client parsing and error mapping."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from gardooner.domain.exceptions import ExternalServiceError
from gardooner.services.utilities.weather import WeatherClient

OPEN_METEO_PAYLOAD = {
    "current": {"temperature_2m": 24.3, "relative_humidity_2m": 40, "weather_code": 1},
    "daily": {
        "time": ["2026-06-01", "2026-06-02"],
        "temperature_2m_max": [27.0, 30.1],
        "precipitation_sum": [0.0],
    },
}


def _session(payload=None, *, ok=True, status_code=200):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.json.return_value = payload
    session = MagicMock()
    session.get.return_value = response
    return session


def test_fetch_reshapes_current_and_daily():
    session = _session(OPEN_METEO_PAYLOAD)
    forecast = WeatherClient("https://weather.test/v1/forecast", forecast_days=2, session=session).fetch(52.0, 4.5)

    assert forecast["current"]["temperature"] == 24.3
    assert forecast["current"]["humidity"] == 40
    assert forecast["current"]["uvIndex"] is None
    assert [day["date"] for day in forecast["daily"]] == ["2026-06-01", "2026-06-02"]
    assert forecast["daily"][1]["tempMax"] == 30.1
    assert forecast["daily"][1]["precipitationSum"] is None

    args, kwargs = session.get.call_args
    assert args == ("https://weather.test/v1/forecast",)
    assert kwargs["params"]["latitude"] == 52.0
    assert kwargs["params"]["forecast_days"] == 2
    assert kwargs["timeout"] == 10.0


def test_empty_payload_gives_empty_forecast():
    forecast = WeatherClient(session=_session({})).fetch(0, 0)
    assert forecast["daily"] == []
    assert set(forecast["current"].values()) == {None}


def test_http_error_status_raises():
    with pytest.raises(ExternalServiceError) as exc_info:
        WeatherClient(session=_session(ok=False, status_code=503)).fetch(1, 2)
    assert exc_info.value.detail == {"status": 503}


def test_transport_error_raises():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("no route")
    with pytest.raises(ExternalServiceError):
        WeatherClient(session=session).fetch(1, 2)


def test_invalid_json_raises():
    session = _session()
    session.get.return_value.json.side_effect = ValueError("Expecting value")
    with pytest.raises(ExternalServiceError):
        WeatherClient(session=session).fetch(1, 2)


@pytest.mark.parametrize(
    "payload",
    [
        ["unexpected"],
        {"current": "sunny"},
        {"daily": [1, 2]},
        {"daily": {"time": "2026-06-01"}},
        {"daily": {"time": ["2026-06-01"], "temperature_2m_max": {"0": 20}}},
    ],
)
def test_unexpected_payload_shape_raises(payload):
    with pytest.raises(ExternalServiceError, match="unexpected payload"):
        WeatherClient(session=_session(payload)).fetch(1, 2)
