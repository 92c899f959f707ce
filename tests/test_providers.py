import asyncio

import httpx
import pytest

from air_quality_service import AirQualityFetcher
from attractions_service import AttractionFinder
from errors import DecodeError, InvalidEndpoint, NotFound, TransportError
from geocoder import Geocoder
from models import Coordinate, WeatherCondition
from payloads import (
    AIR_QUALITY_URL,
    ATTRACTIONS_URL,
    GEOCODING_URL,
    WEATHER_URL,
    air_quality_payload,
    geocoding_payload,
    weather_payload,
)
from weather_service import WeatherFetcher

PARIS = Coordinate(latitude=48.8566, longitude=2.3522)


def make_geocoder(provider_mock):
    return Geocoder(base_url=GEOCODING_URL, api_key="test-key", client=provider_mock.client())


def make_weather(provider_mock):
    return WeatherFetcher(base_url=WEATHER_URL, api_key="test-key", client=provider_mock.client())


def make_air_quality(provider_mock):
    return AirQualityFetcher(
        base_url=AIR_QUALITY_URL, api_key="test-key", client=provider_mock.client()
    )


def test_geocoder_returns_first_match(provider_mock):
    provider_mock.get(
        GEOCODING_URL,
        json=geocoding_payload() + [{"name": "Paris", "lat": 33.66, "lon": -95.55}],
    )

    coordinate = asyncio.run(make_geocoder(provider_mock).resolve("Paris"))

    assert coordinate == PARIS
    request = provider_mock.requests[0]
    assert request.url.params["q"] == "Paris"
    assert request.url.params["limit"] == "1"
    assert request.url.params["appid"] == "test-key"


def test_geocoder_no_results_is_not_found(provider_mock):
    provider_mock.get(GEOCODING_URL, json=[])

    with pytest.raises(NotFound) as excinfo:
        asyncio.run(make_geocoder(provider_mock).resolve("Atlantis"))

    assert excinfo.value.place_name == "Atlantis"


def test_geocoder_network_failure_is_transport_error(provider_mock):
    provider_mock.get(GEOCODING_URL, exc=httpx.ConnectError("connection reset"))

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(make_geocoder(provider_mock).resolve("Paris"))

    assert not isinstance(excinfo.value, NotFound)


def test_geocoder_rejects_blank_name(provider_mock):
    with pytest.raises(ValueError):
        asyncio.run(make_geocoder(provider_mock).resolve("   "))

    assert provider_mock.call_count == 0


def test_geocoder_out_of_range_coordinate_is_decode_error(provider_mock):
    provider_mock.get(GEOCODING_URL, json=[{"name": "Nowhere", "lat": 123.0, "lon": 0.0}])

    with pytest.raises(DecodeError) as excinfo:
        asyncio.run(make_geocoder(provider_mock).resolve("Nowhere"))

    assert excinfo.value.field == "latitude"
    assert excinfo.value.value == 123.0


def test_weather_fetch_requests_metric_units(provider_mock):
    provider_mock.get(WEATHER_URL, json=weather_payload(temp=15.0))

    snapshot = asyncio.run(make_weather(provider_mock).fetch(PARIS))

    params = provider_mock.requests[0].url.params
    assert params["lat"] == "48.8566"
    assert params["lon"] == "2.3522"
    assert params["units"] == "metric"
    assert params["appid"] == "test-key"
    assert snapshot.current.temperature == 15.0
    assert snapshot.timezone_offset_seconds == 3600
    assert len(snapshot.daily) == 8


def test_weather_missing_field_reports_field(provider_mock):
    payload = weather_payload()
    del payload["current"]["humidity"]
    provider_mock.get(WEATHER_URL, json=payload)

    with pytest.raises(DecodeError) as excinfo:
        asyncio.run(make_weather(provider_mock).fetch(PARIS))

    assert excinfo.value.field == "current.humidity"
    assert excinfo.value.provider == "weather"


def test_weather_unknown_condition_does_not_fail(provider_mock):
    provider_mock.get(WEATHER_URL, json=weather_payload(main="Volcanic Plume"))

    snapshot = asyncio.run(make_weather(provider_mock).fetch(PARIS))

    assert snapshot.current.primary_condition == WeatherCondition.UNKNOWN
    assert snapshot.current.primary_condition_raw == "Volcanic Plume"


def test_weather_rejected_request_is_invalid_endpoint(provider_mock):
    provider_mock.get(WEATHER_URL, status_code=400, json={"cod": "400", "message": "wrong latitude"})

    with pytest.raises(InvalidEndpoint):
        asyncio.run(make_weather(provider_mock).fetch(PARIS))


def test_weather_server_error_is_transport_error(provider_mock):
    provider_mock.get(WEATHER_URL, status_code=503, text="unavailable")

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(make_weather(provider_mock).fetch(PARIS))

    assert excinfo.value.status_code == 503


def test_weather_timeout_is_transport_error(provider_mock):
    provider_mock.get(WEATHER_URL, exc=httpx.ReadTimeout("timed out"))

    with pytest.raises(TransportError):
        asyncio.run(make_weather(provider_mock).fetch(PARIS))


def test_weather_non_json_body_is_decode_error(provider_mock):
    provider_mock.get(WEATHER_URL, text="<html>maintenance</html>")

    with pytest.raises(DecodeError) as excinfo:
        asyncio.run(make_weather(provider_mock).fetch(PARIS))

    assert excinfo.value.field == "<body>"


def test_weather_undecodable_content_is_decode_error(provider_mock):
    provider_mock.get(WEATHER_URL, exc=httpx.DecodingError("bad gzip"))

    with pytest.raises(DecodeError) as excinfo:
        asyncio.run(make_weather(provider_mock).fetch(PARIS))

    assert excinfo.value.field == "<body>"
    assert excinfo.value.provider == "weather"


def test_weather_redirect_loop_is_transport_error(provider_mock):
    provider_mock.get(WEATHER_URL, exc=httpx.TooManyRedirects("redirect loop"))

    with pytest.raises(TransportError):
        asyncio.run(make_weather(provider_mock).fetch(PARIS))


def test_unsupported_scheme_is_invalid_endpoint():
    fetcher = WeatherFetcher(base_url="ftp://weather.test/onecall", api_key="test-key")

    with pytest.raises(InvalidEndpoint):
        asyncio.run(fetcher.fetch(PARIS))


def test_air_quality_fetch(provider_mock):
    provider_mock.get(AIR_QUALITY_URL, json=air_quality_payload(aqi=3))

    snapshot = asyncio.run(make_air_quality(provider_mock).fetch(PARIS))

    params = provider_mock.requests[0].url.params
    assert "units" not in params
    assert params["appid"] == "test-key"
    assert snapshot.latest.aqi == 3
    assert snapshot.latest.pollutant_concentrations["pm2_5"] == 0.5
    assert snapshot.latest.timestamp == 1700000000


@pytest.mark.parametrize("aqi", [0, 6, -1, 42])
def test_air_quality_out_of_range_is_decode_error(provider_mock, aqi):
    provider_mock.get(AIR_QUALITY_URL, json=air_quality_payload(aqi=aqi))

    with pytest.raises(DecodeError) as excinfo:
        asyncio.run(make_air_quality(provider_mock).fetch(PARIS))

    assert excinfo.value.field.endswith("aqi")
    assert excinfo.value.value == aqi


def test_attractions_skip_unnamed_and_respect_limit(provider_mock):
    provider_mock.get(
        ATTRACTIONS_URL,
        json={
            "elements": [
                {"type": "node", "lat": 48.8584, "lon": 2.2945, "tags": {"name": "Eiffel Tower"}},
                {"type": "node", "lat": 48.86, "lon": 2.33, "tags": {}},
                {
                    "type": "way",
                    "center": {"lat": 48.8606, "lon": 2.3376},
                    "tags": {"name": "Louvre"},
                },
                {"type": "node", "lat": 48.853, "lon": 2.3499, "tags": {"name": "Notre-Dame"}},
            ]
        },
    )
    finder = AttractionFinder(base_url=ATTRACTIONS_URL, client=provider_mock.client())

    places = asyncio.run(finder.find_nearby(PARIS, limit=2))

    assert [p.name for p in places] == ["Eiffel Tower", "Louvre"]
    assert places[1].coordinate == Coordinate(latitude=48.8606, longitude=2.3376)
    assert "appid" not in provider_mock.requests[0].url.params


def test_attractions_skip_elements_without_position(provider_mock):
    provider_mock.get(
        ATTRACTIONS_URL,
        json={
            "elements": [
                {"type": "way", "tags": {"name": "Jardin des Plantes"}},
                {"type": "node", "lat": 48.8584, "tags": {"name": "Half Tower"}},
                {"type": "node", "lat": 48.8584, "lon": 2.2945, "tags": {"name": "Eiffel Tower"}},
            ]
        },
    )
    finder = AttractionFinder(base_url=ATTRACTIONS_URL, client=provider_mock.client())

    places = asyncio.run(finder.find_nearby(PARIS))

    assert [p.name for p in places] == ["Eiffel Tower"]
