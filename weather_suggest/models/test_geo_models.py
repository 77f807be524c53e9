import math

import pytest
from pydantic import ValidationError

from weather_suggest.models.geo import Candidate, Coordinate, GeoContext
from weather_suggest.models.weather import WeatherSuggestion, temperature_unit_for_locale


def test_geolocation_payload():
    geo = GeoContext.from_geolocation(
        {
            "location": {"latitude": 39.7, "longitude": -89.6, "radius": 20},
            "region_code": "IL",
            "country_code": "US",
        }
    )
    assert geo.coordinate == Coordinate(latitude=39.7, longitude=-89.6)
    assert geo.accuracy_radius_km == 20
    assert geo.region_code == "IL"
    assert geo.country_code == "US"


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "US",
        [],
        {},
        {"location": None},
        {"location": "here"},
        {"location": {"latitude": 39.7}},
        {"location": {"latitude": "north", "longitude": -89.6}},
        {"location": {"latitude": True, "longitude": -89.6}},
    ],
)
def test_malformed_payload_means_unknown_coordinate(raw):
    geo = GeoContext.from_geolocation(raw)
    assert geo.coordinate is None
    assert geo.accuracy_radius_km == 5


def test_numeric_strings_are_accepted():
    geo = GeoContext.from_geolocation(
        {"location": {"latitude": "39.7", "longitude": "-89.6", "radius": "10"}}
    )
    assert geo.coordinate == Coordinate(latitude=39.7, longitude=-89.6)
    assert geo.radius_km == 10


def test_invalid_radius_and_codes_become_unknown():
    geo = GeoContext.from_geolocation(
        {
            "location": {"latitude": 1, "longitude": 2, "radius": -3},
            "region_code": 12,
            "country_code": "  ",
        }
    )
    assert geo.radius_km is None
    assert geo.region_code is None
    assert geo.country_code is None


def test_nan_coordinate_is_kept_but_not_finite():
    geo = GeoContext.from_geolocation({"location": {"latitude": "nan", "longitude": 0}})
    assert not geo.coordinate.is_finite()


def test_candidate_population_must_not_be_negative():
    with pytest.raises(ValidationError):
        Candidate(
            city_name="Nowhere",
            population=-1,
            coordinate=Coordinate(latitude=0, longitude=0),
        )


def test_coordinate_is_immutable():
    point = Coordinate(latitude=1, longitude=2)
    with pytest.raises(ValidationError):
        point.latitude = 3
    assert point.is_finite()
    assert not Coordinate(latitude=math.inf, longitude=0).is_finite()


def test_temperature_unit_for_locale():
    assert temperature_unit_for_locale("en-US") == "f"
    assert temperature_unit_for_locale("en-GB") == "c"
    assert temperature_unit_for_locale(None) == "c"


def test_weather_suggestion_from_api_response():
    item = {
        "url": "https://www.accuweather.com/en/us/springfield-il",
        "request_id": "req-1",
        "city_name": "Springfield",
        "region_code": "IL",
        "current_conditions": {
            "icon_id": 6,
            "summary": "Mostly cloudy",
            "temperature": {"c": 15.0, "f": 59.0},
        },
        "forecast": {
            "summary": "Pleasant Saturday",
            "high": {"c": 21.0, "f": 70.0},
            "low": {"c": 13.0, "f": 55.0},
        },
    }
    suggestion = WeatherSuggestion.from_api_response(item, "f", "weather")
    assert suggestion.city == "Springfield"
    assert suggestion.region == "IL"
    assert suggestion.temperature == 59.0
    assert suggestion.high == 70.0
    assert suggestion.low == 55.0
    assert suggestion.icon_id == 6
    assert suggestion.suggested_index == 1
    assert WeatherSuggestion.from_api_response(item, "c", "").suggested_index == 0
