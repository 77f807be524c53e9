import math

import pytest

from weather_suggest.disambiguation.distance import EARTH_RADIUS_KM
from weather_suggest.disambiguation.nearest import select_nearest
from weather_suggest.models.geo import Candidate, Coordinate, GeoContext

KM_PER_DEGREE = EARTH_RADIUS_KM * math.pi / 180
ORIGIN = GeoContext(coordinate=Coordinate(latitude=0, longitude=0), radius_km=5)


def city(name, population, latitude, longitude):
    return Candidate(
        city_name=name,
        region_code="",
        country_code="US",
        population=population,
        coordinate=Coordinate(latitude=latitude, longitude=longitude),
    )


def city_at_km(name, population, km):
    """A city due north of the origin, ``km`` away."""
    return city(name, population, km / KM_PER_DEGREE, 0)


SPRINGFIELD_IL = city("Springfield", 5000, 39.8, -89.6)
SPRINGFIELD_MO = city("Springfield", 150000, 37.2, -93.3)


def test_closer_city_wins_outside_radius():
    geo = GeoContext(coordinate=Coordinate(latitude=39.7, longitude=-89.6), radius_km=5)
    assert select_nearest(geo, [SPRINGFIELD_IL, SPRINGFIELD_MO]) is SPRINGFIELD_IL


def test_populous_city_wins_inside_radius():
    geo = GeoContext(
        coordinate=Coordinate(latitude=39.7, longitude=-89.6), radius_km=1000
    )
    assert select_nearest(geo, [SPRINGFIELD_IL, SPRINGFIELD_MO]) is SPRINGFIELD_MO


def test_population_ordered_input():
    near = GeoContext(coordinate=Coordinate(latitude=39.7, longitude=-89.6), radius_km=5)
    wide = near.model_copy(update={"radius_km": 1000})
    assert select_nearest(near, [SPRINGFIELD_MO, SPRINGFIELD_IL]) is SPRINGFIELD_IL
    assert select_nearest(wide, [SPRINGFIELD_MO, SPRINGFIELD_IL]) is SPRINGFIELD_MO


@pytest.mark.parametrize("order", [(0, 1), (1, 0)])
def test_tied_distance_prefers_population_in_any_order(order):
    big = city_at_km("Big", 1000, 52)
    small = city_at_km("Small", 100, 50)
    candidates = [(big, small)[i] for i in order]
    assert select_nearest(ORIGIN, candidates) is big


def test_scans_past_populous_cities():
    candidates = [
        city_at_km("A", 1000, 100),
        city_at_km("B", 500, 50),
        city_at_km("C", 100, 10),
    ]
    assert select_nearest(ORIGIN, candidates).city_name == "C"


def test_closer_within_radius_but_less_populous_keeps_best():
    first = city_at_km("First", 1000, 100)
    second = city_at_km("Second", 100, 97)
    assert select_nearest(ORIGIN, [first, second]) is first


def test_default_radius_is_five_km():
    geo = GeoContext(coordinate=Coordinate(latitude=0, longitude=0))
    first = city_at_km("First", 1000, 100)
    # 4 km closer: inside the default radius, so population decides
    assert select_nearest(geo, [first, city_at_km("Near", 10, 96)]) is first
    # 6 km closer: outside the default radius
    assert select_nearest(geo, [first, city_at_km("Nearer", 10, 94)]).city_name == "Nearer"


def test_zero_radius_falls_back_to_default():
    geo = GeoContext(coordinate=Coordinate(latitude=0, longitude=0), radius_km=0)
    first = city_at_km("First", 1000, 100)
    assert select_nearest(geo, [first, city_at_km("Near", 10, 96)]) is first


def test_no_geo_or_coordinate_returns_none():
    candidates = [SPRINGFIELD_MO, SPRINGFIELD_IL]
    assert select_nearest(None, candidates) is None
    assert select_nearest(GeoContext(), candidates) is None
    assert select_nearest(GeoContext(region_code="IL", country_code="US"), candidates) is None


def test_non_finite_client_coordinate_returns_none():
    geo = GeoContext(coordinate=Coordinate(latitude=math.nan, longitude=-89.6))
    assert select_nearest(geo, [SPRINGFIELD_MO, SPRINGFIELD_IL]) is None


def test_non_finite_candidate_coordinate_returns_none():
    broken = city("Nowhere", 10, math.nan, 0)
    geo = GeoContext(coordinate=Coordinate(latitude=39.7, longitude=-89.6))
    assert select_nearest(geo, [SPRINGFIELD_MO, broken]) is None


def test_empty_candidates():
    assert select_nearest(ORIGIN, []) is None


@pytest.fixture
def distances(monkeypatch):
    """Injects exact distances, keyed by the candidate's latitude."""
    table = {}
    monkeypatch.setattr(
        "weather_suggest.disambiguation.nearest.great_circle_distance_km",
        lambda origin, coordinate: table[coordinate.latitude],
    )
    return table


def test_closer_by_exactly_the_radius_does_not_replace(distances):
    distances.update({1: 100.0, 2: 95.0})
    far = city("far", 1000, 1, 0)
    near = city("near", 10, 2, 0)
    # 95 + 5 == 100 is not strictly closer, and the near city is smaller
    assert select_nearest(ORIGIN, [far, near]) is far


def test_closer_by_more_than_the_radius_replaces(distances):
    distances.update({1: 100.0, 2: 94.0})
    far = city("far", 1000, 1, 0)
    near = city("near", 10, 2, 0)
    assert select_nearest(ORIGIN, [far, near]) is near


def test_populous_city_exactly_one_radius_away_replaces(distances):
    distances.update({1: 100.0, 2: 105.0})
    near = city("near", 10, 1, 0)
    big = city("big", 1000, 2, 0)
    # |105 - 100| == 5 is still within the radius
    assert select_nearest(ORIGIN, [near, big]) is big


def test_populous_city_beyond_one_radius_does_not_replace(distances):
    distances.update({1: 100.0, 2: 105.5})
    near = city("near", 10, 1, 0)
    big = city("big", 1000, 2, 0)
    assert select_nearest(ORIGIN, [near, big]) is near
