import pytest

from weather_suggest.disambiguation.disambiguator import disambiguate, filter_candidates
from weather_suggest.models.geo import Candidate, Coordinate, GeoContext


def city(name, region, country, population, latitude, longitude):
    return Candidate(
        city_name=name,
        region_code=region,
        country_code=country,
        population=population,
        coordinate=Coordinate(latitude=latitude, longitude=longitude),
    )


SPRINGFIELD_MO = city("Springfield", "MO", "US", 169000, 37.2, -93.3)
SPRINGFIELD_IL = city("Springfield", "IL", "US", 114000, 39.8, -89.65)
SPRINGFIELD_OR = city("Springfield", "OR", "US", 62000, 44.05, -123.02)
CANDIDATES = [SPRINGFIELD_MO, SPRINGFIELD_IL, SPRINGFIELD_OR]


class FakeGeolocation:
    def __init__(self, geo):
        self.geo = geo
        self.calls = 0

    async def geolocate(self):
        self.calls += 1
        return self.geo


def test_distance_strategy_first():
    geo = GeoContext(
        coordinate=Coordinate(latitude=44.0, longitude=-123.0),
        region_code="IL",
        country_code="US",
    )
    assert disambiguate(geo, CANDIDATES) is SPRINGFIELD_OR


def test_region_strategy_without_coordinate():
    geo = GeoContext(region_code="IL", country_code="US")
    assert disambiguate(geo, CANDIDATES) is SPRINGFIELD_IL


def test_falls_back_to_most_populous():
    assert disambiguate(None, CANDIDATES) is SPRINGFIELD_MO
    assert disambiguate(GeoContext(country_code="FR"), CANDIDATES) is SPRINGFIELD_MO


def test_zero_or_one_candidate():
    assert disambiguate(None, []) is None
    assert disambiguate(None, [SPRINGFIELD_OR]) is SPRINGFIELD_OR


@pytest.mark.asyncio
async def test_single_candidate_skips_geolocation():
    geolocation = FakeGeolocation(GeoContext(region_code="IL", country_code="US"))
    chosen = await filter_candidates([SPRINGFIELD_OR], geolocation.geolocate)
    assert chosen is SPRINGFIELD_OR
    assert geolocation.calls == 0


@pytest.mark.asyncio
async def test_empty_candidates_skip_geolocation():
    geolocation = FakeGeolocation(None)
    assert await filter_candidates([], geolocation.geolocate) is None
    assert geolocation.calls == 0


@pytest.mark.asyncio
async def test_multiple_candidates_use_geolocation_once():
    geolocation = FakeGeolocation(GeoContext(region_code="IL", country_code="US"))
    chosen = await filter_candidates(CANDIDATES, geolocation.geolocate)
    assert chosen is SPRINGFIELD_IL
    assert geolocation.calls == 1


@pytest.mark.asyncio
async def test_unknown_geolocation_picks_first():
    geolocation = FakeGeolocation(None)
    assert await filter_candidates(CANDIDATES, geolocation.geolocate) is SPRINGFIELD_MO
