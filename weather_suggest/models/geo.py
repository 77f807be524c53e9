"""Coordinate, geolocation and city candidate models."""

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ACCURACY_RADIUS_KM = 5


class Coordinate(BaseModel):
    """A point on the globe in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float

    def is_finite(self) -> bool:
        """Return True when both components are finite numbers."""
        return math.isfinite(self.latitude) and math.isfinite(self.longitude)


def _as_float(value: Any) -> Optional[float]:
    # bool is an int subclass but never a coordinate
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_code(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class GeoContext(BaseModel):
    """Client location estimate. Every field may be unknown."""

    model_config = ConfigDict(frozen=True)

    coordinate: Optional[Coordinate] = None
    radius_km: Optional[float] = None
    region_code: Optional[str] = None
    country_code: Optional[str] = None

    @property
    def accuracy_radius_km(self) -> float:
        """Accuracy radius, falling back to the default when unknown or zero."""
        return self.radius_km or DEFAULT_ACCURACY_RADIUS_KM

    @classmethod
    def from_geolocation(cls, raw: Any) -> "GeoContext":
        """Build a GeoContext from a geolocation provider payload.

        The payload is expected to look like
        ``{"location": {"latitude", "longitude", "radius"}, "region_code",
        "country_code"}``. Missing or malformed fields become None.

        Args:
            raw: Decoded provider payload, possibly None or the wrong type.

        Returns:
            A GeoContext, never raising on bad input.
        """
        if not isinstance(raw, dict):
            return cls()

        location = raw.get("location")
        if not isinstance(location, dict):
            location = {}

        latitude = _as_float(location.get("latitude"))
        longitude = _as_float(location.get("longitude"))
        coordinate = None
        if latitude is not None and longitude is not None:
            coordinate = Coordinate(latitude=latitude, longitude=longitude)

        radius = _as_float(location.get("radius"))
        if radius is not None and (not math.isfinite(radius) or radius < 0):
            radius = None

        return cls(
            coordinate=coordinate,
            radius_km=radius,
            region_code=_as_code(raw.get("region_code")),
            country_code=_as_code(raw.get("country_code")),
        )


class Candidate(BaseModel):
    """A city matched by an ambiguous weather query."""

    model_config = ConfigDict(frozen=True)

    city_name: str
    region_code: str = ""
    country_code: str = ""
    population: int = Field(default=0, ge=0)
    coordinate: Coordinate
    payload: dict = Field(default_factory=dict)
