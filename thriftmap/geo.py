"""Great-circle distance and bounding-box helpers."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Final, Iterable

from thriftmap.models import Coordinate

EARTH_RADIUS_MILES: Final[float] = 3959.0
DEFAULT_CITY_CENTER: Final[Coordinate] = Coordinate(lat=40.7128, lng=-74.0060)


def distance_miles(origin: Coordinate, target: Coordinate) -> float:
    """Haversine distance between two coordinates, in miles."""
    lat1 = math.radians(origin.lat)
    lat2 = math.radians(target.lat)
    delta_lat = math.radians(target.lat - origin.lat)
    delta_lng = math.radians(target.lng - origin.lng)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


@dataclass(frozen=True, slots=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> Coordinate:
        return Coordinate(lat=(self.south + self.north) / 2, lng=(self.west + self.east) / 2)

    def to_dict(self) -> dict[str, float]:
        return {"south": self.south, "west": self.west, "north": self.north, "east": self.east}


def bounds_for(coordinates: Iterable[Coordinate]) -> Bounds | None:
    points = list(coordinates)
    if not points:
        return None
    lats = [point.lat for point in points]
    lngs = [point.lng for point in points]
    if not all(math.isfinite(value) for value in lats + lngs):
        raise ValueError("Cannot compute bounds for non-finite coordinates")
    return Bounds(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))
