"""
Geographic coordinate helpers.

Distances are great-circle (haversine) distances on a spherical Earth, which
is accurate to well under a metre at geofence scales.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict

EARTH_RADIUS_METERS = 6_371_008.8


@dataclass(frozen=True)
class Coordinate:
    """A WGS-84 latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def distance_to(self, other: "Coordinate") -> float:
        """Great-circle distance to another coordinate, in meters."""
        return distance_meters(self, other)

    def offset(self, north_meters: float = 0.0, east_meters: float = 0.0) -> "Coordinate":
        """
        Return a coordinate displaced from this one.

        Uses the small-distance approximation; good enough for placing
        points a few kilometres from home.
        """
        dlat = north_meters / EARTH_RADIUS_METERS
        dlon = east_meters / (EARTH_RADIUS_METERS * math.cos(math.radians(self.latitude)))
        return Coordinate(
            latitude=self.latitude + math.degrees(dlat),
            longitude=self.longitude + math.degrees(dlon),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinate":
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates, in meters."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dphi = phi2 - phi1
    dlambda = math.radians(b.longitude - a.longitude)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))
