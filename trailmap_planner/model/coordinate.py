"""Coordinate - The geometry atom for trail profiling.

A Coordinate is a single WGS84 position in GeoJSON order (lon, lat).
Trail paths, elevation samples and hover positions are all built from it.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from trailmap_planner.core.geo_calculator import GeoCalculator


@dataclass(frozen=True)
class Coordinate:
    """Immutable (longitude, latitude) pair in decimal degrees.

    Example:
        summit = Coordinate(lon=-72.8143, lat=44.5437)
    """

    lon: float
    lat: float

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "Coordinate":
        """Build from a GeoJSON position ([lon, lat] or [lon, lat, elev]).

        Raises:
            ValueError: If fewer than two values are given.
        """
        if len(values) < 2:
            raise ValueError(f"Position needs at least [lon, lat], got {list(values)}")
        return cls(lon=float(values[0]), lat=float(values[1]))

    def as_list(self) -> list[float]:
        """Return [lon, lat] - GeoJSON/Pydeck order."""
        return [self.lon, self.lat]

    def distance_to_km(self, other: "Coordinate") -> float:
        """Great-circle distance to another coordinate in kilometers."""
        return GeoCalculator.haversine_distance_km(
            lon1=self.lon,
            lat1=self.lat,
            lon2=other.lon,
            lat2=other.lat,
        )

    def __repr__(self) -> str:
        return f"Coordinate(lon={self.lon:.6f}, lat={self.lat:.6f})"


# Ordered polyline as drawn on the map
TrailPath = list[Coordinate]
