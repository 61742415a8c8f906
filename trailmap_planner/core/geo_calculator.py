"""Geodesic calculations on Earth's surface.

Provides geographic helper functions for trail profiling:
- Distance calculation (Haversine formula)
- Linear interpolation between two coordinates in (lon, lat) space

All calculations use a spherical Earth approximation (R = 6,371 km).
"""

from math import atan2, cos, radians, sin, sqrt

# Earth's radius in kilometers (spherical approximation)
EARTH_RADIUS_KM = 6371.0


class GeoCalculator:
    """Static methods for geodesic calculations on Earth's surface.

    Coordinates are in decimal degrees (WGS84).
    Distances are in kilometers.
    """

    EARTH_RADIUS_KM = EARTH_RADIUS_KM

    @staticmethod
    def haversine_distance_km(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
        """Calculate great-circle distance between two points using Haversine formula.

        Args:
            lon1: Longitude of first point (decimal degrees)
            lat1: Latitude of first point (decimal degrees)
            lon2: Longitude of second point (decimal degrees)
            lat2: Latitude of second point (decimal degrees)

        Returns:
            Distance in kilometers.
        """
        dlat = radians(lat2 - lat1)
        dlon = radians(lon2 - lon1)
        a = sin(dlat / 2) ** 2 + sin(dlon / 2) ** 2 * cos(radians(lat1)) * cos(radians(lat2))
        return EARTH_RADIUS_KM * 2 * atan2(sqrt(a), sqrt(1 - a))

    @staticmethod
    def lerp(lon1: float, lat1: float, lon2: float, lat2: float, fraction: float) -> tuple[float, float]:
        """Linear interpolation in (lon, lat) space.

        Planar interpolation is accurate enough for the sub-100m gaps it is
        used on; distances are still measured with haversine.

        Args:
            lon1, lat1: Start point (decimal degrees)
            lon2, lat2: End point (decimal degrees)
            fraction: 0 = start, 1 = end

        Returns:
            Tuple (lon, lat) of the interpolated point.
        """
        return lon1 + (lon2 - lon1) * fraction, lat1 + (lat2 - lat1) * fraction
