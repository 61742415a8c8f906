"""Polyline densification for elevation sampling.

Trails are digitized with one vertex per bend, which is far too sparse for a
profile. The resampler inserts linearly interpolated points so no two
consecutive points are farther apart than a fixed step.
"""

import logging
from math import ceil

from trailmap_planner.constants import ElevationConfig
from trailmap_planner.core.geo_calculator import GeoCalculator
from trailmap_planner.model.coordinate import Coordinate, TrailPath

logger = logging.getLogger(__name__)


class Resampler:
    """Densifies a polyline to a maximum segment length.

    Example:
        dense = Resampler.resample(path, max_segment_km=0.05)
    """

    @staticmethod
    def resample(path: TrailPath, max_segment_km: float = ElevationConfig.MAX_SEGMENT_KM) -> TrailPath:
        """Insert interpolated points wherever two vertices are too far apart.

        Original vertices are always kept, so the output starts and ends with
        the input endpoints. Paths with 0 or 1 points pass through unchanged.
        No deduplication or smoothing is done here.

        Args:
            path: Polyline as drawn
            max_segment_km: Maximum great-circle distance between consecutive output points

        Returns:
            New list of coordinates.

        Raises:
            ValueError: If max_segment_km is not positive.
        """
        if max_segment_km <= 0:
            raise ValueError(f"max_segment_km must be positive, got {max_segment_km}")
        if len(path) < 2:
            return list(path)

        result: TrailPath = [path[0]]
        for prev, coord in zip(path, path[1:]):
            distance_km = prev.distance_to_km(coord)
            if distance_km > max_segment_km:
                steps = ceil(distance_km / max_segment_km)
                for i in range(1, steps):
                    lon, lat = GeoCalculator.lerp(
                        lon1=prev.lon, lat1=prev.lat, lon2=coord.lon, lat2=coord.lat, fraction=i / steps
                    )
                    result.append(Coordinate(lon=lon, lat=lat))
            result.append(coord)

        logger.debug(f"[PROFILE] Resampled {len(path)} vertices to {len(result)} points")
        return result
