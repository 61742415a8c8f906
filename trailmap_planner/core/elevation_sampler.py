"""Robust single-point elevation from a noisy candidate set.

Tile-boundary artifacts and duplicate contour crossings produce outlier
spikes among the candidates, so the reduction is a median over a plausible
range rather than a mean. A failed or empty lookup yields an explicit
"no data" reading (0 m) instead of an exception: one bad sample must not
abort a whole profile.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from numbers import Real
from typing import Any, Optional

import requests

from trailmap_planner.constants import ElevationConfig
from trailmap_planner.core.elevation_source import ElevationSource
from trailmap_planner.errors import ElevationSourceError
from trailmap_planner.model.coordinate import Coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElevationReading:
    """Elevation at one coordinate.

    Attributes:
        elevation_m: Median of valid candidates, or NO_DATA_M
        has_data: False when no candidate survived filtering or the query failed
    """

    elevation_m: float
    has_data: bool

    @staticmethod
    def no_data() -> "ElevationReading":
        return ElevationReading(elevation_m=ElevationConfig.NO_DATA_M, has_data=False)


class ElevationSampler:
    """Queries an ElevationSource and reduces candidates to one value.

    Example:
        sampler = ElevationSampler(source=TilequeryElevationSource())
        reading = sampler.sample(Coordinate(lon=-72.8143, lat=44.5437))
    """

    def __init__(
        self,
        source: ElevationSource,
        radius_m: float = ElevationConfig.SEARCH_RADIUS_M,
        limit: int = ElevationConfig.CANDIDATE_LIMIT,
        min_valid_m: float = ElevationConfig.MIN_VALID_M,
        max_valid_m: float = ElevationConfig.MAX_VALID_M,
    ) -> None:
        self.source = source
        self.radius_m = radius_m
        self.limit = limit
        self.min_valid_m = min_valid_m
        self.max_valid_m = max_valid_m

    @staticmethod
    def reduce(
        candidates: Iterable[Any],
        min_valid_m: float = ElevationConfig.MIN_VALID_M,
        max_valid_m: float = ElevationConfig.MAX_VALID_M,
    ) -> Optional[float]:
        """Filter to (min_valid_m, max_valid_m) exclusive and take the median.

        For an even count the upper of the two middle values is returned.
        Candidates that are not real numbers (None, strings, booleans) are dropped.

        Returns:
            The median elevation, or None if no candidate is valid.
        """
        valid = sorted(
            c for c in candidates if isinstance(c, Real) and not isinstance(c, bool) and min_valid_m < c < max_valid_m
        )
        if not valid:
            return None
        return valid[len(valid) // 2]

    def sample(self, coord: Coordinate) -> ElevationReading:
        """Elevation at coord; never raises for data-source failures."""
        try:
            candidates = self.source.query(coord, radius_m=self.radius_m, limit=self.limit)
        except (ElevationSourceError, requests.RequestException) as exc:
            logger.warning(f"[ELEVATION] Query failed at {coord}: {exc}")
            return ElevationReading.no_data()

        if not candidates:
            logger.warning(f"[ELEVATION] No elevation features found at {coord}")
            return ElevationReading.no_data()

        median = self.reduce(candidates, min_valid_m=self.min_valid_m, max_valid_m=self.max_valid_m)
        if median is None:
            logger.warning(f"[ELEVATION] No valid elevations after filtering at {coord}, raw: {candidates}")
            return ElevationReading.no_data()

        return ElevationReading(elevation_m=float(median), has_data=True)
