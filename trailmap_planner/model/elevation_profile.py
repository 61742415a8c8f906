"""ElevationProfile - distance-indexed elevation samples along a trail.

The profile is the output of the sampling pipeline and the input of the
trail panel: chart series, hover positions and summary stats are all
computed from it on the fly.
"""

from dataclasses import dataclass, field
from math import atan2, degrees
from typing import Optional

from trailmap_planner.model.coordinate import Coordinate


@dataclass(frozen=True)
class ElevationSample:
    """One point of an elevation profile.

    Attributes:
        coordinates: Position of the sample
        distance_km: Cumulative distance along the path from its first point
        elevation_m: Elevation in meters (0.0 when no data was available)
    """

    coordinates: Coordinate
    distance_km: float
    elevation_m: float


@dataclass(frozen=True)
class ElevationProfile:
    """Ordered elevation samples with computed metrics.

    Invariants (guaranteed by ProfileBuilder):
        - First sample has distance_km == 0
        - Consecutive samples are more than MIN_SEPARATION_KM apart

    Computed Properties:
        total_distance_km: Distance of the last sample
        min_elevation_m / max_elevation_m: Elevation extremes
        elevation_gain_m: max - min (as shown in the trail panel)
        slopes_pct: Percent grade between each sample and its predecessor
        slopes_deg: Signed slope angle between each sample and its predecessor
        average_slope_deg / max_slope_deg: Over the predominant direction
    """

    samples: tuple[ElevationSample, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "ElevationProfile":
        return cls(samples=())

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self):
        return iter(self.samples)

    def __getitem__(self, index: int) -> ElevationSample:
        return self.samples[index]

    @property
    def is_empty(self) -> bool:
        return not self.samples

    @property
    def distances_km(self) -> list[float]:
        return [s.distance_km for s in self.samples]

    @property
    def elevations_m(self) -> list[float]:
        return [s.elevation_m for s in self.samples]

    @property
    def total_distance_km(self) -> float:
        """Distance of the last sample (0 for an empty profile)."""
        return self.samples[-1].distance_km if self.samples else 0.0

    @property
    def min_elevation_m(self) -> float:
        return min(self.elevations_m) if self.samples else 0.0

    @property
    def max_elevation_m(self) -> float:
        return max(self.elevations_m) if self.samples else 0.0

    @property
    def elevation_gain_m(self) -> float:
        """Elevation range of the trail (max - min)."""
        return self.max_elevation_m - self.min_elevation_m

    @property
    def slopes_pct(self) -> list[float]:
        """Percent grade into each sample; the first sample is 0.

        A non-positive horizontal step yields 0 rather than dividing by zero.
        """
        result = []
        for i, sample in enumerate(self.samples):
            if i == 0:
                result.append(0.0)
                continue
            prev = self.samples[i - 1]
            horizontal_m = (sample.distance_km - prev.distance_km) * 1000
            if horizontal_m <= 0:
                result.append(0.0)
                continue
            result.append((sample.elevation_m - prev.elevation_m) / horizontal_m * 100)
        return result

    @property
    def slopes_deg(self) -> list[float]:
        """Signed slope angle into each sample in degrees (negative = downhill)."""
        result = []
        for i, sample in enumerate(self.samples):
            if i == 0:
                result.append(0.0)
                continue
            prev = self.samples[i - 1]
            rise_m = sample.elevation_m - prev.elevation_m
            horizontal_m = (sample.distance_km - prev.distance_km) * 1000
            angle = degrees(atan2(abs(rise_m), horizontal_m))
            result.append(-angle if rise_m < 0 else angle)
        return result

    @property
    def is_predominantly_uphill(self) -> bool:
        """True when at least as many steps climb as descend."""
        slopes = self.slopes_deg
        return sum(1 for s in slopes if s > 0) >= sum(1 for s in slopes if s < 0)

    def _relevant_slopes_deg(self) -> list[float]:
        slopes = self.slopes_deg
        if self.is_predominantly_uphill:
            return [s for s in slopes if s > 0]
        return [s for s in slopes if s < 0]

    @property
    def average_slope_deg(self) -> float:
        """Mean slope angle over steps in the predominant direction."""
        relevant = self._relevant_slopes_deg()
        if not relevant:
            return 0.0
        return sum(relevant) / len(relevant)

    @property
    def max_slope_deg(self) -> float:
        """Steepest step in the predominant direction (negative when downhill)."""
        relevant = self._relevant_slopes_deg()
        if not relevant:
            return 0.0
        return max(relevant) if self.is_predominantly_uphill else min(relevant)

    def coordinate_at(self, index: Optional[int]) -> Optional[Coordinate]:
        """Coordinate of the sample at index, or None when out of range."""
        if index is None or index < 0 or index >= len(self.samples):
            return None
        return self.samples[index].coordinates

    def __repr__(self) -> str:
        return f"ElevationProfile(samples={len(self.samples)}, distance={self.total_distance_km:.2f}km)"
