"""Core elevation sampling pipeline.

This module provides the numeric backbone of the trail profile:
- GeoCalculator: Haversine distance and (lon, lat) interpolation
- Resampler: Polyline densification (import directly from resampler module)
- ElevationSampler: Median reduction of candidate elevations (import directly)
- ProfileBuilder / ProfileService: Fan-out/fan-in profile construction (import directly)
"""

from trailmap_planner.core.geo_calculator import GeoCalculator

# Resampler, ElevationSampler and ProfileBuilder import model.coordinate, which
# imports core.geo_calculator. Import them directly from their modules:
#   from trailmap_planner.core.profile_builder import ProfileBuilder

__all__ = [
    "GeoCalculator",
]
