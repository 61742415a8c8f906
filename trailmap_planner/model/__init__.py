"""Data model classes for trail profiling and map state.

- Coordinate: Geometry atom (lon, lat)
- ElevationSample / ElevationProfile: Distance-indexed elevations with metrics
- TrailFeature: Trail from the geometry dataset
- TrailSelection: Record handed to the trail panel
- LayerRuntimeState / SelectionState / CameraState: Synchronizer-owned map state
"""

from trailmap_planner.model.coordinate import Coordinate, TrailPath
from trailmap_planner.model.elevation_profile import ElevationProfile, ElevationSample
from trailmap_planner.model.map_state import CameraState, LayerRuntimeState, SelectionState
from trailmap_planner.model.trail import TrailFeature, TrailSelection

__all__ = [
    "Coordinate",
    "TrailPath",
    "ElevationSample",
    "ElevationProfile",
    "TrailFeature",
    "TrailSelection",
    "LayerRuntimeState",
    "SelectionState",
    "CameraState",
]
