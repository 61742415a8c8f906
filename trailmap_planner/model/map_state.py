"""Mutable map state owned by the LayerSynchronizer.

Sub-states:
    LayerRuntimeState: desired layer visibility, paint overrides, 3D terrain
    SelectionState: currently highlighted trail and its selection epoch
    CameraState: captured view (restored after a basemap swap)

The synchronizer is the single writer. Everything else reads.
"""

from dataclasses import dataclass, field
from typing import Any

from trailmap_planner.constants import BasemapConfig, MapConfig, TerrainConfig
from trailmap_planner.model.coordinate import Coordinate

# Mapbox GL paint value: literal or expression list
PaintValue = Any


@dataclass
class LayerRuntimeState:
    """Desired state of the managed layers, independent of the live style.

    Toggle choices are recorded here even while their layers do not exist,
    so they can be applied once the layers appear.

    Attributes:
        toggles: Toggle name -> visible
        paint_overrides: Layer id -> {paint property -> value}
        terrain_3d: Whether 3D terrain is enabled
        terrain_exaggeration: Last user-set exaggeration factor
        basemap: Active basemap name
    """

    toggles: dict[str, bool] = field(default_factory=dict)
    paint_overrides: dict[str, dict[str, PaintValue]] = field(default_factory=dict)
    terrain_3d: bool = TerrainConfig.DEFAULT_ENABLED
    terrain_exaggeration: float = TerrainConfig.DEFAULT_EXAGGERATION
    basemap: str = BasemapConfig.DEFAULT

    def is_enabled(self, toggle: str) -> bool:
        return self.toggles[toggle]

    def set_toggle(self, toggle: str, visible: bool) -> None:
        self.toggles[toggle] = visible

    def set_paint(self, layer_id: str, prop: str, value: PaintValue) -> None:
        self.paint_overrides.setdefault(layer_id, {})[prop] = value

    def paint_for(self, layer_id: str) -> dict[str, PaintValue]:
        return dict(self.paint_overrides.get(layer_id, {}))


@dataclass
class SelectionState:
    """Zero or one selected trail feature.

    Every change bumps `epoch`. In-flight profile requests carry the epoch
    they were started under and are discarded once it is superseded.
    """

    feature_id: str | None = None
    epoch: int = 0

    @property
    def has_selection(self) -> bool:
        return self.feature_id is not None

    def select(self, feature_id: str | None) -> int:
        self.feature_id = feature_id
        self.epoch += 1
        return self.epoch

    def clear(self) -> int:
        return self.select(None)

    def is_current(self, epoch: int) -> bool:
        return epoch == self.epoch


@dataclass(frozen=True)
class CameraState:
    """Camera position captured from the engine."""

    center: Coordinate = Coordinate(lon=MapConfig.START_CENTER_LON, lat=MapConfig.START_CENTER_LAT)
    zoom: float = MapConfig.DEFAULT_ZOOM
    pitch: float = MapConfig.DEFAULT_PITCH
    bearing: float = MapConfig.DEFAULT_BEARING
