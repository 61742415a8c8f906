"""Shared pytest fixtures for trailmap_planner tests.

Provides FakeElevationSource, LaggingEngine and reusable trail data.
All fixtures use explicit values with documented rationale.

COORDINATE SYSTEM:
    Trail fixtures run north from a base point near the equator (lat~0,
    lon~0) where 1 degree of latitude ≈ 111.2 km with the 6371 km Earth
    radius used by GeoCalculator, so expected distances are easy to check.
"""

import threading
import time
from collections.abc import Callable
from typing import Any, Optional

import pytest

from trailmap_planner.constants import BasemapConfig
from trailmap_planner.errors import ElevationSourceError
from trailmap_planner.layers.basemaps import basemap_style
from trailmap_planner.layers.engine import StyleDocumentEngine
from trailmap_planner.layers.registry import LayerRegistry
from trailmap_planner.layers.synchronizer import LayerSynchronizer
from trailmap_planner.model.coordinate import Coordinate, TrailPath
from trailmap_planner.model.map_state import CameraState

# 1 degree of latitude in km for a 6371 km sphere
KM_PER_DEGREE = 111.19492664455873


# =============================================================================
# FAKE ELEVATION SOURCE
# =============================================================================


class FakeElevationSource:
    """Elevation source with a synthetic linear terrain.

    Elevation formula:
        elevation = base_elevation + lat_km * grade_pct / 100 * 1000

    Each query returns the true elevation plus two close neighbours and two
    out-of-range sentinels, so the median of the valid candidates is exactly
    the true elevation.

    Example with base=1000m, grade=10%:
        - lat=0.000: 1000m
        - lat=0.009 (~1 km north): ~1100m
    """

    def __init__(
        self,
        base_elevation: float = 1000.0,
        grade_pct: float = 10.0,
        fail_when: Optional[Callable[[Coordinate], bool]] = None,
        delay_s: float = 0.0,
        gate: Optional[threading.Event] = None,
    ) -> None:
        """Initialize fake source.

        Args:
            base_elevation: Elevation at lat=0
            grade_pct: Climb per horizontal distance going north
            fail_when: Coordinates for which the query raises ElevationSourceError
            delay_s: Artificial latency per query
            gate: If set, every query blocks until the event is set
        """
        self.base_elevation = base_elevation
        self.grade_pct = grade_pct
        self.fail_when = fail_when
        self.delay_s = delay_s
        self.gate = gate
        self.calls: list[Coordinate] = []
        self._lock = threading.Lock()

    def elevation_at(self, coord: Coordinate) -> float:
        return self.base_elevation + coord.lat * KM_PER_DEGREE * 1000 * self.grade_pct / 100

    def query(self, coord: Coordinate, radius_m: float, limit: int) -> list[Optional[float]]:
        with self._lock:
            self.calls.append(coord)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.fail_when is not None and self.fail_when(coord):
            raise ElevationSourceError(f"Synthetic failure at {coord}")
        elevation = self.elevation_at(coord)
        return [elevation - 1.0, 50000.0, elevation, None, -9999.0, elevation + 1.0][:limit]


class StaticElevationSource:
    """Returns the same candidate list for every coordinate."""

    def __init__(self, candidates: list[Optional[float]]) -> None:
        self.candidates = candidates

    def query(self, coord: Coordinate, radius_m: float, limit: int) -> list[Optional[float]]:
        return list(self.candidates)


# =============================================================================
# LAGGING ENGINE
# =============================================================================


class LaggingEngine(StyleDocumentEngine):
    """StyleDocumentEngine whose layers only appear some time after add_layer.

    Mirrors a renderer where layer creation lags behind "style.load".
    Layers in `never_ready` are accepted but never appear. A style swap
    drops layers that had not landed yet.
    """

    def __init__(
        self,
        style: dict[str, Any],
        lag_s: float = 0.2,
        never_ready: tuple[str, ...] = (),
        **kwargs: Any,
    ) -> None:
        self.lag_s = lag_s
        self.never_ready = set(never_ready)
        self.pending_layers: set[str] = set()
        self._generation = 0
        super().__init__(style, **kwargs)

    def set_style(self, style: dict[str, Any], defer_load: bool = False) -> None:
        self._generation += 1
        self.pending_layers.clear()
        super().set_style(style, defer_load=defer_load)

    def add_layer(self, spec: dict[str, Any], before_id: Optional[str] = None) -> None:
        layer_id = spec["id"]
        self._require_loaded(f"add layer '{layer_id}'")
        if layer_id in self.pending_layers:
            return
        self.pending_layers.add(layer_id)
        if layer_id in self.never_ready:
            return

        generation = self._generation

        def land() -> None:
            if generation != self._generation:
                return
            self.pending_layers.discard(layer_id)
            StyleDocumentEngine.add_layer(self, spec)

        self.schedule(self.lag_s, land)


class CameraResettingEngine(StyleDocumentEngine):
    """StyleDocumentEngine that jumps back to the default view whenever a style is set."""

    def set_style(self, style: dict[str, Any], defer_load: bool = False) -> None:
        self._camera = CameraState()
        super().set_style(style, defer_load=defer_load)


# =============================================================================
# TRAIL DATA FIXTURES
# =============================================================================


def north_path(length_km: float, vertices: int, lon: float = 0.0, lat0: float = 0.0) -> TrailPath:
    """Straight path due north with evenly spaced vertices."""
    step = length_km / KM_PER_DEGREE / (vertices - 1)
    return [Coordinate(lon=lon, lat=lat0 + i * step) for i in range(vertices)]


def line_feature(feature_id: Any, title: str, path: TrailPath) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {"id": feature_id, "title": title, "description": f"{title} description"},
        "geometry": {"type": "LineString", "coordinates": [c.as_list() for c in path]},
    }


@pytest.fixture
def trail_collection() -> dict[str, Any]:
    """Two parallel 1 km trails running north, 0.01° (~1.1 km) apart.

    Trail 1 ("Long Trail") at lon=0.00, trail 2 ("Sunset Ridge") at lon=0.01.
    Ids are integers, as in the published dataset.
    """
    return {
        "type": "FeatureCollection",
        "features": [
            line_feature(1, "Long Trail", north_path(1.0, 5, lon=0.0)),
            line_feature(2, "Sunset Ridge", north_path(1.0, 5, lon=0.01)),
        ],
    }


@pytest.fixture
def registry(trail_collection: dict[str, Any]) -> LayerRegistry:
    return LayerRegistry.default(trails_data=trail_collection)


@pytest.fixture
def engine() -> StyleDocumentEngine:
    """Engine with the default (dark) basemap already loaded."""
    return StyleDocumentEngine(style=basemap_style(BasemapConfig.DEFAULT))


@pytest.fixture
def synchronizer(engine: StyleDocumentEngine, registry: LayerRegistry) -> LayerSynchronizer:
    """Synchronizer on a loaded engine; all layers exist and state is ready."""
    return LayerSynchronizer(engine=engine, registry=registry, basemap=BasemapConfig.DEFAULT)


@pytest.fixture
def lagging_engine() -> LaggingEngine:
    return LaggingEngine(style=basemap_style(BasemapConfig.DEFAULT), lag_s=0.2)
