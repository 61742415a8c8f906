"""Rendering engine contract and an in-memory style-document implementation.

RenderingEngine is the subset of a Mapbox GL map the synchronizer needs:
source/layer CRUD, layout/paint properties, stacking, terrain, camera,
event subscription ("style.load", "idle"), click hit-testing and a
scheduler for deferred callbacks.

StyleDocumentEngine keeps the live style as a Mapbox GL style document,
the same format pydeck accepts as map_style. It is single-threaded: events
and scheduled callbacks run on the caller's thread, driven by
complete_style_load(), emit_idle() and advance().

Loading semantics mirror Mapbox GL:
- set_style() drops every source/layer that is not part of the new style
- Sources and layers cannot be added until the style has loaded
- "style.load" fires when the new style is ready, then "idle"
"""

import copy
import heapq
import logging
from collections.abc import Callable
from itertools import count
from typing import Any, Optional, Protocol

from shapely.geometry import Point, shape

from trailmap_planner.constants import DataConfig
from trailmap_planner.errors import EngineStateError
from trailmap_planner.layers.registry import HIDDEN
from trailmap_planner.model.coordinate import Coordinate
from trailmap_planner.model.map_state import CameraState

logger = logging.getLogger(__name__)

EVENT_STYLE_LOAD = "style.load"
EVENT_IDLE = "idle"

Listener = Callable[[], None]


class RenderingEngine(Protocol):
    """Collaborator contract for the map rendering engine."""

    def is_style_loaded(self) -> bool: ...

    def set_style(self, style: dict[str, Any], defer_load: bool = False) -> None: ...

    def add_source(self, source_id: str, spec: dict[str, Any]) -> None: ...

    def get_source(self, source_id: str) -> Optional[dict[str, Any]]: ...

    def add_layer(self, spec: dict[str, Any], before_id: Optional[str] = None) -> None: ...

    def get_layer(self, layer_id: str) -> Optional[dict[str, Any]]: ...

    def set_layout_property(self, layer_id: str, name: str, value: Any) -> None: ...

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None: ...

    def move_layer(self, layer_id: str, before_id: Optional[str] = None) -> None: ...

    def layer_order(self) -> list[str]: ...

    def set_terrain(self, spec: Optional[dict[str, Any]]) -> None: ...

    def get_camera(self) -> CameraState: ...

    def set_camera(self, camera: CameraState) -> None: ...

    def ease_to(self, pitch: Optional[float] = None, duration_ms: int = 0) -> None: ...

    def on(self, event: str, listener: Listener) -> None: ...

    def once(self, event: str, listener: Listener) -> None: ...

    def off(self, event: str, listener: Listener) -> None: ...

    def schedule(self, delay_s: float, callback: Listener) -> None: ...

    def query_rendered_features(self, point: Coordinate, layer_ids: list[str]) -> list[dict[str, Any]]: ...


class StyleDocumentEngine:
    """RenderingEngine over an in-memory Mapbox GL style document.

    Example:
        engine = StyleDocumentEngine(style=basemap_style("dark"))
        engine.add_source("trails", {"type": "geojson", "data": collection})
        deck_style = engine.to_style_document()
    """

    def __init__(
        self,
        style: dict[str, Any],
        camera: Optional[CameraState] = None,
        defer_load: bool = False,
        hit_tolerance_deg: float = DataConfig.HIT_TOLERANCE_DEG,
    ) -> None:
        """Initialize engine with a base style.

        Args:
            style: Initial basemap style document
            camera: Initial camera (defaults to the configured start view)
            defer_load: If True, the style stays loading until complete_style_load()
            hit_tolerance_deg: Click distance to a line that still counts as a hit
        """
        self._camera = camera or CameraState()
        self._hit_tolerance_deg = hit_tolerance_deg
        self._listeners: dict[str, list[tuple[Listener, bool]]] = {}
        self._tasks: list[tuple[float, int, Listener]] = []
        self._task_seq = count()
        self._clock = 0.0
        self._style_name: Optional[str] = None
        self._base_style: dict[str, Any] = {}
        self._sources: dict[str, dict[str, Any]] = {}
        self._layers: list[dict[str, Any]] = []
        self._terrain: Optional[dict[str, Any]] = None
        self._loaded = False
        self.set_style(style, defer_load=defer_load)

    # =========================================================================
    # STYLE LIFECYCLE
    # =========================================================================

    @property
    def style_name(self) -> Optional[str]:
        return self._style_name

    def is_style_loaded(self) -> bool:
        return self._loaded

    def set_style(self, style: dict[str, Any], defer_load: bool = False) -> None:
        """Replace the whole style. Everything added on top of the old one is dropped."""
        self._base_style = copy.deepcopy(style)
        self._style_name = style.get("name")
        self._sources = copy.deepcopy(style.get("sources", {}))
        self._layers = copy.deepcopy(style.get("layers", []))
        self._terrain = copy.deepcopy(style.get("terrain"))
        self._loaded = False
        logger.info(f"[STYLE] Style set to '{self._style_name}' (deferred={defer_load})")
        if not defer_load:
            self.complete_style_load()

    def complete_style_load(self) -> None:
        """Mark the style loaded and fire "style.load" followed by "idle"."""
        self._loaded = True
        self._emit(EVENT_STYLE_LOAD)
        self.emit_idle()

    def emit_idle(self) -> None:
        """Fire "idle" (all pending rendering settled)."""
        self._emit(EVENT_IDLE)

    # =========================================================================
    # SOURCES AND LAYERS
    # =========================================================================

    def _require_loaded(self, operation: str) -> None:
        if not self._loaded:
            raise EngineStateError(f"Cannot {operation}: style is not done loading")

    def add_source(self, source_id: str, spec: dict[str, Any]) -> None:
        self._require_loaded(f"add source '{source_id}'")
        if source_id in self._sources:
            raise EngineStateError(f"There is already a source with id '{source_id}'")
        self._sources[source_id] = copy.deepcopy(spec)

    def get_source(self, source_id: str) -> Optional[dict[str, Any]]:
        source = self._sources.get(source_id)
        return copy.deepcopy(source) if source is not None else None

    def add_layer(self, spec: dict[str, Any], before_id: Optional[str] = None) -> None:
        layer_id = spec["id"]
        self._require_loaded(f"add layer '{layer_id}'")
        if self._index_of(layer_id) is not None:
            raise EngineStateError(f"Layer with id '{layer_id}' already exists")
        if spec.get("source") not in self._sources:
            raise EngineStateError(f"Layer '{layer_id}' references missing source '{spec.get('source')}'")
        self._insert(copy.deepcopy(spec), before_id)

    def get_layer(self, layer_id: str) -> Optional[dict[str, Any]]:
        index = self._index_of(layer_id)
        return copy.deepcopy(self._layers[index]) if index is not None else None

    def set_layout_property(self, layer_id: str, name: str, value: Any) -> None:
        self._layer_or_raise(layer_id).setdefault("layout", {})[name] = copy.deepcopy(value)

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        self._layer_or_raise(layer_id).setdefault("paint", {})[name] = copy.deepcopy(value)

    def get_layout_property(self, layer_id: str, name: str) -> Any:
        return copy.deepcopy(self._layer_or_raise(layer_id).get("layout", {}).get(name))

    def get_paint_property(self, layer_id: str, name: str) -> Any:
        return copy.deepcopy(self._layer_or_raise(layer_id).get("paint", {}).get(name))

    def move_layer(self, layer_id: str, before_id: Optional[str] = None) -> None:
        """Move a layer directly below before_id, or to the top if before_id is None."""
        layer = self._layer_or_raise(layer_id)
        if before_id is not None and self._index_of(before_id) is None:
            raise EngineStateError(f"Cannot move '{layer_id}' before missing layer '{before_id}'")
        self._layers.remove(layer)
        self._insert(layer, before_id)

    def layer_order(self) -> list[str]:
        """All layer ids, bottom to top."""
        return [layer["id"] for layer in self._layers]

    def _index_of(self, layer_id: str) -> Optional[int]:
        for i, layer in enumerate(self._layers):
            if layer["id"] == layer_id:
                return i
        return None

    def _layer_or_raise(self, layer_id: str) -> dict[str, Any]:
        index = self._index_of(layer_id)
        if index is None:
            raise EngineStateError(f"Layer '{layer_id}' does not exist in the map's style")
        return self._layers[index]

    def _insert(self, layer: dict[str, Any], before_id: Optional[str]) -> None:
        index = self._index_of(before_id) if before_id is not None else None
        if index is None:
            self._layers.append(layer)
        else:
            self._layers.insert(index, layer)

    # =========================================================================
    # TERRAIN AND CAMERA
    # =========================================================================

    def set_terrain(self, spec: Optional[dict[str, Any]]) -> None:
        if spec is not None and spec.get("source") not in self._sources:
            raise EngineStateError(f"Terrain references missing source '{spec.get('source')}'")
        self._terrain = copy.deepcopy(spec)

    def get_terrain(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self._terrain)

    def get_camera(self) -> CameraState:
        return self._camera

    def set_camera(self, camera: CameraState) -> None:
        self._camera = camera

    def ease_to(self, pitch: Optional[float] = None, duration_ms: int = 0) -> None:
        """Animate the camera; applied immediately since nothing is drawn here."""
        if pitch is not None:
            self._camera = CameraState(
                center=self._camera.center,
                zoom=self._camera.zoom,
                pitch=pitch,
                bearing=self._camera.bearing,
            )

    # =========================================================================
    # EVENTS AND SCHEDULING
    # =========================================================================

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append((listener, False))

    def once(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append((listener, True))

    def off(self, event: str, listener: Listener) -> None:
        self._listeners[event] = [(fn, once) for fn, once in self._listeners.get(event, []) if fn != listener]

    def _emit(self, event: str) -> None:
        registered = self._listeners.get(event, [])
        self._listeners[event] = [(fn, once) for fn, once in registered if not once]
        for listener, _ in registered:
            listener()

    @property
    def clock(self) -> float:
        return self._clock

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def schedule(self, delay_s: float, callback: Listener) -> None:
        heapq.heappush(self._tasks, (self._clock + delay_s, next(self._task_seq), callback))

    def advance(self, seconds: float) -> None:
        """Move the virtual clock forward, running every callback that falls due."""
        target = self._clock + seconds
        while self._tasks and self._tasks[0][0] <= target:
            due, _, callback = heapq.heappop(self._tasks)
            self._clock = max(self._clock, due)
            callback()
        self._clock = target

    def run_until_idle(self, max_seconds: float = 60.0, step_s: float = 0.01) -> None:
        """Advance until no scheduled callbacks remain (bounded by max_seconds)."""
        elapsed = 0.0
        while self._tasks and elapsed < max_seconds:
            self.advance(step_s)
            elapsed += step_s

    # =========================================================================
    # HIT TESTING AND EXPORT
    # =========================================================================

    def query_rendered_features(self, point: Coordinate, layer_ids: list[str]) -> list[dict[str, Any]]:
        """GeoJSON features near a point on the given visible layers, topmost layer first.

        Only inline GeoJSON sources can be hit-tested; each returned feature
        carries the layer it was hit on under "layer".
        """
        click = Point(point.lon, point.lat)
        hits: list[dict[str, Any]] = []
        for layer in reversed(self._layers):
            if layer["id"] not in layer_ids:
                continue
            if layer.get("layout", {}).get("visibility") == HIDDEN:
                continue
            data = self._sources.get(layer.get("source"), {}).get("data")
            if not isinstance(data, dict):
                continue
            for feature in data.get("features", []):
                geometry = feature.get("geometry")
                if not geometry:
                    continue
                if shape(geometry).distance(click) <= self._hit_tolerance_deg:
                    hits.append({**copy.deepcopy(feature), "layer": layer["id"]})
        return hits

    def to_style_document(self) -> dict[str, Any]:
        """The full live style (base style plus everything added), for pydeck's map_style."""
        document = copy.deepcopy(self._base_style)
        document["sources"] = copy.deepcopy(self._sources)
        document["layers"] = copy.deepcopy(self._layers)
        if self._terrain is not None:
            document["terrain"] = copy.deepcopy(self._terrain)
        else:
            document.pop("terrain", None)
        return document
