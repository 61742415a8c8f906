"""LayerRegistry - declarative table of every source and layer we own.

The registry is built once at startup and never mutated. The synchronizer
consults it for create-if-absent checks, stacking order and which layers a
user-facing toggle controls.

Z-order (bottom to top):
    terrain raster → snow probability → cliff areas → contours → trail border → trail line

Hillshade helpers on the DEM source exist for parity with the base style
but sit outside the canonical stack (no stack rank).
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Optional

from trailmap_planner.constants import LayerConfig, StyleConfig
from trailmap_planner.errors import UnknownToggleError

VISIBLE = "visible"
HIDDEN = "none"


def visibility_value(visible: bool) -> str:
    """Mapbox GL layout value for a visibility flag."""
    return VISIBLE if visible else HIDDEN


@dataclass(frozen=True)
class SourceSpec:
    """A style source (raster, raster-dem, vector or geojson)."""

    id: str
    kind: str
    options: dict[str, Any] = field(default_factory=dict)

    def to_style(self) -> dict[str, Any]:
        return {"type": self.kind, **copy.deepcopy(self.options)}


@dataclass(frozen=True)
class LayerSpec:
    """A style layer and its defaults.

    Attributes:
        id: Layer id
        source_id: Source the layer draws from
        render_kind: Mapbox GL layer type ("raster", "line", "hillshade")
        default_visibility: Visibility when no toggle controls the layer
        stack_rank: Position in the canonical stack (0 = bottom), None if unmanaged
        layout: Layout properties other than visibility
        paint: Default paint properties
        source_layer: Vector source layer name, if any
    """

    id: str
    source_id: str
    render_kind: str
    default_visibility: bool
    stack_rank: Optional[int] = None
    layout: dict[str, Any] = field(default_factory=dict)
    paint: dict[str, Any] = field(default_factory=dict)
    source_layer: Optional[str] = None

    def to_style(self, visible: bool, paint_overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Layer definition for addLayer with the given visibility and paint overrides."""
        layer: dict[str, Any] = {
            "id": self.id,
            "type": self.render_kind,
            "source": self.source_id,
            "layout": {**copy.deepcopy(self.layout), "visibility": visibility_value(visible)},
            "paint": {**copy.deepcopy(self.paint), **copy.deepcopy(paint_overrides or {})},
        }
        if self.source_layer is not None:
            layer["source-layer"] = self.source_layer
        return layer


@dataclass(frozen=True)
class ToggleSpec:
    """A user-facing switch and the layers it shows or hides.

    Attributes:
        name: Toggle name used by the UI
        label: Display label
        layer_ids: Layers whose visibility follows the toggle
        default_enabled: Initial state at startup
        hide_layer_ids: Legacy layers forced hidden whenever the toggle is used
    """

    name: str
    label: str
    layer_ids: tuple[str, ...]
    default_enabled: bool
    hide_layer_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class LayerRegistry:
    """Immutable description of all managed sources, layers and toggles."""

    sources: tuple[SourceSpec, ...]
    layers: tuple[LayerSpec, ...]
    toggles: tuple[ToggleSpec, ...]

    def __post_init__(self) -> None:
        layer_ids = {layer.id for layer in self.layers}
        source_ids = {source.id for source in self.sources}
        for layer in self.layers:
            if layer.source_id not in source_ids:
                raise ValueError(f"Layer '{layer.id}' references unknown source '{layer.source_id}'")
        for toggle in self.toggles:
            unknown = set(toggle.layer_ids + toggle.hide_layer_ids) - layer_ids
            if unknown:
                raise ValueError(f"Toggle '{toggle.name}' references unknown layers {sorted(unknown)}")
        ranks = [layer.stack_rank for layer in self.layers if layer.stack_rank is not None]
        if len(ranks) != len(set(ranks)):
            raise ValueError("Stack ranks must be unique")

    @property
    def stack_order(self) -> list[str]:
        """Managed layer ids, bottom to top."""
        ranked = [layer for layer in self.layers if layer.stack_rank is not None]
        return [layer.id for layer in sorted(ranked, key=lambda layer: layer.stack_rank)]

    @property
    def toggle_names(self) -> list[str]:
        return [toggle.name for toggle in self.toggles]

    def layer(self, layer_id: str) -> LayerSpec:
        for layer in self.layers:
            if layer.id == layer_id:
                return layer
        raise KeyError(f"Unknown layer '{layer_id}'")

    def toggle(self, name: str) -> ToggleSpec:
        for toggle in self.toggles:
            if toggle.name == name:
                return toggle
        raise UnknownToggleError(f"Unknown layer toggle '{name}'. Known: {self.toggle_names}")

    def toggle_for_layer(self, layer_id: str) -> Optional[ToggleSpec]:
        """The toggle controlling a layer, or None if the layer is not user-controlled."""
        for toggle in self.toggles:
            if layer_id in toggle.layer_ids:
                return toggle
        return None

    @classmethod
    def default(cls, trails_data: Any = None) -> "LayerRegistry":
        """The trail map's sources, layers and toggles.

        Args:
            trails_data: GeoJSON FeatureCollection (or URL) for the trail source.
                Defaults to an empty collection.
        """
        if trails_data is None:
            trails_data = {"type": "FeatureCollection", "features": []}
        sources = (
            SourceSpec(
                id=LayerConfig.SOURCE_DEM,
                kind="raster-dem",
                options={"url": LayerConfig.DEM_URL, "tileSize": 512, "maxzoom": 14},
            ),
            SourceSpec(
                id=LayerConfig.SOURCE_TRAILS,
                kind="geojson",
                options={"data": trails_data},
            ),
            SourceSpec(id=LayerConfig.SOURCE_CONTOURS, kind="vector", options={"url": LayerConfig.CONTOURS_URL}),
            SourceSpec(
                id=LayerConfig.SOURCE_CLIFF,
                kind="raster",
                options={"url": LayerConfig.CLIFF_URL, "tileSize": 256},
            ),
            SourceSpec(
                id=LayerConfig.SOURCE_SNOW_PROBABILITY,
                kind="raster",
                options={"url": LayerConfig.SNOW_PROBABILITY_URL, "tileSize": 256},
            ),
            SourceSpec(
                id=LayerConfig.SOURCE_TERRAIN_RASTER,
                kind="raster",
                options={"url": LayerConfig.TERRAIN_RASTER_URL, "tileSize": 256},
            ),
        )

        line_layout = {"line-join": "round", "line-cap": "round"}
        layers = (
            LayerSpec(
                id=LayerConfig.HILLSHADE,
                source_id=LayerConfig.SOURCE_DEM,
                render_kind="hillshade",
                default_visibility=False,
                paint={
                    "hillshade-exaggeration": 1.5,
                    "hillshade-illumination-direction": 315,
                    "hillshade-shadow-color": "#000000",
                    "hillshade-highlight-color": "#ffffff",
                    "hillshade-accent-color": "#000000",
                },
            ),
            LayerSpec(
                id=LayerConfig.TERRAIN_DEM,
                source_id=LayerConfig.SOURCE_DEM,
                render_kind="hillshade",
                default_visibility=False,
                paint={"hillshade-exaggeration": 0.5},
            ),
            LayerSpec(
                id=LayerConfig.TERRAIN_RASTER,
                source_id=LayerConfig.SOURCE_TERRAIN_RASTER,
                render_kind="raster",
                default_visibility=False,
                stack_rank=0,
                paint={"raster-opacity": StyleConfig.TERRAIN_RASTER_OPACITY},
            ),
            LayerSpec(
                id=LayerConfig.SNOW_PROBABILITY,
                source_id=LayerConfig.SOURCE_SNOW_PROBABILITY,
                render_kind="raster",
                default_visibility=False,
                stack_rank=1,
                paint={"raster-opacity": StyleConfig.SNOW_PROBABILITY_OPACITY},
            ),
            LayerSpec(
                id=LayerConfig.CLIFF_AREAS,
                source_id=LayerConfig.SOURCE_CLIFF,
                render_kind="raster",
                default_visibility=False,
                stack_rank=2,
                paint={"raster-opacity": StyleConfig.CLIFF_AREAS_OPACITY},
            ),
            LayerSpec(
                id=LayerConfig.CONTOURS,
                source_id=LayerConfig.SOURCE_CONTOURS,
                render_kind="line",
                default_visibility=False,
                stack_rank=3,
                source_layer="contour",
                layout=dict(line_layout),
                paint={
                    "line-color": StyleConfig.CONTOUR_COLOR_DARK_BASEMAP,
                    # Index contours (0 and 5) are drawn thicker
                    "line-width": [
                        "match",
                        ["get", "index"],
                        [0, 5],
                        StyleConfig.CONTOUR_INDEX_WIDTH,
                        StyleConfig.CONTOUR_WIDTH,
                    ],
                    "line-opacity": StyleConfig.CONTOUR_OPACITY,
                },
            ),
            LayerSpec(
                id=LayerConfig.TRAILS_BORDER,
                source_id=LayerConfig.SOURCE_TRAILS,
                render_kind="line",
                default_visibility=True,
                stack_rank=4,
                layout=dict(line_layout),
                paint={"line-color": StyleConfig.BORDER_COLOR, "line-width": StyleConfig.BORDER_LINE_WIDTH},
            ),
            LayerSpec(
                id=LayerConfig.TRAILS,
                source_id=LayerConfig.SOURCE_TRAILS,
                render_kind="line",
                default_visibility=True,
                stack_rank=5,
                layout=dict(line_layout),
                paint={"line-color": StyleConfig.TRAIL_COLOR, "line-width": StyleConfig.TRAIL_LINE_WIDTH},
            ),
        )

        toggles = (
            ToggleSpec(
                name=LayerConfig.TOGGLE_TRAILS,
                label="Trails",
                layer_ids=(LayerConfig.TRAILS, LayerConfig.TRAILS_BORDER),
                default_enabled=True,
            ),
            ToggleSpec(
                name=LayerConfig.TOGGLE_TERRAIN,
                label="Terrain",
                layer_ids=(LayerConfig.TERRAIN_RASTER,),
                default_enabled=True,
                hide_layer_ids=(LayerConfig.TERRAIN_DEM,),
            ),
            ToggleSpec(
                name=LayerConfig.TOGGLE_CONTOURS,
                label="Contours",
                layer_ids=(LayerConfig.CONTOURS,),
                default_enabled=True,
            ),
            ToggleSpec(
                name=LayerConfig.TOGGLE_CLIFF_AREAS,
                label="Cliff Areas",
                layer_ids=(LayerConfig.CLIFF_AREAS,),
                default_enabled=True,
            ),
            ToggleSpec(
                name=LayerConfig.TOGGLE_SNOW_PROBABILITY,
                label="Snow Probability",
                layer_ids=(LayerConfig.SNOW_PROBABILITY,),
                default_enabled=True,
            ),
        )
        return cls(sources=sources, layers=layers, toggles=toggles)
