"""MapRenderer - Pydeck map rendering for the trail map.

The managed layers (terrain, overlays, contours, trails) are part of the
engine's live style document, so deck.gl draws them as the basemap via
map_style. Only the hover marker is a deck.gl layer on top.

Key conventions:
- Uses [lon, lat] coordinate order (GeoJSON standard)
- Colors as RGBA lists [R, G, B, A] (0-255)
- map_provider="mapbox" is required when map_style is a dict
"""

import logging

import pydeck as pdk

from trailmap_planner.constants import AppConfig, StyleConfig
from trailmap_planner.layers.engine import StyleDocumentEngine
from trailmap_planner.model.coordinate import Coordinate

logger = logging.getLogger(__name__)

HOVER_LAYER_ID = "hover-marker"


def hex_to_rgba(color: str, alpha: int = 255) -> list[int]:
    """Convert "#RRGGBB" (or "#RGB") to a pydeck RGBA list."""
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"Expected a hex color, got '{color}'")
    return [int(value[i : i + 2], 16) for i in (0, 2, 4)] + [alpha]


class MapRenderer:
    """Renders the engine's style and camera as a Pydeck map.

    Example:
        renderer = MapRenderer(engine=engine)
        deck = renderer.render(hover=controller.hover_position)
        render_pydeck_map(deck, key="trail_map")
    """

    def __init__(self, engine: StyleDocumentEngine, mapbox_token: str | None = None) -> None:
        """Initialize map renderer.

        Args:
            engine: Engine whose live style document is drawn
            mapbox_token: Token for mapbox:// sources (defaults to the environment)
        """
        self.engine = engine
        self.mapbox_token = mapbox_token if mapbox_token is not None else AppConfig.mapbox_token()

    def get_view_state(self) -> pdk.ViewState:
        """Create Pydeck ViewState from the engine camera."""
        camera = self.engine.get_camera()
        return pdk.ViewState(
            latitude=camera.center.lat,
            longitude=camera.center.lon,
            zoom=camera.zoom,
            pitch=camera.pitch,
            bearing=camera.bearing,
        )

    def render(self, hover: Coordinate | None = None) -> pdk.Deck:
        """Render the map.

        Args:
            hover: Profile position to mark on the map, if any

        Returns:
            pdk.Deck object ready for display.
        """
        layers = []
        if hover is not None:
            layers.append(self._create_hover_layer(hover))

        return pdk.Deck(
            map_style=self.engine.to_style_document(),
            map_provider="mapbox",
            api_keys={"mapbox": self.mapbox_token} if self.mapbox_token else None,
            initial_view_state=self.get_view_state(),
            layers=layers,
        )

    @staticmethod
    def _create_hover_layer(position: Coordinate) -> pdk.Layer:
        return pdk.Layer(
            "ScatterplotLayer",
            [{"position": position.as_list()}],
            get_position="position",
            get_fill_color=hex_to_rgba(StyleConfig.HOVER_MARKER_COLOR),
            get_line_color=[255, 255, 255, 255],
            get_radius=StyleConfig.HOVER_MARKER_RADIUS_PX,
            radius_units="pixels",
            stroked=True,
            line_width_min_pixels=2,
            pickable=False,
            id=HOVER_LAYER_ID,
        )
