"""Basemap styles as Mapbox GL style specification documents.

Each basemap is a complete raster style (version 8 document with one raster
source and one raster layer). Swapping basemaps replaces the whole style,
which drops every source and layer we added on top of it; the
LayerSynchronizer re-creates them afterwards.

Why style dicts instead of a TileLayer?
- pydeck's TileLayer only fetches tiles; rendering them needs a JavaScript
  renderSubLayers callback that pydeck does not expose
- deck.gl's basemap renders a style dict natively when map_provider="mapbox"

No API key is needed for the basemap tiles themselves.
"""

from typing import Any

from trailmap_planner.constants import BasemapConfig
from trailmap_planner.errors import UnknownBasemapError


def basemap_style(name: str) -> dict[str, Any]:
    """Build the style document for a named basemap.

    Args:
        name: One of BasemapConfig.NAMES

    Returns:
        Fresh style dict (safe to mutate).

    Raises:
        UnknownBasemapError: If the name is not a known basemap.
    """
    if name not in BasemapConfig.NAMES:
        raise UnknownBasemapError(f"Unknown basemap '{name}'. Known: {BasemapConfig.NAMES}")

    source_id = f"basemap-{name}"
    return {
        "version": 8,
        "name": name,
        "sources": {
            source_id: {
                "type": "raster",
                "tiles": list(BasemapConfig.TILES[name]),
                "tileSize": 256,
                "attribution": BasemapConfig.ATTRIBUTION[name],
            }
        },
        "layers": [
            {
                "id": source_id,
                "type": "raster",
                "source": source_id,
                "minzoom": 0,
                "maxzoom": BasemapConfig.MAX_ZOOM[name],
            }
        ],
    }
