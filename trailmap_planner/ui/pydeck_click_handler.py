"""Pydeck click handler using streamlit-deckgl for map click support.

Trail lines live in the basemap style, not in deck.gl layers, so deck.gl
never reports them as picked objects. We only need the clicked coordinate;
the LayerSynchronizer hit-tests it against the trail layers.

The key difference from st.pydeck_chart:
- st.pydeck_chart: Only returns object selections (pickable=True objects)
- st_deckgl: Returns full deck.gl onClick event with coordinate field for ALL clicks

st_deckgl creates the deck once per key and pushes later specs into it in
place. The user's pan and zoom are never reported back, so the map must keep
one key (MAP_KEY) for the session: a new key remounts the deck at
initial_view_state and throws the live view away.
"""

import logging
from dataclasses import dataclass
from typing import Any

import pydeck as pdk
import streamlit as st
from streamlit_deckgl import st_deckgl  # type: ignore[import-untyped]

from trailmap_planner.model.coordinate import Coordinate

logger = logging.getLogger(__name__)

MAP_HEIGHT = 640
MAP_KEY = "trail_map"


@dataclass
class MapClickResult:
    """Result from map click detection.

    Attributes:
        coordinate: Clicked position, or None if nothing new was clicked
    """

    coordinate: Coordinate | None

    @property
    def is_click(self) -> bool:
        return self.coordinate is not None

    @staticmethod
    def empty() -> "MapClickResult":
        """Return empty result (no click detected)."""
        return MapClickResult(coordinate=None)


def parse_click_event(event: Any) -> Coordinate | None:
    """Extract the [lon, lat] coordinate from an st_deckgl click event."""
    if not isinstance(event, dict):
        return None
    coord = event.get("coordinate")
    if isinstance(coord, (list, tuple)) and len(coord) >= 2:
        return Coordinate(lon=float(coord[0]), lat=float(coord[1]))
    return None


def render_pydeck_map(deck: pdk.Deck, key: str = MAP_KEY, height: int = MAP_HEIGHT) -> MapClickResult:
    """Render Pydeck map and report new clicks.

    Streamlit reruns return the last event again, so a click with the same
    rounded coordinate as the previous one is ignored.

    Args:
        deck: Configured pydeck.Deck object
        key: Unique key for this component instance
        height: Height in pixels

    Returns:
        MapClickResult with the clicked coordinate, or an empty result
    """
    last_click_key = f"_deckgl_last_click_{key}"
    if last_click_key not in st.session_state:
        st.session_state[last_click_key] = None

    # MUST pass events=['click'] to enable click detection!
    event = st_deckgl(deck, key=key, height=height, events=["click"])
    if not event:
        return MapClickResult.empty()

    coordinate = parse_click_event(event)
    if coordinate is None:
        return MapClickResult.empty()

    click_id = click_id_for(coordinate)
    if click_id == st.session_state.get(last_click_key):
        return MapClickResult.empty()
    st.session_state[last_click_key] = click_id

    logger.debug(f"Click detected at {coordinate}")
    return MapClickResult(coordinate=coordinate)


def click_id_for(coordinate: Coordinate) -> str:
    """Generate ID for click deduplication (rounded for tolerance)."""
    return f"coord_{coordinate.lon:.5f}_{coordinate.lat:.5f}"
