"""User interface components for the trail map.

File Structure:
- center_map.py: Pydeck map built from the engine's style document
- profile_chart.py: Plotly elevation profile chart
- pydeck_click_handler.py: Map click capture via streamlit-deckgl
- trail_controller.py: Click -> selection -> profile -> trail panel flow
"""

from trailmap_planner.ui.center_map import MapRenderer
from trailmap_planner.ui.profile_chart import ProfileChart
from trailmap_planner.ui.trail_controller import TrailController

__all__ = [
    "MapRenderer",
    "ProfileChart",
    "TrailController",
]
