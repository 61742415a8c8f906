"""ProfileChart - Plotly elevation profile rendering.

Renders the selected trail's elevation profile showing:
- Terrain elevation along the trail (area fill)
- Slope gradient coloring per step
- Stats annotation (distance, gain, average and max slope)

Selecting (clicking) a point on the chart reports its sample index through
Streamlit's plotly selection, which the TrailController turns into a map marker.
Streamlit has no plotly hover callback, so the marker follows the selection.
"""

import logging

import plotly.graph_objects as go

from trailmap_planner.constants import ChartConfig
from trailmap_planner.model.elevation_profile import ElevationProfile
from trailmap_planner.model.trail import TrailSelection

logger = logging.getLogger(__name__)

PROFILE_TRACE_NAME = "Elevation"


class ProfileChart:
    """Renders elevation profiles using Plotly.

    Example:
        chart = ProfileChart()
        fig = chart.render(selection=selection)
        st.plotly_chart(fig)
    """

    def __init__(
        self,
        width: int = ChartConfig.PROFILE_WIDTH,
        height: int = ChartConfig.PROFILE_HEIGHT,
    ) -> None:
        """Initialize profile chart renderer.

        Args:
            width: Chart width in pixels
            height: Chart height in pixels
        """
        self.width = width
        self.height = height

    def render(self, selection: TrailSelection) -> go.Figure:
        """Render elevation profile for a selected trail.

        Args:
            selection: Trail name, description and profile

        Returns:
            Plotly Figure object (a placeholder message if the profile is empty).
        """
        profile = selection.profile
        if profile.is_empty:
            return self._empty_figure(message="No elevation data for this trail")

        distances = profile.distances_km
        elevations = profile.elevations_m

        # Y-axis range does not start from 0
        min_elev = profile.min_elevation_m
        max_elev = profile.max_elevation_m
        padding = max(
            (max_elev - min_elev) * ChartConfig.ELEVATION_PADDING_FACTOR,
            ChartConfig.ELEVATION_PADDING_MIN_M,
        )

        fig = go.Figure()
        fig.add_trace(
            go.Scatter(
                x=distances,
                y=elevations,
                fill="tozeroy",
                fillcolor=ChartConfig.FILL_COLOR,
                line=dict(color=ChartConfig.LINE_COLOR, width=2),
                name=PROFILE_TRACE_NAME,
                hovertemplate="Distance: %{x:.2f}km<br>Elevation: %{y:.0f}m<extra></extra>",
            )
        )
        self._add_gradient_segments(fig=fig, profile=profile, baseline=min_elev - padding / 2)

        fig.update_layout(
            title=dict(text=selection.name, x=0.5),
            xaxis=dict(
                title="Distance (km)",
                showgrid=True,
                gridcolor="rgba(200, 200, 200, 0.3)",
            ),
            yaxis=dict(
                title="Elevation (m)",
                showgrid=True,
                gridcolor="rgba(200, 200, 200, 0.3)",
                range=[min_elev - padding, max_elev + padding],
            ),
            showlegend=False,
            hovermode="x",
            width=self.width,
            height=self.height,
            margin=dict(l=50, r=20, t=40, b=60),
            plot_bgcolor="white",
        )

        fig.add_annotation(
            xref="paper",
            yref="paper",
            x=0.5,
            y=-0.3,
            text=self.stats_text(profile),
            showarrow=False,
            font=dict(size=11),
        )
        return fig

    @staticmethod
    def stats_text(profile: ElevationProfile) -> str:
        return (
            f"Distance: {profile.total_distance_km:.2f}km | "
            f"Gain: {profile.elevation_gain_m:.0f}m | "
            f"Avg Slope: {profile.average_slope_deg:.1f}° | "
            f"Max Slope: {profile.max_slope_deg:.1f}°"
        )

    def _add_gradient_segments(self, fig: go.Figure, profile: ElevationProfile, baseline: float) -> None:
        """Add slope-colored segment markers along the bottom of the chart."""
        distances = profile.distances_km
        for i, slope_pct in enumerate(profile.slopes_pct):
            if i == 0 or distances[i] <= distances[i - 1]:
                continue
            fig.add_trace(
                go.Scatter(
                    x=[distances[i - 1], distances[i]],
                    y=[baseline, baseline],
                    mode="lines",
                    line=dict(color=ChartConfig.slope_color(slope_pct), width=6),
                    showlegend=False,
                    hoverinfo="skip",
                )
            )

    def _empty_figure(self, message: str) -> go.Figure:
        """Create empty figure with message."""
        fig = go.Figure()
        fig.add_annotation(
            xref="paper",
            yref="paper",
            x=0.5,
            y=0.5,
            text=message,
            showarrow=False,
            font=dict(size=14, color="gray"),
        )
        fig.update_layout(
            width=self.width,
            height=self.height,
            xaxis=dict(visible=False),
            yaxis=dict(visible=False),
            plot_bgcolor="white",
        )
        return fig
