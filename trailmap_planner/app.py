"""Trail Map Planner - Interactive backcountry trail map.

Click a trail on the map to highlight it and see its elevation profile.
Layers, 3D terrain and the basemap can be switched from the sidebar without
losing the selection or layer choices.

Run: streamlit run trailmap_planner/app.py
"""

import logging
import traceback

import streamlit as st

from trailmap_planner.constants import (
    AppConfig,
    BasemapConfig,
    DataConfig,
    TerrainConfig,
)
from trailmap_planner.core.elevation_sampler import ElevationSampler
from trailmap_planner.core.elevation_source import DEMElevationSource, ElevationSource, TilequeryElevationSource
from trailmap_planner.core.profile_builder import ProfileBuilder, ProfileService
from trailmap_planner.data import load_trail_collection
from trailmap_planner.layers import LayerRegistry, LayerSynchronizer, StyleDocumentEngine, basemap_style
from trailmap_planner.model.map_state import CameraState
from trailmap_planner.ui import MapRenderer, ProfileChart, TrailController
from trailmap_planner.ui.pydeck_click_handler import MAP_KEY, render_pydeck_map

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# SESSION STATE
# =============================================================================


def create_elevation_sampler() -> ElevationSampler:
    """Local DEM when available, otherwise Mapbox Tilequery contours."""
    source: ElevationSource
    if DataConfig.DEM_PATH.exists():
        logger.info(f"[ELEVATION] Using local DEM {DataConfig.DEM_PATH}")
        source = DEMElevationSource(dem_path=DataConfig.DEM_PATH)
        return ElevationSampler(
            source=source,
            radius_m=DataConfig.DEM_SEARCH_RADIUS_M,
            limit=DataConfig.DEM_CANDIDATE_LIMIT,
        )
    logger.info("[ELEVATION] Using Mapbox Tilequery contours")
    return ElevationSampler(source=TilequeryElevationSource())


def init_session_state() -> None:
    """Initialize engine, synchronizer and trail controller once per session."""
    if "engine" in st.session_state:
        return

    with st.spinner("Loading trails..."):
        trails = load_trail_collection()

    engine = StyleDocumentEngine(style=basemap_style(BasemapConfig.DEFAULT), camera=CameraState())
    synchronizer = LayerSynchronizer(
        engine=engine,
        registry=LayerRegistry.default(trails_data=trails),
        basemap=BasemapConfig.DEFAULT,
    )
    service = ProfileService(builder=ProfileBuilder(sampler=create_elevation_sampler()), selection=synchronizer.selection)

    st.session_state.engine = engine
    st.session_state.synchronizer = synchronizer
    st.session_state.controller = TrailController(synchronizer=synchronizer, service=service)
    st.session_state.map_renderer = MapRenderer(engine=engine)


def reset_ui_state() -> None:
    """Drop the session objects so the next run rebuilds them."""
    logger.info("Resetting UI state due to error recovery")
    synchronizer: LayerSynchronizer | None = st.session_state.get("synchronizer")
    if synchronizer is not None:
        synchronizer.dispose()
    controller: TrailController | None = st.session_state.get("controller")
    if controller is not None:
        controller.service.shutdown()
    for key in ("engine", "synchronizer", "controller", "map_renderer"):
        st.session_state.pop(key, None)


# =============================================================================
# SIDEBAR
# =============================================================================


def render_sidebar(synchronizer: LayerSynchronizer) -> None:
    """Basemap, layer toggles and 3D terrain controls."""
    state = synchronizer.state
    st.sidebar.header("Map")

    basemap = st.sidebar.selectbox(
        "Basemap",
        options=BasemapConfig.NAMES,
        index=BasemapConfig.NAMES.index(state.basemap),
        format_func=lambda name: BasemapConfig.DISPLAY_NAMES[name],
    )
    if basemap != state.basemap:
        synchronizer.swap_basemap(basemap)

    st.sidebar.subheader("Layers")
    for toggle in synchronizer.registry.toggles:
        visible = st.sidebar.checkbox(toggle.label, value=state.is_enabled(toggle.name), key=f"toggle_{toggle.name}")
        if visible != state.is_enabled(toggle.name):
            synchronizer.toggle(toggle.name, visible)

    st.sidebar.subheader("Terrain")
    terrain_3d = st.sidebar.toggle("3D terrain", value=state.terrain_3d)
    if terrain_3d != state.terrain_3d:
        synchronizer.set_terrain_3d(terrain_3d)

    exaggeration = st.sidebar.slider(
        "Exaggeration",
        min_value=TerrainConfig.MIN_EXAGGERATION,
        max_value=TerrainConfig.MAX_EXAGGERATION,
        value=state.terrain_exaggeration,
        step=0.1,
        disabled=not state.terrain_3d,
    )
    if exaggeration != state.terrain_exaggeration:
        synchronizer.set_terrain_exaggeration(exaggeration)

    if synchronizer.is_degraded:
        st.sidebar.warning(f"Some layers failed to load: {', '.join(synchronizer.last_error.missing_layers)}")


# =============================================================================
# MAP AND TRAIL PANEL
# =============================================================================


def render_map(controller: TrailController, renderer: MapRenderer) -> None:
    """Render the map and route clicks to the trail controller."""
    deck = renderer.render(hover=controller.hover_position)
    # One key for the whole session: the mounted deck keeps the user's view while style updates stream in
    click = render_pydeck_map(deck=deck, key=MAP_KEY)
    if not click.is_click:
        return

    feature = controller.handle_map_click(click.coordinate)
    if feature is not None:
        with st.spinner(f"Sampling elevation along {feature.name}..."):
            controller.wait_for_profile()
    st.rerun()


def render_trail_panel(controller: TrailController) -> None:
    """Trail name, description, elevation profile and close button."""
    trail = controller.trail
    if trail is None:
        st.caption("Click a trail on the map to see its elevation profile.")
        return

    st.subheader(trail.name)
    st.write(trail.description)

    chart = ProfileChart()
    event = st.plotly_chart(
        chart.render(selection=trail),
        key=f"profile_{trail.feature_id}",
        on_select="rerun",
        selection_mode="points",
    )
    points = event.selection.points if event and event.selection else []
    hovered = points[0].get("point_index") if points else None
    if hovered is not None and points[0].get("curve_number") == 0:
        controller.hover_index(hovered)
    else:
        controller.hover(None)

    if st.button("Close", key="close_trail_panel"):
        controller.close_panel()
        st.rerun()


# =============================================================================
# MAIN
# =============================================================================


def main() -> None:
    """Application entry point."""
    st.set_page_config(page_title=AppConfig.TITLE, page_icon=AppConfig.ICON, layout=AppConfig.LAYOUT)
    st.title(AppConfig.TITLE)

    if not AppConfig.mapbox_token():
        st.warning(f"Set {AppConfig.MAPBOX_TOKEN_ENV} to load Mapbox terrain, overlays and contour elevations.")

    try:
        init_session_state()
        _run_app_ui()
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        full_traceback = traceback.format_exc()
        logger.error(f"[UI] UI error caught: {error_msg}\n{full_traceback}")
        st.error(f"[UI] Something went wrong: {error_msg}")
        reset_ui_state()
        if st.button("Reset and Continue", type="primary"):
            st.rerun()


def _run_app_ui() -> None:
    """Run the main application UI. Separated for error handling wrapper."""
    synchronizer: LayerSynchronizer = st.session_state.synchronizer
    controller: TrailController = st.session_state.controller
    renderer: MapRenderer = st.session_state.map_renderer

    logger.info(
        f"[MAIN] Render cycle: layers={synchronizer.machine.get_state_name()}, "
        f"selection={synchronizer.selection.feature_id!r}"
    )
    controller.poll()

    render_sidebar(synchronizer)

    col_map, col_panel = st.columns([3, 1])
    with col_map:
        render_map(controller, renderer)
    with col_panel:
        render_trail_panel(controller)


if __name__ == "__main__":
    main()
