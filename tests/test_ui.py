"""Tests for the trail map UI layer without a running Streamlit server.

Tests: TrailController, click parsing/deduplication ids, MapRenderer
Focus: Selection flow between map clicks, highlight and trail panel

Note: Fixtures are defined in conftest.py (synchronizer, FakeElevationSource).
"""

import json
import threading
from collections.abc import Iterator

import pytest

from trailmap_planner.constants import BasemapConfig, LayerConfig, StyleConfig
from trailmap_planner.core.elevation_sampler import ElevationSampler
from trailmap_planner.core.profile_builder import ProfileBuilder, ProfileService
from trailmap_planner.layers.basemaps import basemap_style
from trailmap_planner.layers.registry import LayerRegistry
from trailmap_planner.layers.synchronizer import LayerSynchronizer
from trailmap_planner.model.coordinate import Coordinate
from trailmap_planner.model.map_state import CameraState
from trailmap_planner.model.trail import TrailSelection
from trailmap_planner.ui.center_map import HOVER_LAYER_ID, MapRenderer, hex_to_rgba
from trailmap_planner.ui.pydeck_click_handler import MapClickResult, click_id_for, parse_click_event
from trailmap_planner.ui.trail_controller import TrailController

from conftest import CameraResettingEngine, FakeElevationSource

ON_TRAIL_1 = Coordinate(lon=0.0, lat=0.004)
ON_TRAIL_2 = Coordinate(lon=0.01, lat=0.004)
EMPTY_MAP = Coordinate(lon=0.005, lat=0.004)


class Recorder:
    """Collects controller callbacks."""

    def __init__(self) -> None:
        self.selected: list[TrailSelection] = []
        self.cleared = 0

    def on_selected(self, selection: TrailSelection) -> None:
        self.selected.append(selection)

    def on_cleared(self) -> None:
        self.cleared += 1


@pytest.fixture
def gate() -> threading.Event:
    return threading.Event()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def controller(
    synchronizer: LayerSynchronizer, gate: threading.Event, recorder: Recorder
) -> Iterator[TrailController]:
    """Controller whose elevation queries block until `gate` is set."""
    builder = ProfileBuilder(sampler=ElevationSampler(source=FakeElevationSource(gate=gate)))
    service = ProfileService(builder=builder, selection=synchronizer.selection)
    yield TrailController(
        synchronizer=synchronizer,
        service=service,
        on_trail_selected=recorder.on_selected,
        on_trail_cleared=recorder.on_cleared,
    )
    gate.set()
    service.shutdown()


# =============================================================================
# TRAIL CONTROLLER
# =============================================================================


class TestTrailController:
    """TrailController - click → highlight → profile → panel."""

    def test_click_on_trail_selects_and_delivers_profile(
        self, controller: TrailController, gate: threading.Event, recorder: Recorder
    ) -> None:
        feature = controller.handle_map_click(ON_TRAIL_1)

        assert feature is not None and feature.name == "Long Trail"
        assert controller.synchronizer.selection.feature_id == "1"
        assert controller.is_loading
        assert not controller.panel_open

        gate.set()
        selection = controller.wait_for_profile(timeout=5)

        assert selection is not None
        assert selection.name == "Long Trail"
        assert controller.trail == selection
        assert controller.panel_open and not controller.is_loading
        assert recorder.selected == [selection]

    def test_poll_never_blocks(self, controller: TrailController, gate: threading.Event) -> None:
        controller.handle_map_click(ON_TRAIL_1)
        assert controller.poll() is None
        assert controller.is_loading

        gate.set()
        controller.pending.future.result(timeout=5)
        assert controller.poll() is not None
        assert controller.panel_open

    def test_second_click_supersedes_first(
        self, controller: TrailController, gate: threading.Event, recorder: Recorder
    ) -> None:
        controller.handle_map_click(ON_TRAIL_1)
        controller.handle_map_click(ON_TRAIL_2)
        gate.set()

        selection = controller.wait_for_profile(timeout=5)

        assert selection is not None and selection.name == "Sunset Ridge"
        assert [s.name for s in recorder.selected] == ["Sunset Ridge"]
        assert controller.synchronizer.selection.feature_id == "2"

    def test_empty_click_clears_everything(
        self, controller: TrailController, gate: threading.Event, recorder: Recorder
    ) -> None:
        controller.handle_map_click(ON_TRAIL_1)
        gate.set()
        controller.wait_for_profile(timeout=5)

        assert controller.handle_map_click(EMPTY_MAP) is None

        assert controller.trail is None
        assert controller.synchronizer.selection.feature_id is None
        assert recorder.cleared == 1
        engine = controller.synchronizer.engine
        assert engine.get_paint_property(LayerConfig.TRAILS, "line-color") == StyleConfig.TRAIL_COLOR

    def test_empty_click_while_loading_drops_profile(
        self, controller: TrailController, gate: threading.Event, recorder: Recorder
    ) -> None:
        controller.handle_map_click(ON_TRAIL_1)
        controller.handle_map_click(EMPTY_MAP)
        gate.set()

        assert not controller.is_loading
        assert controller.wait_for_profile(timeout=5) is None
        assert recorder.selected == []
        assert recorder.cleared == 1

    def test_empty_click_without_selection_is_quiet(self, controller: TrailController, recorder: Recorder) -> None:
        controller.handle_map_click(EMPTY_MAP)
        assert recorder.cleared == 0

    def test_close_panel(self, controller: TrailController, gate: threading.Event) -> None:
        controller.handle_map_click(ON_TRAIL_1)
        gate.set()
        controller.wait_for_profile(timeout=5)

        controller.close_panel()

        assert not controller.panel_open
        assert controller.synchronizer.selection.feature_id is None

    def test_hover_index_follows_profile(self, controller: TrailController, gate: threading.Event) -> None:
        controller.hover_index(0)
        assert controller.hover_position is None

        controller.handle_map_click(ON_TRAIL_1)
        gate.set()
        selection = controller.wait_for_profile(timeout=5)

        controller.hover_index(0)
        assert controller.hover_position == selection.profile[0].coordinates
        controller.hover_index(len(selection.profile))
        assert controller.hover_position is None


# =============================================================================
# CLICK PARSING
# =============================================================================


class TestClickParsing:
    def test_coordinate_event(self) -> None:
        assert parse_click_event({"coordinate": [-72.81, 44.54]}) == Coordinate(lon=-72.81, lat=44.54)

    @pytest.mark.parametrize("event", [None, "click", {}, {"coordinate": None}, {"coordinate": [1.0]}])
    def test_events_without_coordinate(self, event: object) -> None:
        assert parse_click_event(event) is None

    def test_click_id_rounds_jitter(self) -> None:
        a = Coordinate(lon=-72.814600, lat=44.543800)
        b = Coordinate(lon=-72.8146001, lat=44.5438001)
        assert click_id_for(a) == click_id_for(b)
        assert click_id_for(a) != click_id_for(Coordinate(lon=-72.8147, lat=44.5438))

    def test_empty_result(self) -> None:
        assert not MapClickResult.empty().is_click
        assert MapClickResult(coordinate=ON_TRAIL_1).is_click


# =============================================================================
# MAP RENDERER
# =============================================================================


class TestMapRenderer:
    def test_hex_to_rgba(self) -> None:
        assert hex_to_rgba("#FFF") == [255, 255, 255, 255]
        assert hex_to_rgba("#2D5A27", alpha=128) == [45, 90, 39, 128]
        with pytest.raises(ValueError):
            hex_to_rgba("rgba(0, 0, 0, 1)")

    def test_deck_uses_live_style(self, synchronizer: LayerSynchronizer) -> None:
        renderer = MapRenderer(engine=synchronizer.engine, mapbox_token="pk.test")
        deck = renderer.render()

        assert deck.map_provider == "mapbox"
        assert isinstance(deck.map_style, dict)
        layer_ids = [layer["id"] for layer in deck.map_style["layers"]]
        assert layer_ids[-1] == LayerConfig.TRAILS
        assert deck.layers == []

    def test_view_state_follows_camera(self, synchronizer: LayerSynchronizer) -> None:
        synchronizer.set_terrain_3d(False)
        view = MapRenderer(engine=synchronizer.engine, mapbox_token="").get_view_state()
        assert view.pitch == 0.0

    def test_hover_marker(self, synchronizer: LayerSynchronizer) -> None:
        deck = MapRenderer(engine=synchronizer.engine, mapbox_token="").render(hover=ON_TRAIL_1)
        assert [layer.id for layer in deck.layers] == [HOVER_LAYER_ID]

    def test_view_state_unchanged_by_basemap_swap(self, registry: LayerRegistry) -> None:
        """The mounted deck only resets its view when initialViewState changes."""
        engine = CameraResettingEngine(style=basemap_style(BasemapConfig.DEFAULT))
        synchronizer = LayerSynchronizer(engine=engine, registry=registry, basemap=BasemapConfig.DEFAULT)
        engine.set_camera(CameraState(center=Coordinate(lon=-72.80, lat=44.55), zoom=14.5, pitch=60.0, bearing=30.0))
        renderer = MapRenderer(engine=engine, mapbox_token="")
        before = json.loads(renderer.render().to_json())

        synchronizer.swap_basemap(BasemapConfig.SATELLITE)
        after = json.loads(renderer.render().to_json())

        assert synchronizer.is_ready
        assert after["initialViewState"] == before["initialViewState"]
        assert after["mapStyle"] != before["mapStyle"]
