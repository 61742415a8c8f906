"""Layer synchronization against an asynchronously loaded map style.

Uses python-statemachine so style reloads are a designed case instead of
"does this layer exist yet?" checks scattered through the control flow.

States:
    style_loading: A style is being (re)loaded; managed layers may be absent
    restoring: Style loaded, waiting for every required layer to exist
    ready: All layers present, recorded state applied
    degraded: Retry ceiling hit; recorded state is kept and applied lazily
    disposed: Map view torn down (final)

Transitions:
    style_loading -> restoring: style_loaded (engine "style.load")
    restoring -> ready: layers_confirmed
    restoring -> degraded: restore_exhausted
    restoring | ready | degraded -> style_loading: style_swapped (basemap swap)
    any non-final -> disposed: dispose

User intent (toggles, selection, terrain) is always recorded in
LayerRuntimeState / SelectionState first and then applied to whatever
layers currently exist. Anything that could not be applied is picked up by
the next ensure or restore.
"""

import logging
from typing import Any, Optional

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from trailmap_planner.constants import LayerConfig, MapConfig, RetryConfig, StyleConfig, TerrainConfig
from trailmap_planner.errors import LayerRestoreError
from trailmap_planner.layers.basemaps import basemap_style
from trailmap_planner.layers.engine import EVENT_IDLE, EVENT_STYLE_LOAD, RenderingEngine
from trailmap_planner.layers.registry import LayerRegistry, visibility_value
from trailmap_planner.model.coordinate import Coordinate
from trailmap_planner.model.map_state import CameraState, LayerRuntimeState, SelectionState
from trailmap_planner.model.trail import TrailFeature

logger = logging.getLogger(__name__)


class LoggingListener:
    """Logs every layer-sync state transition.

    Usage:
        sm = LayerSyncStateMachine()
        sm.add_listener(LoggingListener())
    """

    def after_transition(self, event: str, source: State, target: State) -> None:
        logger.info(f"[LAYERS] {source.name} --({event})--> {target.name}")


class LayerSyncStateMachine(StateMachine):
    """Lifecycle of the managed layers relative to the live style."""

    style_loading = State("StyleLoading", initial=True)
    restoring = State("Restoring")
    ready = State("Ready")
    degraded = State("Degraded")
    disposed = State("Disposed", final=True)

    # Style finished loading, managed layers are being (re)created
    style_loaded = style_loading.to(restoring)
    # Every required layer exists and recorded state was applied
    layers_confirmed = restoring.to(ready)
    # Retry ceiling reached with layers still missing
    restore_exhausted = restoring.to(degraded)
    # Basemap replaced; everything we added is gone
    style_swapped = restoring.to(style_loading) | ready.to(style_loading) | degraded.to(style_loading)
    # Map view torn down
    dispose = (
        style_loading.to(disposed) | restoring.to(disposed) | ready.to(disposed) | degraded.to(disposed)
    )

    def get_state_name(self) -> str:
        return self.current_state.name

    def try_transition(self, event: str) -> bool:
        """Attempt a transition, returning success/failure."""
        try:
            self.send(event)
            return True
        except TransitionNotAllowed:
            logger.warning(f"[LAYERS] Transition '{event}' not allowed from {self.get_state_name()}")
            return False


def highlight_expression(feature_id: str, selected_value: Any, default_value: Any) -> list[Any]:
    """Two-way paint rule: selected_value for the matching feature, default_value for the rest."""
    return [
        "case",
        ["==", ["to-string", ["get", StyleConfig.FEATURE_ID_PROPERTY]], feature_id],
        selected_value,
        default_value,
    ]


class LayerSynchronizer:
    """Keeps the managed sources/layers of a RenderingEngine in the recorded state.

    Single writer of LayerRuntimeState and SelectionState. All methods run on
    the engine's thread; the restore retry goes through engine.schedule().

    Example:
        engine = StyleDocumentEngine(style=basemap_style("dark"))
        sync = LayerSynchronizer(engine=engine, registry=LayerRegistry.default(trails))
        sync.toggle("contours", False)
        epoch = sync.select("trail-42")
        sync.swap_basemap("outdoors")
    """

    def __init__(
        self,
        engine: RenderingEngine,
        registry: LayerRegistry,
        basemap: Optional[str] = None,
        retry_interval_s: float = RetryConfig.INTERVAL_S,
        max_attempts: int = RetryConfig.MAX_ATTEMPTS,
    ) -> None:
        """Initialize and subscribe to the engine's style events.

        Args:
            engine: Live rendering engine
            registry: Managed sources, layers and toggles
            basemap: Name of the basemap the engine was created with
            retry_interval_s: Delay between restore attempts
            max_attempts: Restore attempts before giving up (degraded)
        """
        self.engine = engine
        self.registry = registry
        self.retry_interval_s = retry_interval_s
        self.max_attempts = max_attempts

        self.state = LayerRuntimeState(toggles={t.name: t.default_enabled for t in registry.toggles})
        if basemap is not None:
            self.state.basemap = basemap
        self.selection = SelectionState()
        self.machine = LayerSyncStateMachine()
        self.machine.add_listener(LoggingListener())

        self.last_error: Optional[LayerRestoreError] = None
        self._captured_camera: Optional[CameraState] = None
        self._attempts = 0
        self._retry_pending = False

        self.state.set_paint(LayerConfig.CONTOURS, "line-color", StyleConfig.contour_color(self.state.basemap))
        self.engine.on(EVENT_STYLE_LOAD, self.on_style_load)
        self.engine.on(EVENT_IDLE, self.on_idle)

        if self.engine.is_style_loaded():
            self.on_style_load()
            self.on_idle()

    # =========================================================================
    # STATE CHECKS
    # =========================================================================

    @property
    def is_ready(self) -> bool:
        return self.machine.ready.is_active

    @property
    def is_degraded(self) -> bool:
        return self.machine.degraded.is_active

    @property
    def is_disposed(self) -> bool:
        return self.machine.disposed.is_active

    def missing_layers(self) -> list[str]:
        return [layer_id for layer_id in LayerConfig.REQUIRED_LAYERS if self.engine.get_layer(layer_id) is None]

    # =========================================================================
    # ENSURE AND ORDER
    # =========================================================================

    def ensure_sources(self) -> None:
        """Create every registry source that the live style lacks."""
        for source in self.registry.sources:
            if self.engine.get_source(source.id) is None:
                self.engine.add_source(source.id, source.to_style())
                logger.debug(f"[LAYERS] Added source '{source.id}'")

    def ensure_layers(self) -> None:
        """Create every registry layer that the live style lacks, with recorded state."""
        for spec in self.registry.layers:
            if self.engine.get_layer(spec.id) is not None:
                continue
            if self.engine.get_source(spec.source_id) is None:
                logger.warning(f"[LAYERS] Skipping '{spec.id}': source '{spec.source_id}' missing")
                continue
            self.engine.add_layer(spec.to_style(self._desired_visibility(spec.id), self.state.paint_for(spec.id)))
            logger.debug(f"[LAYERS] Added layer '{spec.id}'")
        self.reorder()

    def ensure_all(self) -> None:
        """Create all missing sources, then all missing layers, then reorder."""
        self.ensure_sources()
        self.ensure_layers()

    def reorder(self) -> None:
        """Move each existing managed layer directly above its nearest existing predecessor.

        Runs bottom to top, so after one pass the existing subset is in
        canonical order no matter what order the layers were created in.
        """
        existing = [layer_id for layer_id in self.registry.stack_order if self.engine.get_layer(layer_id) is not None]
        for lower, upper in zip(existing, existing[1:]):
            self._move_above(upper, lower)

    def _move_above(self, layer_id: str, below_id: str) -> None:
        order = self.engine.layer_order()
        index = order.index(below_id)
        before_id = order[index + 1] if index + 1 < len(order) else None
        if before_id == layer_id:
            return
        self.engine.move_layer(layer_id, before_id)

    def _desired_visibility(self, layer_id: str) -> bool:
        if layer_id == LayerConfig.TERRAIN_DEM:
            return False
        toggle = self.registry.toggle_for_layer(layer_id)
        if toggle is None:
            return self.registry.layer(layer_id).default_visibility
        return self.state.is_enabled(toggle.name)

    # =========================================================================
    # USER OPERATIONS
    # =========================================================================

    def toggle(self, name: str, visible: bool) -> None:
        """Show or hide the layers behind a user toggle.

        Recorded even when the layers do not exist yet.

        Raises:
            UnknownToggleError: If the toggle is not in the registry.
        """
        toggle = self.registry.toggle(name)
        self.state.set_toggle(name, visible)
        applied = [layer_id for layer_id in toggle.layer_ids if self._set_visibility(layer_id, visible)]
        for layer_id in toggle.hide_layer_ids:
            self._set_visibility(layer_id, False)
        if applied:
            self.reorder()
        logger.info(f"[LAYERS] Toggle '{name}' -> {visible} (applied to {applied or 'no existing layers'})")

    def select(self, feature_id: Optional[str]) -> int:
        """Highlight one trail (or clear the highlight with None).

        Returns:
            The new selection epoch.
        """
        epoch = self.selection.select(feature_id)
        self._record_selection_paint()
        self._apply_selection()
        self.reorder()
        logger.info(f"[LAYERS] Selection -> {feature_id!r} (epoch {epoch})")
        return epoch

    def deselect(self) -> int:
        return self.select(None)

    def set_terrain_3d(self, enabled: bool) -> None:
        """Enable or disable 3D terrain and ease the camera pitch to match."""
        self.state.terrain_3d = enabled
        self._apply_terrain()
        pitch = MapConfig.DEFAULT_PITCH if enabled else MapConfig.FLAT_PITCH
        self.engine.ease_to(pitch=pitch, duration_ms=MapConfig.EASE_DURATION_MS)

    def set_terrain_exaggeration(self, exaggeration: float) -> None:
        if not TerrainConfig.MIN_EXAGGERATION <= exaggeration <= TerrainConfig.MAX_EXAGGERATION:
            raise ValueError(
                f"Exaggeration {exaggeration} outside "
                f"[{TerrainConfig.MIN_EXAGGERATION}, {TerrainConfig.MAX_EXAGGERATION}]"
            )
        self.state.terrain_exaggeration = exaggeration
        self._apply_terrain()

    def swap_basemap(self, name: str) -> None:
        """Replace the base style, keeping toggles, selection, terrain and camera.

        Raises:
            UnknownBasemapError: If the name is not a known basemap.
        """
        style = basemap_style(name)
        self._captured_camera = self.engine.get_camera()
        self.state.basemap = name
        self.state.set_paint(LayerConfig.CONTOURS, "line-color", StyleConfig.contour_color(name))
        self._attempts = 0
        self._retry_pending = False
        if not self.machine.style_loading.is_active:
            self.machine.try_transition("style_swapped")
        logger.info(f"[STYLE] Swapping basemap to '{name}'")
        self.engine.set_style(style)

    def hit_test(self, point: Coordinate) -> Optional[TrailFeature]:
        """The topmost trail under a clicked point, or None for empty map space."""
        hits = self.engine.query_rendered_features(point, list(LayerConfig.CLICKABLE_LAYERS))
        if not hits:
            return None
        feature = hits[0]
        return TrailFeature.from_geojson(feature, layer_id=feature.get("layer"))

    def dispose(self) -> None:
        """Unsubscribe from the engine. Further events are ignored."""
        if self.is_disposed:
            return
        self.engine.off(EVENT_STYLE_LOAD, self.on_style_load)
        self.engine.off(EVENT_IDLE, self.on_idle)
        self._retry_pending = False
        self.machine.try_transition("dispose")

    # =========================================================================
    # STYLE EVENTS
    # =========================================================================

    def on_style_load(self) -> None:
        """Re-create everything the new style dropped and restore the camera."""
        if self.is_disposed:
            return
        if self.machine.style_loading.is_active:
            self.machine.try_transition("style_loaded")
        self.ensure_all()
        self._apply_contour_color()
        if self._captured_camera is not None:
            self.engine.set_camera(self._captured_camera)
            logger.info(f"[STYLE] Restored camera {self._captured_camera}")
            self._captured_camera = None
        self._apply_terrain()

    def on_idle(self) -> None:
        if self.machine.restoring.is_active and not self._retry_pending:
            self.restore()

    def restore(self) -> None:
        """Apply recorded state once every required layer exists, retrying on a fixed interval."""
        self._retry_pending = False
        if not self.machine.restoring.is_active:
            return
        self._attempts += 1
        missing = self.missing_layers()
        if missing:
            if self._attempts >= self.max_attempts:
                self.last_error = LayerRestoreError(missing_layers=missing, attempts=self._attempts)
                logger.warning(f"[LAYERS] {self.last_error}")
                self.machine.try_transition("restore_exhausted")
                return
            logger.debug(f"[LAYERS] Waiting for {missing} (attempt {self._attempts}/{self.max_attempts})")
            self._retry_pending = True
            self.engine.schedule(self.retry_interval_s, self.restore)
            return

        self._apply_runtime_state()
        self.reorder()
        self.last_error = None
        logger.info(f"[LAYERS] Restored layer state after {self._attempts} attempt(s)")
        self.machine.try_transition("layers_confirmed")

    # =========================================================================
    # APPLY RECORDED STATE
    # =========================================================================

    def _apply_runtime_state(self) -> None:
        for toggle in self.registry.toggles:
            visible = self.state.is_enabled(toggle.name)
            for layer_id in toggle.layer_ids:
                self._set_visibility(layer_id, visible)
            for layer_id in toggle.hide_layer_ids:
                self._set_visibility(layer_id, False)
        self._apply_contour_color()
        self._apply_selection()

    def _record_selection_paint(self) -> None:
        feature_id = self.selection.feature_id
        if feature_id is None:
            trail_color: Any = StyleConfig.TRAIL_COLOR
            trail_width: Any = StyleConfig.TRAIL_LINE_WIDTH
            border_color: Any = StyleConfig.BORDER_COLOR
            border_width: Any = StyleConfig.BORDER_LINE_WIDTH
        else:
            trail_color = highlight_expression(feature_id, StyleConfig.HIGHLIGHT_COLOR, StyleConfig.TRAIL_COLOR)
            trail_width = highlight_expression(
                feature_id, StyleConfig.HIGHLIGHT_LINE_WIDTH, StyleConfig.TRAIL_LINE_WIDTH
            )
            border_color = highlight_expression(feature_id, StyleConfig.HIGHLIGHT_COLOR, StyleConfig.BORDER_COLOR)
            border_width = highlight_expression(
                feature_id, StyleConfig.HIGHLIGHT_BORDER_WIDTH, StyleConfig.BORDER_LINE_WIDTH
            )
        self.state.set_paint(LayerConfig.TRAILS, "line-color", trail_color)
        self.state.set_paint(LayerConfig.TRAILS, "line-width", trail_width)
        self.state.set_paint(LayerConfig.TRAILS_BORDER, "line-color", border_color)
        self.state.set_paint(LayerConfig.TRAILS_BORDER, "line-width", border_width)

    def _apply_selection(self) -> None:
        for layer_id in (LayerConfig.TRAILS_BORDER, LayerConfig.TRAILS):
            if self.engine.get_layer(layer_id) is None:
                continue
            for prop, value in self.state.paint_for(layer_id).items():
                self.engine.set_paint_property(layer_id, prop, value)
        # Border shares the trail source but must never vanish on deselect
        self._set_visibility(LayerConfig.TRAILS_BORDER, self.state.is_enabled(LayerConfig.TOGGLE_TRAILS))

    def _apply_contour_color(self) -> None:
        if self.engine.get_layer(LayerConfig.CONTOURS) is not None:
            color = self.state.paint_for(LayerConfig.CONTOURS)["line-color"]
            self.engine.set_paint_property(LayerConfig.CONTOURS, "line-color", color)

    def _apply_terrain(self) -> None:
        if not self.engine.is_style_loaded() or self.engine.get_source(TerrainConfig.SOURCE) is None:
            return
        if self.state.terrain_3d:
            self.engine.set_terrain({"source": TerrainConfig.SOURCE, "exaggeration": self.state.terrain_exaggeration})
        else:
            self.engine.set_terrain(None)

    def _set_visibility(self, layer_id: str, visible: bool) -> bool:
        """Apply visibility if the layer exists. Returns whether it was applied."""
        if self.engine.get_layer(layer_id) is None:
            return False
        self.engine.set_layout_property(layer_id, "visibility", visibility_value(visible))
        return True
