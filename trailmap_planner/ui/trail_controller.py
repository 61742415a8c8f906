"""TrailController - Connects map clicks, selection highlight and the trail panel.

Flow:
1. Click on a trail: highlight it (new selection epoch) and start its profile
2. Click on empty map space: clear highlight and panel, abandon the profile
3. Profile done: hand a TrailSelection to the panel, unless superseded
4. Chart hover: move the hover marker on the map

All methods run on the UI thread. Only the profile build runs in the
background (inside ProfileService).
"""

import logging
from collections.abc import Callable
from typing import Optional

from trailmap_planner.core.profile_builder import ProfileJob, ProfileService
from trailmap_planner.layers.synchronizer import LayerSynchronizer
from trailmap_planner.model.coordinate import Coordinate
from trailmap_planner.model.trail import TrailFeature, TrailSelection

logger = logging.getLogger(__name__)


class TrailController:
    """Coordinates trail selection between the map and the trail panel.

    Example:
        controller = TrailController(synchronizer=sync, service=service, on_trail_selected=show_panel)
        controller.handle_map_click(Coordinate(lon=-72.81, lat=44.54))
        controller.wait_for_profile(timeout=30)
    """

    def __init__(
        self,
        synchronizer: LayerSynchronizer,
        service: ProfileService,
        on_trail_selected: Optional[Callable[[TrailSelection], None]] = None,
        on_trail_cleared: Optional[Callable[[], None]] = None,
    ) -> None:
        self.synchronizer = synchronizer
        self.service = service
        self.on_trail_selected = on_trail_selected
        self.on_trail_cleared = on_trail_cleared

        self.trail: Optional[TrailSelection] = None
        self.pending: Optional[ProfileJob] = None
        self.hover_position: Optional[Coordinate] = None

    @property
    def is_loading(self) -> bool:
        return self.pending is not None

    @property
    def panel_open(self) -> bool:
        return self.trail is not None

    def handle_map_click(self, point: Coordinate) -> Optional[TrailFeature]:
        """Select the trail under the click, or clear the selection on empty space.

        Returns:
            The selected trail feature, or None for an empty-space click.
        """
        feature = self.synchronizer.hit_test(point)
        if feature is None:
            logger.info(f"[PROFILE] Click at {point} hit no trail, clearing selection")
            self._clear()
            return None

        epoch = self.synchronizer.select(feature.id)
        self.trail = None
        self.hover_position = None
        self.pending = self.service.request(feature, epoch=epoch)
        return feature

    def poll(self) -> Optional[TrailSelection]:
        """Deliver the pending profile if it has finished; never blocks."""
        if self.pending is None or not self.pending.done:
            return None
        return self.wait_for_profile()

    def wait_for_profile(self, timeout: Optional[float] = None) -> Optional[TrailSelection]:
        """Block until the pending profile is done and deliver it.

        Returns:
            The delivered selection, or None if nothing was pending or it was superseded.
        """
        job = self.pending
        if job is None:
            return None
        selection = self.service.result(job, timeout=timeout)
        if self.pending is job:
            self.pending = None
        if selection is None:
            return None

        self.trail = selection
        logger.info(f"[PROFILE] Showing '{selection.name}' ({len(selection.profile)} samples)")
        if self.on_trail_selected is not None:
            self.on_trail_selected(selection)
        return selection

    def close_panel(self) -> None:
        """Close the trail panel; this also clears the highlight."""
        self._clear()

    def hover(self, position: Optional[Coordinate]) -> None:
        """Move (or hide, with None) the hover marker on the map."""
        self.hover_position = position

    def hover_index(self, index: Optional[int]) -> None:
        """Move the hover marker to a profile sample by index."""
        if self.trail is None:
            self.hover(None)
            return
        self.hover(self.trail.profile.coordinate_at(index))

    def _clear(self) -> None:
        had_selection = self.synchronizer.selection.has_selection or self.trail is not None
        self.service.cancel()
        self.pending = None
        self.trail = None
        self.hover_position = None
        self.synchronizer.select(None)
        if had_selection and self.on_trail_cleared is not None:
            self.on_trail_cleared()
