"""Exceptions raised by trailmap_planner.

None of these are fatal to the application: elevation failures degrade a
single sample, restore failures leave the map interactive with recorded
layer state, and lookup errors flag programming mistakes at call sites.
"""


class TrailMapError(Exception):
    """Base class for all trailmap_planner errors."""


class ElevationSourceError(TrailMapError):
    """An elevation query failed (network error, bad status, unreadable payload)."""


class LayerRestoreError(TrailMapError):
    """Required layers did not appear within the retry ceiling after a style reload."""

    def __init__(self, missing_layers: list[str], attempts: int) -> None:
        self.missing_layers = missing_layers
        self.attempts = attempts
        super().__init__(f"Layers still missing after {attempts} attempts: {', '.join(missing_layers)}")


class UnknownToggleError(TrailMapError, KeyError):
    """A layer toggle name is not declared in the layer registry."""


class UnknownBasemapError(TrailMapError, KeyError):
    """A basemap name is not declared in BasemapConfig."""


class EngineStateError(TrailMapError):
    """The rendering engine rejected an operation (style not loaded, missing or duplicate id)."""
