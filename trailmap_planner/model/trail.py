"""Trail features and the selection record handed to the trail panel."""

from dataclasses import dataclass, field
from typing import Any

from trailmap_planner.constants import DataConfig, StyleConfig
from trailmap_planner.model.coordinate import Coordinate, TrailPath
from trailmap_planner.model.elevation_profile import ElevationProfile


@dataclass(frozen=True)
class TrailFeature:
    """A named trail from the geometry dataset.

    Attributes:
        id: Stable feature id (the "id" property), None if the dataset has none
        name: Display name ("title" property)
        description: Free-text description
        path: Coordinates as drawn; empty for non-LineString geometry
        layer_id: Layer the feature was hit on (for click results)
    """

    id: str | None
    name: str
    description: str
    path: TrailPath = field(default_factory=list)
    layer_id: str | None = None

    @classmethod
    def from_geojson(cls, feature: dict[str, Any], layer_id: str | None = None) -> "TrailFeature":
        """Build from a GeoJSON feature dict.

        Only LineString geometry yields a path; anything else is kept as a
        feature with an empty path so the profile degrades to empty.
        """
        properties = feature.get("properties") or {}
        geometry = feature.get("geometry") or {}

        path: TrailPath = []
        if geometry.get("type") == "LineString":
            path = [Coordinate.from_sequence(position) for position in geometry.get("coordinates") or []]

        raw_id = properties.get(StyleConfig.FEATURE_ID_PROPERTY)
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            name=properties.get("title") or DataConfig.DEFAULT_TRAIL_NAME,
            description=properties.get("description") or DataConfig.DEFAULT_TRAIL_DESCRIPTION,
            path=path,
            layer_id=layer_id,
        )


@dataclass(frozen=True)
class TrailSelection:
    """What the trail panel receives when a trail is selected."""

    name: str
    description: str
    profile: ElevationProfile
    feature_id: str | None = None
