"""Trail Map Planner - Backcountry trail map with elevation profiles.

An interactive trail map featuring:
- Elevation profiles sampled along a resampled trail path (median of nearby contours)
- Map layers kept in order, visibility and highlight state across basemap swaps
- State machine-based layer synchronization for robust style reloads

Modules:
    core: Elevation pipeline (geo calculations, resampling, sampling, profile building)
    model: Data structures (Coordinate, ElevationProfile, TrailFeature, map state)
    layers: Layer registry, style-document engine and synchronizer
    ui: Streamlit interface components (map, profile chart, trail controller)

Example:
    from trailmap_planner.core.profile_builder import ProfileBuilder
    from trailmap_planner.layers import LayerRegistry, LayerSynchronizer
"""
