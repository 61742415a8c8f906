"""Map layer management.

- LayerRegistry: Declarative sources, layers and toggles
- basemap_style: Swappable base style documents
- StyleDocumentEngine: In-memory rendering engine over a style document
- LayerSynchronizer: Keeps managed layers in the recorded state across style reloads
"""

from trailmap_planner.layers.basemaps import basemap_style
from trailmap_planner.layers.engine import RenderingEngine, StyleDocumentEngine
from trailmap_planner.layers.registry import LayerRegistry, LayerSpec, SourceSpec, ToggleSpec
from trailmap_planner.layers.synchronizer import LayerSynchronizer, LayerSyncStateMachine

__all__ = [
    "basemap_style",
    "RenderingEngine",
    "StyleDocumentEngine",
    "LayerRegistry",
    "LayerSpec",
    "SourceSpec",
    "ToggleSpec",
    "LayerSynchronizer",
    "LayerSyncStateMachine",
]
