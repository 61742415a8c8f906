"""Configuration constants for Trail Map Planner.

All configurable parameters are centralized here for easy tuning.

Classes:
    AppConfig: UI application settings and credentials
    MapConfig: Default map view parameters
    BasemapConfig: Swappable basemap style documents
    DataConfig: Trail dataset location and hit-test tolerance
    ElevationConfig: Elevation sampling pipeline parameters
    LayerConfig: Layer/source ids, toggle names and canonical stacking order
    StyleConfig: Paint values for trails, contours and overlays
    TerrainConfig: 3D terrain source and exaggeration
    RetryConfig: Layer restore polling after a basemap swap
    ChartConfig: Elevation profile chart rendering
"""

import os
from pathlib import Path

# Package root directory (where trailmap_planner/ lives)
PACKAGE_DIR = Path(__file__).parent

# Project root directory (parent of trailmap_planner/)
PROJECT_ROOT = PACKAGE_DIR.parent

# Data directory outside package (downloaded separately, not shipped with package)
DATA_DIR = PROJECT_ROOT / "data"


class AppConfig:
    """UI application settings."""

    TITLE = "Trail Map Planner - Mount Mansfield Backcountry"
    ICON = "🥾"
    LAYOUT = "wide"

    # Environment variable holding the Mapbox access token
    MAPBOX_TOKEN_ENV = "MAPBOX_TOKEN"

    @staticmethod
    def mapbox_token() -> str:
        """Return the Mapbox token from the environment (empty string if unset)."""
        return os.environ.get(AppConfig.MAPBOX_TOKEN_ENV, "")


class MapConfig:
    """Default map view parameters."""

    # Initial center: Mount Mansfield, Vermont
    START_CENTER_LON = -72.8146
    START_CENTER_LAT = 44.5438

    DEFAULT_ZOOM = 13.0
    DEFAULT_PITCH = 60.0  # Tilted for 3D terrain
    FLAT_PITCH = 0.0  # Top-down when 3D terrain is off
    DEFAULT_BEARING = 0.0
    EASE_DURATION_MS = 1000


class BasemapConfig:
    """Swappable basemap styles (Mapbox GL style spec documents).

    Raster tile styles need no API key. The contour layer color depends on
    which basemap is active (see StyleConfig.contour_color).
    """

    OUTDOORS = "outdoors"
    SATELLITE = "satellite"
    DARK = "dark"
    DEFAULT = DARK

    TILES = {
        OUTDOORS: [
            "https://a.tile.opentopomap.org/{z}/{x}/{y}.png",
            "https://b.tile.opentopomap.org/{z}/{x}/{y}.png",
            "https://c.tile.opentopomap.org/{z}/{x}/{y}.png",
        ],
        SATELLITE: [
            "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
        ],
        DARK: [
            "https://a.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}.png",
            "https://b.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}.png",
        ],
    }
    ATTRIBUTION = {
        OUTDOORS: "© OpenStreetMap contributors, © OpenTopoMap (CC-BY-SA)",
        SATELLITE: "Tiles © Esri",
        DARK: "© OpenStreetMap contributors, © CARTO",
    }
    MAX_ZOOM = {OUTDOORS: 17, SATELLITE: 19, DARK: 20}

    DISPLAY_NAMES = {OUTDOORS: "Outdoors", SATELLITE: "Satellite", DARK: "Dark"}

    NAMES = [OUTDOORS, SATELLITE, DARK]


assert set(BasemapConfig.TILES) == set(BasemapConfig.NAMES)
assert set(BasemapConfig.ATTRIBUTION) == set(BasemapConfig.NAMES)
assert set(BasemapConfig.MAX_ZOOM) == set(BasemapConfig.NAMES)
assert BasemapConfig.DEFAULT in BasemapConfig.NAMES


class DataConfig:
    """Trail geometry dataset."""

    TRAILS_URL = (
        "https://gist.githubusercontent.com/liampaus/db98df1f74962a1030ab5d858048c504/raw/"
        "7da27f7ae6bfe74f5b481fddc9fd43ab8a498f84/mansfieldTrails.geojson"
    )
    TRAILS_CACHE_PATH = DATA_DIR / "mansfield_trails.geojson"
    DOWNLOAD_TIMEOUT_S = 30

    # Optional local DEM; used instead of Tilequery when present
    DEM_PATH = DATA_DIR / "mansfield_dem.tif"
    DEM_SEARCH_RADIUS_M = 30
    DEM_CANDIDATE_LIMIT = 9

    DEFAULT_TRAIL_NAME = "Unknown Trail"
    DEFAULT_TRAIL_DESCRIPTION = "A trail on Mount Mansfield"

    # Click hit-test tolerance around trail lines
    # ~0.0003 degrees ≈ ~30 meters at mid-latitudes
    HIT_TOLERANCE_DEG = 0.0003


class ElevationConfig:
    """Elevation sampling pipeline parameters."""

    # Resampling: max distance between consecutive profile points
    MAX_SEGMENT_KM = 0.05

    # Post-filter: samples closer than this to the previous kept sample are dropped
    MIN_SEPARATION_KM = 0.01

    # Candidate query around each point
    SEARCH_RADIUS_M = 500  # Contours are sparse at high elevations
    CANDIDATE_LIMIT = 50

    # Plausible elevation range (exclusive on both ends); excludes sentinel values
    MIN_VALID_M = 0.0
    MAX_VALID_M = 3000.0

    # Returned when no candidate survives filtering or the query fails
    NO_DATA_M = 0.0

    # Fan-out pool size and per-sample ceiling
    MAX_WORKERS = 8
    REQUEST_TIMEOUT_S = 10.0

    # Mapbox Tilequery endpoint for contour elevations
    TILEQUERY_URL = "https://api.mapbox.com/v4/mapbox.mapbox-terrain-v2/tilequery/{lon},{lat}.json"
    TILEQUERY_LAYER = "contour"
    ELEVATION_PROPERTY = "ele"


assert ElevationConfig.MIN_SEPARATION_KM < ElevationConfig.MAX_SEGMENT_KM
assert ElevationConfig.MIN_VALID_M < ElevationConfig.MAX_VALID_M


class LayerConfig:
    """Ids of every source/layer this application owns."""

    # Sources
    SOURCE_DEM = "mapbox-dem"
    SOURCE_TRAILS = "backCountry"
    SOURCE_CONTOURS = "contours"
    SOURCE_CLIFF = "cliff-areas-raster"
    SOURCE_SNOW_PROBABILITY = "snow-probability-raster"
    SOURCE_TERRAIN_RASTER = "terrain-raster"

    # Layers
    HILLSHADE = "hillshade"
    TERRAIN_DEM = "terrain-dem"
    TERRAIN_RASTER = "terrain-raster-layer"
    SNOW_PROBABILITY = "snow-probability-layer"
    CLIFF_AREAS = "cliff-areas-layer"
    CONTOURS = "contours"
    TRAILS_BORDER = "trails-line-border"
    TRAILS = "trails-line"

    # Canonical stacking order, bottom to top
    STACK_ORDER = [
        TERRAIN_RASTER,
        SNOW_PROBABILITY,
        CLIFF_AREAS,
        CONTOURS,
        TRAILS_BORDER,
        TRAILS,
    ]

    # Layers that must exist before a post-reload restore can run
    REQUIRED_LAYERS = [TRAILS, TRAILS_BORDER, TERRAIN_RASTER, CONTOURS, CLIFF_AREAS, SNOW_PROBABILITY]

    # Layers used for trail click hit-testing
    CLICKABLE_LAYERS = [TRAILS, TRAILS_BORDER]

    # Toggle names exposed to the user
    TOGGLE_TRAILS = "trails"
    TOGGLE_TERRAIN = "terrain"
    TOGGLE_CONTOURS = "contours"
    TOGGLE_CLIFF_AREAS = "cliff_areas"
    TOGGLE_SNOW_PROBABILITY = "snow_probability"

    # Mapbox tileset URLs
    DEM_URL = "mapbox://mapbox.mapbox-terrain-dem-v1"
    CONTOURS_URL = "mapbox://mapbox.mapbox-terrain-v2"
    CLIFF_URL = "mapbox://onwaterllc.cw2k0ya8"
    SNOW_PROBABILITY_URL = "mapbox://onwaterllc.3ky3i0pc"
    TERRAIN_RASTER_URL = "mapbox://onwaterllc.3jn1vsji"


assert set(LayerConfig.STACK_ORDER) == set(LayerConfig.REQUIRED_LAYERS)
assert all(layer_id in LayerConfig.STACK_ORDER for layer_id in LayerConfig.CLICKABLE_LAYERS)


class StyleConfig:
    """Paint values (Mapbox GL style spec)."""

    # Selected trail
    HIGHLIGHT_COLOR = "#FF9800"
    HIGHLIGHT_LINE_WIDTH = 6
    HIGHLIGHT_BORDER_WIDTH = 8

    # Unselected trails
    TRAIL_COLOR = "black"
    TRAIL_LINE_WIDTH = 4
    BORDER_COLOR = "rgba(200, 200, 200, 0.6)"
    BORDER_LINE_WIDTH = 10

    # Feature property carrying the stable trail id
    FEATURE_ID_PROPERTY = "id"

    # Contours: dark lines on the light outdoors map, white everywhere else
    CONTOUR_COLOR_LIGHT_BASEMAP = "#000"
    CONTOUR_COLOR_DARK_BASEMAP = "#FFF"
    CONTOUR_OPACITY = 0.5
    CONTOUR_INDEX_WIDTH = 1  # Index contours (every 5th) are thicker
    CONTOUR_WIDTH = 0.5

    # Raster overlay opacities
    TERRAIN_RASTER_OPACITY = 1.0
    SNOW_PROBABILITY_OPACITY = 0.6
    CLIFF_AREAS_OPACITY = 0.5

    # Hover marker on the map (driven by profile chart interaction)
    HOVER_MARKER_COLOR = "#2D5A27"
    HOVER_MARKER_RADIUS_PX = 8

    @staticmethod
    def contour_color(basemap: str) -> str:
        """Contour stroke color that stays readable on the given basemap."""
        if basemap == BasemapConfig.OUTDOORS:
            return StyleConfig.CONTOUR_COLOR_LIGHT_BASEMAP
        return StyleConfig.CONTOUR_COLOR_DARK_BASEMAP


class TerrainConfig:
    """3D terrain settings."""

    SOURCE = LayerConfig.SOURCE_DEM
    DEFAULT_EXAGGERATION = 1.2
    MIN_EXAGGERATION = 0.5
    MAX_EXAGGERATION = 3.0
    DEFAULT_ENABLED = True


assert TerrainConfig.MIN_EXAGGERATION <= TerrainConfig.DEFAULT_EXAGGERATION <= TerrainConfig.MAX_EXAGGERATION


class RetryConfig:
    """Polling for layers after a basemap swap.

    Layer creation can lag behind the style-load event, so the restore
    step polls at a fixed interval with a ceiling instead of one fixed delay.
    """

    INTERVAL_S = 0.05
    MAX_ATTEMPTS = 40  # 2 seconds total at 50ms


class ChartConfig:
    """Elevation profile chart rendering."""

    PROFILE_HEIGHT = 220
    PROFILE_WIDTH = 420
    LINE_COLOR = "#2D5A27"
    FILL_COLOR = "rgba(45, 90, 39, 0.25)"
    ELEVATION_PADDING_FACTOR = 0.1
    ELEVATION_PADDING_MIN_M = 10

    # Slope coloring bands: (upper bound in percent, color); last band is open-ended
    SLOPE_BANDS = [
        (5.0, "#4CAF50"),  # Very gentle - green
        (10.0, "#8BC34A"),  # Moderate - light green
        (15.0, "#FFC107"),  # Steeper - amber
        (20.0, "#FF9800"),  # Very steep - orange
    ]
    SLOPE_COLOR_EXTREME = "#F44336"  # Extremely steep - red

    @staticmethod
    def slope_color(slope_pct: float) -> str:
        """Color for a slope band by absolute percent grade."""
        abs_slope = abs(slope_pct)
        for upper, color in ChartConfig.SLOPE_BANDS:
            if abs_slope < upper:
                return color
        return ChartConfig.SLOPE_COLOR_EXTREME


assert all(
    ChartConfig.SLOPE_BANDS[i][0] < ChartConfig.SLOPE_BANDS[i + 1][0] for i in range(len(ChartConfig.SLOPE_BANDS) - 1)
), "Slope bands must be ascending"
