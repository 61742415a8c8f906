"""Elevation sources: candidate elevations around a coordinate.

An ElevationSource answers "which elevations are recorded within this radius
of this point?" with zero or more raw candidates. Reducing them to one value
is the ElevationSampler's job, so sources return sentinels and outliers as-is.

Implementations:
    TilequeryElevationSource: Mapbox Tilequery API over contour lines (HTTP)
    DEMElevationSource: Local GeoTIFF DEM, pixels in a window around the point
"""

import logging
import threading
import time
from math import cos, radians
from pathlib import Path
from typing import Optional, Protocol

import numpy as np
import rasterio
import requests
from rasterio.errors import RasterioError
from rasterio.warp import transform

from trailmap_planner.constants import AppConfig, ElevationConfig
from trailmap_planner.errors import ElevationSourceError
from trailmap_planner.model.coordinate import Coordinate

logger = logging.getLogger(__name__)

# At equator, 1 degree of latitude ≈ 111,320 meters
METERS_PER_DEGREE = 111_320.0


class ElevationSource(Protocol):
    """Collaborator contract for elevation lookups."""

    def query(self, coord: Coordinate, radius_m: float, limit: int) -> list[Optional[float]]:
        """Return up to `limit` candidate elevations within `radius_m` of `coord`.

        Raises:
            ElevationSourceError: If the lookup itself failed.
        """
        ...


class TilequeryElevationSource:
    """Contour elevations from the Mapbox Tilequery API.

    Each contour line crossing the search radius is one candidate, so a
    single point typically yields several nearby contour elevations.

    Example:
        source = TilequeryElevationSource(token=AppConfig.mapbox_token())
        candidates = source.query(Coordinate(lon=-72.81, lat=44.54), radius_m=500, limit=50)
    """

    def __init__(
        self,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout_s: float = ElevationConfig.REQUEST_TIMEOUT_S,
    ) -> None:
        self.token = token if token is not None else AppConfig.mapbox_token()
        self.session = session or requests.Session()
        self.timeout_s = timeout_s

    def query(self, coord: Coordinate, radius_m: float, limit: int) -> list[Optional[float]]:
        url = ElevationConfig.TILEQUERY_URL.format(lon=coord.lon, lat=coord.lat)
        params = {
            "layers": ElevationConfig.TILEQUERY_LAYER,
            "limit": limit,
            "radius": int(radius_m),
            "access_token": self.token,
        }
        try:
            response = self.session.get(url, params=params, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise ElevationSourceError(f"Tilequery request failed for {coord}: {exc}") from exc

        if response.status_code != 200:
            raise ElevationSourceError(f"Tilequery returned status {response.status_code} for {coord}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ElevationSourceError(f"Tilequery returned invalid JSON for {coord}") from exc

        if not isinstance(payload, dict):
            raise ElevationSourceError(f"Tilequery returned {type(payload).__name__} instead of an object for {coord}")

        features = payload.get("features") or []
        if not isinstance(features, list) or not all(isinstance(feature, dict) for feature in features):
            raise ElevationSourceError(f"Tilequery returned malformed features for {coord}")

        candidates = []
        for feature in features:
            properties = feature.get("properties") or {}
            if not isinstance(properties, dict):
                raise ElevationSourceError(f"Tilequery returned malformed properties for {coord}")
            candidates.append(properties.get(ElevationConfig.ELEVATION_PROPERTY))
        return candidates


class DEMElevationSource:
    """Elevation candidates from a local GeoTIFF DEM.

    Loads the first band into memory on first access (thread-safe) and
    returns the pixels in a square window around the point, nearest first.
    No-data pixels come back as their raw sentinel value so the sampler's
    range filter can drop them.

    Example:
        source = DEMElevationSource(dem_path=Path("data/mansfield_dem.tif"))
        candidates = source.query(Coordinate(lon=-72.81, lat=44.54), radius_m=100, limit=9)
    """

    def __init__(self, dem_path: Path) -> None:
        self._dem_path = dem_path
        self._load_lock = threading.Lock()
        self._dem_crs: Optional[str] = None
        self._dem_array: Optional[np.ndarray] = None
        self._dem_transform = None
        self._is_geographic = True

    @property
    def is_loaded(self) -> bool:
        """Check if DEM data has been fully loaded into memory."""
        return self._dem_transform is not None

    def _ensure_loaded(self) -> None:
        """Load DEM into memory on first access (thread-safe)."""
        if self.is_loaded:
            return

        with self._load_lock:
            if self.is_loaded:
                return

            if not self._dem_path.exists():
                raise ElevationSourceError(f"DEM file not found at {self._dem_path}")

            logger.info(f"[ELEVATION] Loading DEM from {self._dem_path}...")
            start_time = time.time()

            try:
                with rasterio.open(self._dem_path) as dem:
                    self._dem_crs = dem.crs.to_string() if dem.crs else "EPSG:4326"
                    self._is_geographic = dem.crs.is_geographic if dem.crs else True
                    self._dem_array = dem.read(1)
                    # Set _dem_transform LAST - this is what is_loaded checks
                    self._dem_transform = dem.transform
            except (RasterioError, OSError) as exc:
                raise ElevationSourceError(f"Could not read DEM {self._dem_path}: {exc}") from exc

            elapsed = time.time() - start_time
            logger.info(f"[ELEVATION] DEM loaded in {elapsed:.2f}s (shape: {self._dem_array.shape}, CRS: {self._dem_crs})")

    def _radius_in_crs_units(self, lat: float, radius_m: float) -> tuple[float, float]:
        """Search radius as (x, y) extents in the DEM's CRS units."""
        if not self._is_geographic:
            return radius_m, radius_m
        dy = radius_m / METERS_PER_DEGREE
        dx = radius_m / (METERS_PER_DEGREE * max(cos(radians(lat)), 1e-6))
        return dx, dy

    def query(self, coord: Coordinate, radius_m: float, limit: int) -> list[Optional[float]]:
        self._ensure_loaded()
        assert self._dem_array is not None

        if self._dem_crs != "EPSG:4326":
            try:
                xs, ys = transform("EPSG:4326", self._dem_crs, [coord.lon], [coord.lat])
            except RasterioError as exc:
                raise ElevationSourceError(f"Could not project {coord} into {self._dem_crs}: {exc}") from exc
            x, y = xs[0], ys[0]
        else:
            x, y = coord.lon, coord.lat

        dx, dy = self._radius_in_crs_units(lat=coord.lat, radius_m=radius_m)
        inverse = ~self._dem_transform
        col_a, row_a = inverse * (x - dx, y + dy)
        col_b, row_b = inverse * (x + dx, y - dy)
        center_col, center_row = inverse * (x, y)

        rows, cols = self._dem_array.shape
        row_min = max(int(min(row_a, row_b)), 0)
        row_max = min(int(max(row_a, row_b)), rows - 1)
        col_min = max(int(min(col_a, col_b)), 0)
        col_max = min(int(max(col_a, col_b)), cols - 1)

        if row_min > row_max or col_min > col_max:
            logger.debug(f"[ELEVATION] {coord} outside DEM bounds")
            return []

        window = self._dem_array[row_min : row_max + 1, col_min : col_max + 1].astype(float)
        row_idx, col_idx = np.mgrid[row_min : row_max + 1, col_min : col_max + 1]
        pixel_dist = np.hypot(row_idx + 0.5 - center_row, col_idx + 0.5 - center_col)
        order = np.argsort(pixel_dist, axis=None, kind="stable")[:limit]

        values = window.ravel()[order]
        return [None if np.isnan(value) else float(value) for value in values]
