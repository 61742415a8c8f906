"""Tests for trailmap_planner core functionality.

Tests: GeoCalculator, Resampler, ElevationSampler, elevation sources
Focus: Deterministic fakes for the elevation source; a tiny GeoTIFF for the DEM source

Note: Fixtures are defined in conftest.py (FakeElevationSource, StaticElevationSource).
"""

from typing import Any, Optional

import numpy as np
import pytest
import rasterio
import requests
from hypothesis import given, settings, strategies as st
from rasterio.transform import from_origin

from trailmap_planner.constants import ElevationConfig
from trailmap_planner.core.elevation_sampler import ElevationReading, ElevationSampler
from trailmap_planner.core.elevation_source import DEMElevationSource, TilequeryElevationSource
from trailmap_planner.core.geo_calculator import GeoCalculator
from trailmap_planner.core.profile_builder import ProfileBuilder
from trailmap_planner.core.resampler import Resampler
from trailmap_planner.errors import ElevationSourceError
from trailmap_planner.model.coordinate import Coordinate

from conftest import KM_PER_DEGREE, FakeElevationSource, StaticElevationSource, north_path


# =============================================================================
# GEO CALCULATOR
# =============================================================================


class TestGeoCalculator:
    """GeoCalculator - geodesic calculations on Earth's surface."""

    def test_haversine_distance_one_degree_latitude(self) -> None:
        """1 degree latitude ≈ 111.19 km on a 6371 km sphere."""
        dist = GeoCalculator.haversine_distance_km(lon1=-72.8, lat1=44.0, lon2=-72.8, lat2=45.0)
        assert dist == pytest.approx(KM_PER_DEGREE, rel=1e-9)

    def test_haversine_distance_one_degree_longitude(self) -> None:
        """1 degree longitude at 44.5°N is shorter than at the equator."""
        dist = GeoCalculator.haversine_distance_km(lon1=-73.0, lat1=44.5, lon2=-72.0, lat2=44.5)
        assert 79.0 < dist < 79.5

    def test_haversine_distance_zero(self) -> None:
        assert GeoCalculator.haversine_distance_km(lon1=1.0, lat1=2.0, lon2=1.0, lat2=2.0) == 0.0

    def test_haversine_is_symmetric(self) -> None:
        a = GeoCalculator.haversine_distance_km(lon1=-72.81, lat1=44.54, lon2=-72.80, lat2=44.55)
        b = GeoCalculator.haversine_distance_km(lon1=-72.80, lat1=44.55, lon2=-72.81, lat2=44.54)
        assert a == pytest.approx(b)

    def test_lerp_endpoints_and_midpoint(self) -> None:
        assert GeoCalculator.lerp(lon1=0.0, lat1=0.0, lon2=2.0, lat2=4.0, fraction=0.0) == (0.0, 0.0)
        assert GeoCalculator.lerp(lon1=0.0, lat1=0.0, lon2=2.0, lat2=4.0, fraction=1.0) == (2.0, 4.0)
        assert GeoCalculator.lerp(lon1=0.0, lat1=0.0, lon2=2.0, lat2=4.0, fraction=0.5) == (1.0, 2.0)


# =============================================================================
# RESAMPLER
# =============================================================================


class TestResampler:
    """Resampler - polyline densification."""

    def test_short_paths_pass_through(self) -> None:
        """0 or 1 points come back unchanged."""
        single = [Coordinate(lon=0.0, lat=0.0)]
        assert Resampler.resample([]) == []
        assert Resampler.resample(single) == single

    def test_close_vertices_not_densified(self) -> None:
        """Two points 30 m apart need no extra points."""
        path = north_path(length_km=0.03, vertices=2)
        assert Resampler.resample(path, max_segment_km=0.05) == path

    def test_long_segment_split_evenly(self) -> None:
        """990 m at 50 m max spacing: ceil(990/50) = 20 steps, 21 points."""
        path = north_path(length_km=0.99, vertices=2)
        dense = Resampler.resample(path, max_segment_km=0.05)
        assert len(dense) == 21
        assert dense[0] == path[0]
        assert dense[-1] == path[-1]

    def test_original_vertices_kept(self) -> None:
        path = north_path(length_km=0.3, vertices=4)
        dense = Resampler.resample(path, max_segment_km=0.05)
        for vertex in path:
            assert vertex in dense

    def test_spacing_never_exceeds_max(self) -> None:
        path = [Coordinate(lon=-72.815, lat=44.54), Coordinate(lon=-72.80, lat=44.55), Coordinate(lon=-72.79, lat=44.56)]
        dense = Resampler.resample(path, max_segment_km=0.05)
        for a, b in zip(dense, dense[1:]):
            assert a.distance_to_km(b) <= 0.05 * 1.001

    def test_non_positive_segment_rejected(self) -> None:
        with pytest.raises(ValueError):
            Resampler.resample(north_path(length_km=1.0, vertices=2), max_segment_km=0.0)

    @given(
        lon=st.floats(min_value=-73.0, max_value=-72.5, allow_nan=False),
        lat=st.floats(min_value=44.3, max_value=44.8, allow_nan=False),
        d_lon=st.lists(st.floats(min_value=-0.01, max_value=0.01, allow_nan=False), min_size=1, max_size=6),
        d_lat=st.floats(min_value=-0.01, max_value=0.01, allow_nan=False),
    )
    @settings(max_examples=50, deadline=None)
    def test_resampled_path_properties(self, lon: float, lat: float, d_lon: list[float], d_lat: float) -> None:
        """Any path: endpoints preserved and consecutive spacing within the limit."""
        path = [Coordinate(lon=lon, lat=lat)]
        for i, step in enumerate(d_lon):
            path.append(Coordinate(lon=path[-1].lon + step, lat=path[-1].lat + d_lat * (i % 2)))

        dense = Resampler.resample(path, max_segment_km=ElevationConfig.MAX_SEGMENT_KM)

        assert dense[0] == path[0]
        assert dense[-1] == path[-1]
        assert len(dense) >= len(path)
        for a, b in zip(dense, dense[1:]):
            assert a.distance_to_km(b) <= ElevationConfig.MAX_SEGMENT_KM * 1.001


# =============================================================================
# ELEVATION SAMPLER
# =============================================================================


class TestElevationSampler:
    """ElevationSampler - range filter and median reduction."""

    def test_median_suppresses_outlier(self) -> None:
        """[1200, 1205, 50000, 1190] -> valid [1190, 1200, 1205] -> 1200."""
        sampler = ElevationSampler(source=StaticElevationSource([1200, 1205, 50000, 1190]))
        reading = sampler.sample(Coordinate(lon=-72.81, lat=44.54))
        assert reading == ElevationReading(elevation_m=1200.0, has_data=True)

    def test_even_count_takes_upper_middle(self) -> None:
        assert ElevationSampler.reduce([100, 300, 200, 400]) == 300

    def test_range_is_exclusive(self) -> None:
        """0 and 3000 themselves are rejected."""
        assert ElevationSampler.reduce([0, 3000]) is None
        assert ElevationSampler.reduce([0.5, 2999.5]) == 2999.5

    def test_all_invalid_is_no_data(self) -> None:
        sampler = ElevationSampler(source=StaticElevationSource([-9999, 0, 50000, None]))
        reading = sampler.sample(Coordinate(lon=-72.81, lat=44.54))
        assert reading.elevation_m == 0.0
        assert reading.has_data is False

    def test_no_candidates_is_no_data(self) -> None:
        sampler = ElevationSampler(source=StaticElevationSource([]))
        assert sampler.sample(Coordinate(lon=-72.81, lat=44.54)) == ElevationReading.no_data()

    def test_source_failure_is_no_data(self) -> None:
        source = FakeElevationSource(fail_when=lambda coord: True)
        reading = ElevationSampler(source=source).sample(Coordinate(lon=0.0, lat=0.0))
        assert reading == ElevationReading.no_data()

    def test_network_error_is_no_data(self) -> None:
        class BrokenSource:
            def query(self, coord: Coordinate, radius_m: float, limit: int) -> list[Optional[float]]:
                raise requests.ConnectionError("offline")

        reading = ElevationSampler(source=BrokenSource()).sample(Coordinate(lon=0.0, lat=0.0))
        assert reading.has_data is False

    def test_non_numeric_candidates_dropped(self) -> None:
        assert ElevationSampler.reduce(["1200", 1190, True, None, float("nan")]) == 1190
        assert ElevationSampler.reduce([np.float32(1210.0), 1190.0]) == pytest.approx(1210.0)

    def test_string_elevations_are_no_data(self) -> None:
        sampler = ElevationSampler(source=StaticElevationSource(["1200", "1205"]))
        assert sampler.sample(Coordinate(lon=-72.81, lat=44.54)) == ElevationReading.no_data()

    def test_passes_radius_and_limit(self) -> None:
        seen: dict[str, Any] = {}

        class RecordingSource:
            def query(self, coord: Coordinate, radius_m: float, limit: int) -> list[Optional[float]]:
                seen.update(radius_m=radius_m, limit=limit)
                return [1000.0]

        ElevationSampler(source=RecordingSource()).sample(Coordinate(lon=0.0, lat=0.0))
        assert seen == {"radius_m": ElevationConfig.SEARCH_RADIUS_M, "limit": ElevationConfig.CANDIDATE_LIMIT}


# =============================================================================
# ELEVATION SOURCES
# =============================================================================


class _FakeResponse:
    def __init__(self, status_code: int, payload: Any = None, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


class _FakeSession:
    def __init__(self, response: Optional[_FakeResponse] = None, error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, params: dict[str, Any], timeout: float) -> _FakeResponse:
        self.requests.append((url, params))
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


class TestTilequeryElevationSource:
    """TilequeryElevationSource - Mapbox contour elevations over HTTP."""

    def test_returns_contour_elevations(self) -> None:
        payload = {
            "features": [
                {"properties": {"ele": 1200, "index": 5}},
                {"properties": {"ele": 1190}},
                {"properties": {}},
            ]
        }
        session = _FakeSession(response=_FakeResponse(200, payload))
        source = TilequeryElevationSource(token="pk.test", session=session)

        result = source.query(Coordinate(lon=-72.81, lat=44.54), radius_m=500, limit=50)

        assert result == [1200, 1190, None]
        url, params = session.requests[0]
        assert url.endswith("/tilequery/-72.81,44.54.json")
        assert params == {"layers": "contour", "limit": 50, "radius": 500, "access_token": "pk.test"}

    @pytest.mark.parametrize(
        "session",
        [
            _FakeSession(error=requests.Timeout("slow")),
            _FakeSession(response=_FakeResponse(401, {"message": "Not Authorized"})),
            _FakeSession(response=_FakeResponse(200, invalid_json=True)),
            _FakeSession(response=_FakeResponse(200, ["unexpected"])),
            _FakeSession(response=_FakeResponse(200, {"features": ["unexpected"]})),
            _FakeSession(response=_FakeResponse(200, {"features": [{"properties": "unexpected"}]})),
        ],
        ids=["network", "status", "json", "list-body", "feature-not-object", "properties-not-object"],
    )
    def test_failures_raise_source_error(self, session: _FakeSession) -> None:
        source = TilequeryElevationSource(token="pk.test", session=session)
        with pytest.raises(ElevationSourceError):
            source.query(Coordinate(lon=0.0, lat=0.0), radius_m=500, limit=50)


@pytest.fixture
def tiny_dem(tmp_path: Any) -> Any:
    """5x5 GeoTIFF in EPSG:4326, 0.0001° pixels, origin (0.0, 0.0005).

    Center pixel (row 2, col 2) is 1234 m, one corner is the -9999 sentinel,
    everything else is 1200 m.
    """
    data = np.full((5, 5), 1200.0, dtype="float32")
    data[2, 2] = 1234.0
    data[0, 0] = -9999.0
    path = tmp_path / "dem.tif"
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=5,
        width=5,
        count=1,
        dtype="float32",
        crs="EPSG:4326",
        transform=from_origin(0.0, 0.0005, 0.0001, 0.0001),
    ) as dst:
        dst.write(data, 1)
    return path


class TestDEMElevationSource:
    """DEMElevationSource - pixels around a point from a local GeoTIFF."""

    CENTER = Coordinate(lon=0.00025, lat=0.00025)

    def test_nearest_pixel_first(self, tiny_dem: Any) -> None:
        source = DEMElevationSource(dem_path=tiny_dem)
        assert source.query(self.CENTER, radius_m=1, limit=1) == [1234.0]
        assert source.is_loaded

    def test_window_includes_sentinel_raw(self, tiny_dem: Any) -> None:
        """The whole 5x5 window is returned, sentinel included for the sampler to drop."""
        source = DEMElevationSource(dem_path=tiny_dem)
        values = source.query(self.CENTER, radius_m=30, limit=50)
        assert len(values) == 25
        assert values[0] == 1234.0
        assert -9999.0 in values

    def test_sampler_filters_sentinel(self, tiny_dem: Any) -> None:
        sampler = ElevationSampler(source=DEMElevationSource(dem_path=tiny_dem), radius_m=30, limit=50)
        assert sampler.sample(self.CENTER).elevation_m == 1200.0

    def test_outside_bounds_is_empty(self, tiny_dem: Any) -> None:
        source = DEMElevationSource(dem_path=tiny_dem)
        assert source.query(Coordinate(lon=1.0, lat=1.0), radius_m=10, limit=5) == []

    def test_missing_file_raises(self, tmp_path: Any) -> None:
        source = DEMElevationSource(dem_path=tmp_path / "missing.tif")
        with pytest.raises(ElevationSourceError):
            source.query(self.CENTER, radius_m=10, limit=5)

    def test_corrupt_file_raises_source_error(self, tmp_path: Any) -> None:
        """A truncated download is a source failure, not a crash."""
        path = tmp_path / "corrupt.tif"
        path.write_bytes(b"II*\x00not really a geotiff")
        source = DEMElevationSource(dem_path=path)

        with pytest.raises(ElevationSourceError):
            source.query(self.CENTER, radius_m=10, limit=5)
        assert not source.is_loaded


# =============================================================================
# BAD SOURCE DATA THROUGH THE WHOLE PIPELINE
# =============================================================================


class TestProfileSurvivesBadSources:
    """Broken sources turn into no-data samples; the profile is still built."""

    PATH = [Coordinate(lon=0.0, lat=0.0), Coordinate(lon=0.0, lat=0.001)]

    def assert_all_no_data(self, sampler: ElevationSampler) -> None:
        profile = ProfileBuilder(sampler=sampler).build(self.PATH)
        assert len(profile) >= 2
        assert all(sample.elevation_m == ElevationConfig.NO_DATA_M for sample in profile.samples)

    def test_corrupt_dem(self, tmp_path: Any) -> None:
        path = tmp_path / "corrupt.tif"
        path.write_bytes(b"\x00\x01garbage")
        self.assert_all_no_data(ElevationSampler(source=DEMElevationSource(dem_path=path)))

    def test_tilequery_list_body(self) -> None:
        session = _FakeSession(response=_FakeResponse(200, ["unexpected"]))
        source = TilequeryElevationSource(token="pk.test", session=session)
        self.assert_all_no_data(ElevationSampler(source=source))

    def test_tilequery_string_elevation(self) -> None:
        session = _FakeSession(response=_FakeResponse(200, {"features": [{"properties": {"ele": "1200"}}]}))
        source = TilequeryElevationSource(token="pk.test", session=session)
        self.assert_all_no_data(ElevationSampler(source=source))
