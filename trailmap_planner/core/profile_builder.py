"""Elevation profile construction for a trail path.

Pipeline (in order):
1. Resample the raw path so sampling density does not depend on how
   sparsely the trail was digitized
2. Fan out one elevation lookup per resampled point on a thread pool and
   join on ALL of them in index order (ordered fan-in, not a race)
3. Assign cumulative along-path distance from the first resampled point
4. Drop samples within MIN_SEPARATION_KM of the previous retained sample,
   always keeping the first

ProfileService runs builds in the background and tags each one with the
selection epoch it belongs to, so a profile for a trail the user already
moved away from is discarded instead of shown.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from trailmap_planner.constants import ElevationConfig
from trailmap_planner.core.elevation_sampler import ElevationReading, ElevationSampler
from trailmap_planner.core.resampler import Resampler
from trailmap_planner.model.coordinate import TrailPath
from trailmap_planner.model.elevation_profile import ElevationProfile, ElevationSample
from trailmap_planner.model.map_state import SelectionState
from trailmap_planner.model.trail import TrailFeature, TrailSelection

logger = logging.getLogger(__name__)


class ProfileBuilder:
    """Builds an ElevationProfile from a raw trail path.

    Example:
        builder = ProfileBuilder(sampler=ElevationSampler(source=TilequeryElevationSource()))
        profile = builder.build(feature.path)
    """

    def __init__(
        self,
        sampler: ElevationSampler,
        max_workers: int = ElevationConfig.MAX_WORKERS,
        request_timeout_s: Optional[float] = ElevationConfig.REQUEST_TIMEOUT_S,
        max_segment_km: float = ElevationConfig.MAX_SEGMENT_KM,
        min_separation_km: float = ElevationConfig.MIN_SEPARATION_KM,
    ) -> None:
        """Initialize profile builder.

        Args:
            sampler: Single-point elevation sampler
            max_workers: Concurrent elevation lookups
            request_timeout_s: Per-sample ceiling; a slower sample becomes "no data".
                None waits indefinitely.
            max_segment_km: Resampling step
            min_separation_km: Deduplication threshold
        """
        self.sampler = sampler
        self.max_workers = max_workers
        self.request_timeout_s = request_timeout_s
        self.max_segment_km = max_segment_km
        self.min_separation_km = min_separation_km

    def build(self, path: TrailPath) -> ElevationProfile:
        """Compute the elevation profile for a path.

        Never raises for data problems: an empty path gives an empty profile
        and failed samples read as 0 m.
        """
        if not path:
            logger.info("[PROFILE] Empty path, returning empty profile")
            return ElevationProfile.empty()

        dense = Resampler.resample(path, max_segment_km=self.max_segment_km)
        readings = self._sample_all(dense)

        samples = []
        distance_km = 0.0
        for i, (coord, reading) in enumerate(zip(dense, readings)):
            if i > 0:
                distance_km += dense[i - 1].distance_to_km(coord)
            samples.append(ElevationSample(coordinates=coord, distance_km=distance_km, elevation_m=reading.elevation_m))

        kept = self.deduplicate(samples, min_separation_km=self.min_separation_km)
        missing = sum(1 for r in readings if not r.has_data)
        logger.info(
            f"[PROFILE] Built profile: {len(path)} vertices -> {len(dense)} samples -> {len(kept)} kept "
            f"({missing} without data)"
        )
        return ElevationProfile(samples=tuple(kept))

    @staticmethod
    def deduplicate(
        samples: list[ElevationSample],
        min_separation_km: float = ElevationConfig.MIN_SEPARATION_KM,
    ) -> list[ElevationSample]:
        """Drop samples too close to the previous retained sample.

        Distance is measured between coordinates (great-circle), not between
        distance_km values. The first sample is always kept.
        """
        kept: list[ElevationSample] = []
        for sample in samples:
            if not kept or kept[-1].coordinates.distance_to_km(sample.coordinates) > min_separation_km:
                kept.append(sample)
        return kept

    def _sample_all(self, coords: TrailPath) -> list[ElevationReading]:
        """Sample every coordinate concurrently; results keep input order."""
        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="elevation")
        try:
            futures = [pool.submit(self.sampler.sample, coord) for coord in coords]
            readings = []
            for coord, future in zip(coords, futures):
                try:
                    readings.append(future.result(timeout=self.request_timeout_s))
                except TimeoutError:
                    logger.warning(f"[ELEVATION] Timed out after {self.request_timeout_s}s at {coord}")
                    future.cancel()
                    readings.append(ElevationReading.no_data())
            return readings
        finally:
            pool.shutdown(wait=False, cancel_futures=True)


@dataclass
class ProfileJob:
    """One in-flight profile computation, tagged with its selection epoch."""

    feature: TrailFeature
    epoch: int
    future: "Future[ElevationProfile]"

    @property
    def done(self) -> bool:
        return self.future.done()


class ProfileService:
    """Runs profile builds in the background and drops stale results.

    The selection state is read, never written: the LayerSynchronizer owns it.

    Example:
        service = ProfileService(builder=builder, selection=synchronizer.selection)
        job = service.request(feature, epoch=synchronizer.select(feature.id))
        trail = service.result(job)  # None if the user selected something else meanwhile
    """

    def __init__(self, builder: ProfileBuilder, selection: SelectionState) -> None:
        self.builder = builder
        self.selection = selection
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="profile")
        self._current: Optional[ProfileJob] = None

    @property
    def current_job(self) -> Optional[ProfileJob]:
        return self._current

    def request(self, feature: TrailFeature, epoch: int) -> ProfileJob:
        """Start building the profile for a feature under the given epoch.

        A previous job that has not started yet is cancelled; one already
        running finishes in the background and its result is discarded.
        """
        self.cancel()
        future = self._executor.submit(self.builder.build, feature.path)
        job = ProfileJob(feature=feature, epoch=epoch, future=future)
        self._current = job
        logger.info(f"[PROFILE] Requested profile for '{feature.name}' (epoch {epoch})")
        return job

    def result(self, job: ProfileJob, timeout: Optional[float] = None) -> Optional[TrailSelection]:
        """Wait for a job and return its selection record, or None if superseded."""
        if job.future.cancelled():
            return None
        profile = job.future.result(timeout=timeout)
        if not self.selection.is_current(job.epoch) or job is not self._current:
            logger.debug(f"[PROFILE] Discarding stale profile for '{job.feature.name}' (epoch {job.epoch})")
            return None
        return TrailSelection(
            name=job.feature.name,
            description=job.feature.description,
            profile=profile,
            feature_id=job.feature.id,
        )

    def cancel(self) -> None:
        """Abandon the current job; its eventual result will be discarded."""
        if self._current is not None:
            self._current.future.cancel()
            logger.debug(f"[PROFILE] Abandoned job for '{self._current.feature.name}' (epoch {self._current.epoch})")
            self._current = None

    def shutdown(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)
