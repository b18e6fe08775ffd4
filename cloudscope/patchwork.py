"""Ground segmentation of point clouds over a concentric zone model."""

from __future__ import annotations

import copy
import logging
import sys
import time
from itertools import groupby
from operator import attrgetter

import numpy as np

from cloudscope.czm import (
    ConcentricZoneModel,
    PatchWorkParams,
    PlaneFit,
    RevertCandidate,
    extract_initial_seeds,
    fit_plane,
    mean_stdev,
    point_to_plane_distance,
)

log = logging.getLogger(__name__)

# Height given to points marked as reflected noise (smallest normal float32).
NOISE_HEIGHT = float(np.finfo(np.float32).tiny)
# Intensity written into the non-ground cloud handed to object detection.
OBJECT_INTENSITY = 999.0

_MAX_RINGS_OF_INTEREST = 4
_LINE_VARIABLE_LIMIT = 8.0
_LARGE_PATCH = 1500


def _xyz(points) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3), dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError("points must be an (N, 3) or wider array")
    return arr[:, :3]


def _stack(parts: list[np.ndarray]) -> np.ndarray:
    parts = [p for p in parts if len(p)]
    if not parts:
        return np.empty((0, 3), dtype=float)
    return np.vstack(parts)


def _default_plane() -> PlaneFit:
    return PlaneFit(
        normal=np.array([0.0, 0.0, 1.0]),
        d=0.0,
        mean=np.zeros(3),
        singular_values=np.zeros(3),
    )


class PatchWork:
    """Split a cloud into ground and non-ground points, patch by patch."""

    def __init__(self, params: PatchWorkParams | None = None):
        self.update_elevation: list[list[float]] = [[] for _ in range(_MAX_RINGS_OF_INTEREST)]
        self.update_flatness: list[list[float]] = [[] for _ in range(_MAX_RINGS_OF_INTEREST)]
        self._plane = _default_plane()
        self.ground = np.empty((0, 3), dtype=float)
        self.nonground = np.empty((0, 3), dtype=float)
        self.centers = np.empty((0, 3), dtype=float)
        self.normals = np.empty((0, 3), dtype=float)
        self.time_taken = 0.0
        self.set_params(params if params is not None else PatchWorkParams())

    def set_params(self, params: PatchWorkParams) -> None:
        """Use a copy of ``params`` and rebuild the zone model."""
        params = copy.deepcopy(params)
        if not 0 <= params.num_rings_of_interest <= _MAX_RINGS_OF_INTEREST:
            raise ValueError(
                f"num_rings_of_interest must lie in 0..{_MAX_RINGS_OF_INTEREST}"
            )
        if (
            len(params.elevation_thr) < params.num_rings_of_interest
            or len(params.flatness_thr) < params.num_rings_of_interest
        ):
            raise ValueError("a threshold is needed for every ring of interest")
        self._czm = ConcentricZoneModel(params)
        self.params = params

    @property
    def sensor_height(self) -> float:
        """Current estimate of the sensor height above the ground."""
        return self.params.sensor_height

    @property
    def nonground_cloud(self) -> np.ndarray:
        """Non-ground points as (x, y, z, intensity) rows."""
        intensity = np.full((len(self.nonground), 1), OBJECT_INTENSITY)
        return np.hstack([self.nonground, intensity])

    def _estimate_plane(self, points: np.ndarray) -> None:
        if len(points):
            self._plane = fit_plane(points)

    def _reflected_noise_removal(self, pts: np.ndarray) -> None:
        p = self.params
        n = len(pts)
        lower = n - p.pc_num_channel * p.noise_filter_channel_num
        idx = np.arange(n - 1, max(lower, -1), -1)
        if len(idx) == 0:
            return
        low = pts[idx, 2] <= -p.sensor_height - 0.8
        pts[idx[low], 2] = NOISE_HEIGHT

    def estimate_ground(self, cloud) -> tuple[np.ndarray, np.ndarray]:
        """Segment ``cloud`` and return (ground, nonground) points.

        Points outside (min_range, max_range] are in neither result.
        The results are also kept on the instance, together with the
        centre and normal of every fitted patch.
        """
        p = self.params
        pts = _xyz(cloud).copy()
        start = time.perf_counter()

        if p.enable_RNR:
            self._reflected_noise_removal(pts)

        self._czm.clear()
        self._czm.assign(pts)

        ground: list[np.ndarray] = []
        nonground: list[np.ndarray] = []
        centers: list[np.ndarray] = []
        normals: list[np.ndarray] = []
        candidates: list[RevertCandidate] = []
        ringwise_flatness: list[float] = []

        for concentric, ring in groupby(self._czm.patches(), key=attrgetter("concentric")):
            for patch in ring:
                region = patch.points
                if len(region) < p.num_min_pts:
                    nonground.append(region)
                    continue

                region = region[np.argsort(region[:, 2], kind="stable")]
                if p.enable_RNR:
                    noisy = region[:, 2] == NOISE_HEIGHT
                    lead = len(region) if noisy.all() else int(np.argmin(noisy))
                    region = region[lead:]

                region_ground, region_nonground = self.extract_piecewise_ground(
                    patch.zone, region
                )
                plane = self._plane
                centers.append(plane.mean.copy())
                normals.append(plane.normal.copy())

                sv = plane.singular_values
                uprightness = float(plane.normal[2])
                elevation = float(plane.mean[2])
                flatness = float(np.min(sv))
                line_variable = float(sv[0] / sv[1]) if sv[1] != 0 else sys.float_info.max
                heading = float(plane.mean @ plane.normal)

                is_upright = uprightness > p.uprightness_thr
                is_near = concentric < p.num_rings_of_interest
                is_not_elevated = is_near and elevation < p.elevation_thr[concentric]
                is_flat = is_near and flatness < p.flatness_thr[concentric]
                is_heading_outside = heading < 0.0

                if is_upright and is_not_elevated and is_near:
                    self.update_elevation[concentric].append(elevation)
                    self.update_flatness[concentric].append(flatness)
                    ringwise_flatness.append(flatness)

                if not is_upright:
                    nonground.append(region_ground)
                elif not is_near:
                    ground.append(region_ground)
                elif not is_heading_outside:
                    nonground.append(region_ground)
                elif is_not_elevated or is_flat:
                    ground.append(region_ground)
                else:
                    candidates.append(
                        RevertCandidate(
                            concentric_idx=concentric,
                            sector_idx=patch.sector,
                            ground_flatness=flatness,
                            line_variable=line_variable,
                            pc_mean=plane.mean.copy(),
                            regionwise_ground=region_ground,
                        )
                    )
                nonground.append(region_nonground)

            if candidates:
                if p.enable_TGR:
                    self._temporal_ground_revert(
                        ground, nonground, ringwise_flatness, candidates, concentric
                    )
                else:
                    nonground.extend(c.regionwise_ground for c in candidates)
                candidates.clear()
                ringwise_flatness.clear()

        self._update_elevation_thr()
        self._update_flatness_thr()

        self.ground = _stack(ground)
        self.nonground = _stack(nonground)
        self.centers = _stack([c.reshape(1, 3) for c in centers])
        self.normals = _stack([n.reshape(1, 3) for n in normals])
        self.time_taken = time.perf_counter() - start

        if p.verbose:
            log.info("ground estimation took %.6f s", self.time_taken)
        return self.ground, self.nonground

    def _temporal_ground_revert(
        self,
        ground: list[np.ndarray],
        nonground: list[np.ndarray],
        ring_flatness: list[float],
        candidates: list[RevertCandidate],
        concentric_idx: int,
    ) -> None:
        p = self.params
        mean_flatness, stdev_flatness = mean_stdev(ring_flatness)
        if p.verbose:
            log.info(
                "[%d, %d] mean_flatness: %g, stdev_flatness: %g",
                candidates[0].concentric_idx,
                candidates[0].sector_idx,
                mean_flatness,
                stdev_flatness,
            )
        mu = np.float64(mean_flatness + 1.5 * stdev_flatness)
        for candidate in candidates:
            with np.errstate(all="ignore"):
                prob_flatness = 1.0 / (
                    1.0 + np.exp((np.float64(candidate.ground_flatness) - mu) / (mu / 10))
                )
            if (
                len(candidate.regionwise_ground) > _LARGE_PATCH
                and candidate.ground_flatness < p.th_dist * p.th_dist
            ):
                prob_flatness = 1.0
            prob_line = 0.0 if candidate.line_variable > _LINE_VARIABLE_LIMIT else 1.0
            revert = bool(prob_line * prob_flatness > 0.5)

            if concentric_idx < p.num_rings_of_interest:
                target = ground if revert else nonground
                target.append(candidate.regionwise_ground)

    def _update_elevation_thr(self) -> None:
        p = self.params
        for i in range(p.num_rings_of_interest):
            history = self.update_elevation[i]
            if not history:
                continue
            mean, stdev = mean_stdev(history)
            if i == 0:
                p.elevation_thr[i] = mean + 3 * stdev
                p.sensor_height = -mean
            else:
                p.elevation_thr[i] = mean + 2 * stdev
            exceed = len(history) - p.max_elevation_storage
            if exceed > 0:
                del history[:exceed]

    def _update_flatness_thr(self) -> None:
        p = self.params
        for i in range(p.num_rings_of_interest):
            history = self.update_flatness[i]
            if len(history) <= 1:
                break
            mean, stdev = mean_stdev(history)
            p.flatness_thr[i] = mean + stdev
            exceed = len(history) - p.max_flatness_storage
            if exceed > 0:
                del history[:exceed]

    def extract_piecewise_ground(self, zone_idx: int, src) -> tuple[np.ndarray, np.ndarray]:
        """Split one patch, sorted by ascending z, into (ground, nonground).

        Vertical structures found in zone 0 go to the non-ground part first;
        the remaining points are then split by iterative plane fitting.
        """
        p = self.params
        pts = _xyz(src)
        vertical_mask = np.zeros(len(pts), dtype=bool)
        vertical: list[np.ndarray] = []

        if p.enable_RVPF:
            for _ in range(p.num_iter):
                seeds = extract_initial_seeds(zone_idx, pts[~vertical_mask], p, p.th_seeds_v)
                self._estimate_plane(seeds)
                plane = self._plane
                if not (zone_idx == 0 and plane.normal[2] < p.uprightness_thr):
                    break
                remaining = np.flatnonzero(~vertical_mask)
                dist = point_to_plane_distance(pts[remaining], plane.normal, plane.d)
                hits = remaining[np.abs(dist) < p.th_dist_v]
                vertical_mask[hits] = True
                vertical.append(pts[hits])

        rest = pts[~vertical_mask]
        self._estimate_plane(extract_initial_seeds(zone_idx, rest, p))

        ground = np.empty((0, 3), dtype=float)
        above = np.empty((0, 3), dtype=float)
        for i in range(p.num_iter):
            plane = self._plane
            below = np.asarray(point_to_plane_distance(rest, plane.normal, plane.d)) < p.th_dist
            if i < p.num_iter - 1:
                self._estimate_plane(rest[below])
            else:
                ground = rest[below]
                above = rest[~below]
                self._estimate_plane(ground)

        return ground, _stack(vertical + [above])