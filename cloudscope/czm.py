"""Concentric zone model and plane-fitting helpers for ground segmentation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator, NamedTuple

import numpy as np

_NUM_ZONES = 4


@dataclass
class PatchWorkParams:
    """Tuning parameters of the ground segmentation."""

    verbose: bool = False
    enable_RNR: bool = False
    enable_RVPF: bool = True
    enable_TGR: bool = True

    num_iter: int = 3
    num_lpr: int = 20
    num_min_pts: int = 10
    num_zones: int = 4
    num_rings_of_interest: int = 4
    noise_filter_channel_num: int = 10
    pc_num_channel: int = 1024

    sensor_height: float = 0.000001
    th_seeds: float = 0.125
    th_dist: float = 0.125
    th_seeds_v: float = 0.5
    th_dist_v: float = 0.1
    max_range: float = 35.0
    min_range: float = 2.0
    uprightness_thr: float = 0.307
    adaptive_seed_selection_margin: float = -1.2
    intensity_thr: float = 0.2

    num_sectors_each_zone: list[int] = field(default_factory=lambda: [16, 32, 54, 32])
    num_rings_each_zone: list[int] = field(default_factory=lambda: [2, 4, 4, 4])

    max_flatness_storage: int = 1000
    max_elevation_storage: int = 1000

    elevation_thr: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])
    flatness_thr: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])


@dataclass
class RevertCandidate:
    """A patch whose ground status is decided by temporal ground revert."""

    concentric_idx: int
    sector_idx: int
    ground_flatness: float
    line_variable: float
    pc_mean: np.ndarray
    regionwise_ground: np.ndarray


@dataclass
class PlaneFit:
    """A plane ``normal . p + d = 0`` fitted to a set of points."""

    normal: np.ndarray
    d: float
    mean: np.ndarray
    singular_values: np.ndarray  # descending


class Patch(NamedTuple):
    """One sector of the zone model with its points."""

    zone: int
    ring: int
    sector: int
    concentric: int
    points: np.ndarray


def _as_points(points) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3), dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError("points must be an (N, 3) or wider array")
    return arr[:, :3]


class ConcentricZoneModel:
    """Polar grid of zones, rings and sectors that bins points by range and angle."""

    def __init__(self, params: PatchWorkParams):
        if params.num_zones != _NUM_ZONES:
            raise ValueError(f"the zone model needs exactly {_NUM_ZONES} zones")
        if (
            len(params.num_rings_each_zone) < _NUM_ZONES
            or len(params.num_sectors_each_zone) < _NUM_ZONES
        ):
            raise ValueError("ring and sector counts are needed for every zone")
        if params.max_range <= params.min_range:
            raise ValueError("max_range must be greater than min_range")

        self.params = params
        lo, hi = params.min_range, params.max_range
        z2 = (7 * lo + hi) / 8.0
        z3 = (3 * lo + hi) / 4.0
        z4 = (lo + hi) / 2.0
        self.min_ranges = [lo, z2, z3, z4]
        bounds = self.min_ranges + [hi]
        rings = params.num_rings_each_zone
        sectors = params.num_sectors_each_zone
        self.ring_sizes = [
            (bounds[k + 1] - bounds[k]) / rings[k] for k in range(_NUM_ZONES)
        ]
        self.sector_sizes = [2 * math.pi / sectors[k] for k in range(_NUM_ZONES)]
        self.zones: list[list[list[list[np.ndarray]]]] = [
            [[[] for _ in range(sectors[k])] for _ in range(rings[k])]
            for k in range(_NUM_ZONES)
        ]

    def clear(self) -> None:
        """Remove every point from every sector."""
        for zone in self.zones:
            for ring in zone:
                for sector in ring:
                    sector.clear()

    def _zone_of(self, r: float) -> int:
        if r < self.min_ranges[1]:
            return 0
        if r < self.min_ranges[2]:
            return 1
        if r < self.min_ranges[3]:
            return 2
        return 3

    def assign(self, points) -> None:
        """Bin points whose planar range lies in (min_range, max_range]."""
        pts = _as_points(points)
        p = self.params
        for point in pts:
            x, y = float(point[0]), float(point[1])
            r = xy_to_radius(x, y)
            if not (p.min_range < r <= p.max_range):
                continue
            theta = xy_to_theta(x, y)
            k = self._zone_of(r)
            ring_idx = min(
                int((r - self.min_ranges[k]) / self.ring_sizes[k]),
                p.num_rings_each_zone[k] - 1,
            )
            sector_idx = min(
                int(theta / self.sector_sizes[k]), p.num_sectors_each_zone[k] - 1
            )
            self.zones[k][ring_idx][sector_idx].append(np.array(point, dtype=float))

    def patches(self) -> Iterator[Patch]:
        """Yield every sector in zone, ring, sector order, empty ones included."""
        concentric = 0
        for zone_idx, zone in enumerate(self.zones):
            for ring_idx, ring in enumerate(zone):
                for sector_idx, sector in enumerate(ring):
                    pts = (
                        np.vstack(sector) if sector else np.empty((0, 3), dtype=float)
                    )
                    yield Patch(zone_idx, ring_idx, sector_idx, concentric, pts)
                concentric += 1


def fit_plane(points) -> PlaneFit:
    """Fit a plane by SVD of the covariance; the normal points upwards."""
    pts = _as_points(points)
    if len(pts) == 0:
        raise ValueError("cannot fit a plane to no points")
    mean = pts.mean(axis=0)
    centered = pts - mean
    cov = centered.T @ centered / max(len(pts) - 1, 1)
    u, s, _ = np.linalg.svd(cov)
    normal = u[:, 2].copy()
    if normal[2] < 0:
        normal = -normal
    d = -float(normal @ mean)
    return PlaneFit(normal=normal, d=d, mean=mean, singular_values=s)


def extract_initial_seeds(
    zone_idx: int, sorted_points, params: PatchWorkParams, th_seed: float | None = None
) -> np.ndarray:
    """Select seed points lying within ``th_seed`` above the lowest points.

    ``sorted_points`` must be sorted by ascending z. In zone 0 the points
    below ``adaptive_seed_selection_margin * sensor_height`` are skipped when
    the mean height of the lowest points is computed.
    """
    pts = _as_points(sorted_points)
    if th_seed is None:
        th_seed = params.th_seeds
    z = pts[:, 2]

    start = 0
    if zone_idx == 0:
        limit = params.adaptive_seed_selection_margin * params.sensor_height
        for value in z:
            if value < limit:
                start += 1
            else:
                break

    lowest = z[start : start + params.num_lpr]
    lpr_height = float(lowest.mean()) if len(lowest) else 0.0
    return pts[z < lpr_height + th_seed]


def mean_stdev(values) -> tuple[float, float]:
    """Mean and population standard deviation; (0, 0) for fewer than two values."""
    vals = np.asarray(list(values), dtype=float)
    if len(vals) <= 1:
        return 0.0, 0.0
    mean = float(vals.sum() / len(vals))
    stdev = math.sqrt(float(((vals - mean) ** 2).sum()) / len(vals))
    return mean, stdev


def xy_to_theta(x: float, y: float) -> float:
    """Planar angle in (0, 2*pi]; the positive x axis maps to 2*pi."""
    angle = math.atan2(y, x)
    return angle if angle > 0 else 2 * math.pi + angle


def xy_to_radius(x: float, y: float) -> float:
    """Planar distance from the origin."""
    return math.sqrt(x * x + y * y)


def point_to_plane_distance(point, normal, d: float):
    """Signed distance ``normal . p + d`` for one point or an (N, 3) array."""
    p = np.asarray(point, dtype=float)
    n = np.asarray(normal, dtype=float)[:3]
    if p.ndim == 1:
        return float(p[:3] @ n + d)
    return p[:, :3] @ n + d