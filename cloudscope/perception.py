"""Object detection over point clouds: ground removal, clustering, boxes, tracking."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

import numpy as np

from cloudscope.boxes import ObjectBox
from cloudscope.cluster import EuclideanCluster
from cloudscope.covariance import CovarianceFilter
from cloudscope.czm import PatchWorkParams
from cloudscope.mathutil import vec_to_quat
from cloudscope.patchwork import PatchWork
from cloudscope.tracker import ObjectTracker

log = logging.getLogger(__name__)

_SMALL_AREA = 0.25
_SMALL_AREA_MIN_HEIGHT = 0.3
_MIN_HEIGHT = 0.23
_BOX_PROBABILITY = 100
_PI_APPROX = 3.1415


def _as_cloud(cloud) -> np.ndarray:
    """Return ``cloud`` as an (N, 4) array of x, y, z, intensity."""
    arr = np.asarray(cloud, dtype=float)
    if arr.size == 0:
        return np.empty((0, 4), dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError("cloud must be an (N, 3) or wider array")
    if arr.shape[1] == 3:
        arr = np.hstack([arr, np.zeros((len(arr), 1))])
    return arr[:, :4].copy()


def _convex_hull(points: np.ndarray) -> np.ndarray:
    """Convex hull of 2-D points, counter-clockwise, collinear points dropped."""
    uniq = np.unique(points, axis=0)
    if len(uniq) < 3:
        return uniq

    def cross(o, a, b) -> float:
        return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])

    def half(seq) -> list:
        chain: list = []
        for p in seq:
            while len(chain) >= 2 and cross(chain[-2], chain[-1], p) <= 0:
                chain.pop()
            chain.append(p)
        return chain

    lower = half(uniq)
    upper = half(uniq[::-1])
    return np.array(lower[:-1] + upper[:-1])


def min_area_rect(points):
    """Smallest rotated rectangle around 2-D points.

    Returns ``((cx, cy), (width, height), angle)`` where ``angle`` lies in
    [0, 90) degrees and ``width`` is the extent along that direction.
    """
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or pts.shape[1] < 2 or len(pts) == 0:
        raise ValueError("points must be a non-empty (N, 2) or wider array")
    hull = _convex_hull(pts[:, :2])
    if len(hull) == 1:
        return (float(hull[0, 0]), float(hull[0, 1])), (0.0, 0.0), 0.0

    best = None
    for a, b in zip(hull, np.roll(hull, -1, axis=0)):
        edge = b - a
        length = math.hypot(edge[0], edge[1])
        if length == 0.0:
            continue
        u = edge / length
        v = np.array([-u[1], u[0]])
        pu = hull @ u
        pv = hull @ v
        width = float(pu.max() - pu.min())
        height = float(pv.max() - pv.min())
        area = width * height
        if best is None or area < best[0]:
            center = (pu.max() + pu.min()) / 2 * u + (pv.max() + pv.min()) / 2 * v
            angle = math.degrees(math.atan2(u[1], u[0])) % 180.0
            best = (area, center, width, height, angle)

    _, center, width, height, angle = best
    if angle >= 90.0:
        angle -= 90.0
        width, height = height, width
    return (float(center[0]), float(center[1])), (width, height), float(angle)


def boxes_from_clusters(cloud, clusters) -> list[ObjectBox]:
    """Fit an oriented box to every cluster that is tall or large enough."""
    pts = _as_cloud(cloud)
    if len(pts) == 0:
        return []

    boxes: list[ObjectBox] = []
    for indices in clusters:
        idx = np.asarray(list(indices), dtype=int)
        if len(idx) == 0:
            continue
        xyz = pts[idx, :3]
        lo, hi = xyz.min(axis=0), xyz.max(axis=0)
        size_x, size_y, size_z = hi[0] - lo[0], hi[1] - lo[1], hi[2]
        if size_x * size_y < _SMALL_AREA and size_z < _SMALL_AREA_MIN_HEIGHT:
            continue
        if size_z < _MIN_HEIGHT:
            continue

        (cx, cy), (width, height), angle = min_area_rect(xyz[:, :2])
        boxes.append(
            ObjectBox(
                trans=np.array([cx, cy, size_z / 2]),
                rotation=vec_to_quat([0.0, 0.0, angle / 180 * _PI_APPROX]),
                size=np.array([width, height, size_z]),
                probability=_BOX_PROBABILITY,
            )
        )
    return boxes


class PerceptionPipeline(ABC):
    """Remove the ground, cluster what is left, box the clusters and track them."""

    def __init__(self, cluster: EuclideanCluster | None = None, tracker: ObjectTracker | None = None):
        self.cluster = cluster if cluster is not None else EuclideanCluster()
        self.tracker = tracker if tracker is not None else ObjectTracker()
        self.time = 0.0
        self.original_cloud = np.empty((0, 4), dtype=float)
        self.object_cloud = np.empty((0, 4), dtype=float)
        self.clusters: list[list[int]] = []
        self.objects: list[ObjectBox] = []

    @abstractmethod
    def extract_object_cloud(self, cloud) -> np.ndarray:
        """Return the non-ground rows of an (N, 4) cloud."""

    def run(self, cloud, time: float) -> list[ObjectBox]:
        """Process one frame taken at ``time`` seconds and return its boxes."""
        pts = _as_cloud(cloud)
        self.time = float(time)
        self.original_cloud = pts
        self.object_cloud = np.empty((0, 4), dtype=float)
        self.clusters = []
        self.objects = []

        self.object_cloud = _as_cloud(self.extract_object_cloud(pts))
        self.clusters = self.cluster.compute(self.object_cloud) if len(self.object_cloud) else []
        self.objects = boxes_from_clusters(self.object_cloud, self.clusters)
        self.tracker.track(self.objects, self.time)
        return self.objects


class PatchWorkPerception(PerceptionPipeline):
    """Pipeline whose ground removal is the concentric-zone plane fit."""

    def __init__(self, params: PatchWorkParams | None = None, **kwargs):
        super().__init__(**kwargs)
        self.patchwork = PatchWork(params)

    def extract_object_cloud(self, cloud) -> np.ndarray:
        pts = _as_cloud(cloud)
        self.patchwork.estimate_ground(pts[:, :3])
        return self.patchwork.nonground_cloud


class CovariancePerception(PerceptionPipeline):
    """Pipeline whose ground removal uses local height variance."""

    def __init__(self, covariance: CovarianceFilter | None = None, **kwargs):
        super().__init__(**kwargs)
        self.covariance = covariance if covariance is not None else CovarianceFilter()

    def extract_object_cloud(self, cloud) -> np.ndarray:
        return self.covariance.filter(_as_cloud(cloud))


def create_pipeline(name: str) -> PerceptionPipeline:
    """Pipeline for an algorithm name; unknown names fall back to patchwork."""
    if name == "patchwork":
        log.info("perception: patchwork")
        return PatchWorkPerception()
    if name == "covariance":
        log.info("perception: Covariance")
        return CovariancePerception()
    log.warning("%s doesn't exist! Now perception: patch work", name)
    return PatchWorkPerception()