"""Euclidean clustering of point clouds."""

from __future__ import annotations

import numpy as np
from scipy.spatial import cKDTree


class EuclideanCluster:
    """Group points whose neighbours lie within ``tolerance`` of each other."""

    def __init__(self, min_size: int = 30, max_size: int = 20000, tolerance: float = 0.4):
        self.min_size = min_size
        self.max_size = max_size
        self.tolerance = tolerance

    def compute(self, points) -> list[list[int]]:
        """Return the point indices of every cluster within the size limits.

        ``points`` is an (N, 3) or wider array; only the first three
        columns (x, y, z) are used. An empty cloud gives no clusters.
        """
        pts = np.asarray(points, dtype=float)
        if pts.size == 0:
            return []
        if pts.ndim != 2 or pts.shape[1] < 3:
            raise ValueError("points must be an (N, 3) or wider array")

        xyz = pts[:, :3]
        tree = cKDTree(xyz)
        processed = np.zeros(len(xyz), dtype=bool)
        clusters: list[list[int]] = []

        for start in range(len(xyz)):
            if processed[start]:
                continue
            processed[start] = True
            seeds = [start]
            for seed in seeds:
                neighbours = tree.query_ball_point(
                    xyz[seed], self.tolerance, return_sorted=True
                )
                for nb in neighbours:
                    if not processed[nb]:
                        processed[nb] = True
                        seeds.append(nb)
            if self.min_size <= len(seeds) <= self.max_size:
                clusters.append(seeds)
        return clusters