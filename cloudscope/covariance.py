"""Ground removal by the height variance of nearby points."""

from __future__ import annotations

import numpy as np
from scipy.spatial import cKDTree


class CovarianceFilter:
    """Keep points above ``zmax_threshold`` or in neighbourhoods of varying height."""

    def __init__(
        self,
        covariance_threshold: float = 0.5,
        zmax_threshold: float = 0.0,
        neighbour_radius: float = 0.4,
    ):
        self.covariance_threshold = covariance_threshold
        self.zmax_threshold = zmax_threshold
        self.neighbour_radius = neighbour_radius
        self.cloud_out = np.empty((0, 4), dtype=float)

    def filter(self, cloud) -> np.ndarray:
        """Return the non-ground rows of ``cloud``; extra columns are kept.

        Points higher than ``zmax_threshold`` come first, in input order,
        then the lower points whose neighbourhood height variance exceeds
        the square of ``covariance_threshold``. An empty cloud leaves the
        previous result untouched.
        """
        pts = np.asarray(cloud, dtype=float)
        if pts.size == 0:
            return self.cloud_out
        if pts.ndim != 2 or pts.shape[1] < 3:
            raise ValueError("cloud must be an (N, 3) or wider array")

        high = pts[:, 2] > self.zmax_threshold
        kept = pts[high]
        suspect = pts[~high]
        if len(suspect) == 0:
            self.cloud_out = kept
            return kept

        tree = cKDTree(suspect[:, :3])
        neighbourhoods = tree.query_ball_point(suspect[:, :3], self.neighbour_radius)
        z = suspect[:, 2]
        limit = self.covariance_threshold * self.covariance_threshold
        varying = np.zeros(len(suspect), dtype=bool)
        for i, neighbours in enumerate(neighbourhoods):
            n = len(neighbours)
            if n == 0:
                continue
            zs = z[neighbours]
            sum_z = z[i] + zs.sum()
            sum_zz = z[i] * z[i] + (zs * zs).sum()
            mean_z = sum_z / n
            varying[i] = sum_zz / n - mean_z * mean_z > limit

        self.cloud_out = np.vstack([kept, suspect[varying]])
        return self.cloud_out