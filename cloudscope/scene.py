"""The state of the point-cloud display: clouds, object boxes and a ground grid."""

from __future__ import annotations

import numpy as np

from cloudscope.boxes import ObjectBox

ORIGINAL_COLOR = (150, 255, 255)
OBJECT_COLOR = (0, 255, 0)
GRID_SIZE = 40
GRID_STEP = 5
AXES_SCALE = 5.0


def _as_cloud(cloud) -> np.ndarray:
    arr = np.asarray(cloud, dtype=float)
    if arr.size == 0:
        return np.empty((0, 4), dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError("cloud must be an (N, 3) or wider array")
    if arr.shape[1] == 3:
        arr = np.hstack([arr, np.zeros((len(arr), 1))])
    return arr[:, :4].copy()


def demo_cloud() -> np.ndarray:
    """The quarter-ball of grid points shown before any file is opened."""
    points = [
        (i, j, k, 0.0)
        for i in range(-50, 50, 3)
        for j in range(-50, 50, 3)
        for k in range(0, 30, 3)
        if i * i + j * j + k * k < 1000
    ]
    return np.array(points, dtype=float)


def voxel_filter(cloud, leaf_size: float) -> np.ndarray:
    """Replace the points of every cubic voxel by their centroid.

    Non-finite points are dropped; the output is ordered by voxel index
    with x varying fastest.
    """
    if leaf_size <= 0:
        raise ValueError("leaf_size must be positive")
    pts = _as_cloud(cloud)
    pts = pts[np.isfinite(pts[:, :3]).all(axis=1)]
    if len(pts) == 0:
        return pts

    ijk = np.floor(pts[:, :3] / leaf_size).astype(np.int64)
    rel = ijk - ijk.min(axis=0)
    dims = rel.max(axis=0) + 1
    linear = rel[:, 0] + rel[:, 1] * dims[0] + rel[:, 2] * dims[0] * dims[1]
    _, inverse, counts = np.unique(linear, return_inverse=True, return_counts=True)
    sums = np.zeros((len(counts), pts.shape[1]))
    np.add.at(sums, inverse.reshape(-1), pts)
    return sums / counts[:, None]


def grid_lines(size: int = GRID_SIZE, step: int = GRID_STEP) -> list[tuple]:
    """Ground grid as ``(name, start, end)`` lines in the z = 0 plane."""
    if step <= 0:
        raise ValueError("step must be positive")
    lines = []
    for i in range(-size, size + 1, step):
        lines.append((f"GriglineY{i}", (float(i), float(-size), 0.0), (float(i), float(size), 0.0)))
        lines.append((f"GriglineX{i}", (float(-size), float(i), 0.0), (float(size), float(i), 0.0)))
    return lines


class Scene:
    """What the viewer shows: the loaded cloud, object points and boxes."""

    def __init__(self):
        self.original_cloud = demo_cloud()
        self.object_cloud = np.empty((0, 4), dtype=float)
        self.objects: list[ObjectBox] = []

    def cloud_size(self) -> int:
        """Number of points in the loaded cloud."""
        return len(self.original_cloud)

    def filter_cloud(self, leaf_size: float) -> np.ndarray:
        """Downsample the loaded cloud in place and return it."""
        self.original_cloud = voxel_filter(self.original_cloud, leaf_size)
        return self.original_cloud

    def set_original_cloud(self, cloud=None) -> None:
        self.original_cloud = _as_cloud([] if cloud is None else cloud)

    def set_object_cloud(self, cloud=None) -> None:
        self.object_cloud = _as_cloud([] if cloud is None else cloud)

    def set_objects(self, objects=None) -> None:
        self.objects = list(objects or [])

    def render(self) -> dict:
        """Describe every drawable of the current frame."""
        return {
            "clouds": [
                {"name": "cloud", "points": self.original_cloud, "color": ORIGINAL_COLOR, "point_size": 1},
                {"name": "cloud2", "points": self.object_cloud, "color": OBJECT_COLOR, "point_size": 2},
            ],
            "cubes": [
                {
                    "name": f"cube{i}",
                    "center": tuple(float(v) for v in obj.trans),
                    "rotation": obj.rotation,
                    "size": tuple(float(v) for v in obj.size),
                }
                for i, obj in enumerate(self.objects)
            ],
            "lines": grid_lines(GRID_SIZE, GRID_STEP),
            "axes": {"name": "global", "scale": AXES_SCALE},
        }