"""Lidar point-cloud inspection: PCD files, ground segmentation, clustering, boxes and tracking."""

__version__ = "0.1.0"

__all__ = [
    "boxes",
    "cluster",
    "config",
    "covariance",
    "czm",
    "mathutil",
    "patchwork",
    "pcd",
    "perception",
    "scene",
    "session",
    "tracker",
]