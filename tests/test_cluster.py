import numpy as np
import pytest

from cloudscope.cluster import EuclideanCluster


def blob(center, count=40, spacing=0.1):
    pts = [
        (center[0] + (i % 10) * spacing, center[1] + (i // 10) * spacing, center[2])
        for i in range(count)
    ]
    return np.array(pts)


def test_two_blobs_give_two_clusters():
    cloud = np.vstack([blob((0.0, 0.0, 0.0)), blob((10.0, 0.0, 0.0))])
    clusters = EuclideanCluster().compute(cloud)
    assert len(clusters) == 2
    assert sorted(len(c) for c in clusters) == [40, 40]
    all_indices = sorted(i for c in clusters for i in c)
    assert all_indices == list(range(len(cloud)))
    first = set(clusters[0])
    assert first == set(range(40)) or first == set(range(40, 80))


def test_small_cluster_is_dropped():
    cloud = np.vstack([blob((0.0, 0.0, 0.0)), blob((10.0, 0.0, 0.0), count=10)])
    clusters = EuclideanCluster().compute(cloud)
    assert len(clusters) == 1
    assert set(clusters[0]) == set(range(40))


def test_max_size_drops_large_cluster():
    cloud = blob((0.0, 0.0, 0.0))
    clusters = EuclideanCluster(min_size=1, max_size=39).compute(cloud)
    assert clusters == []


def test_empty_cloud():
    assert EuclideanCluster().compute(np.empty((0, 4))) == []
    assert EuclideanCluster().compute([]) == []


def test_chain_is_connected():
    chain = np.array([(i * 0.3, 0.0, 0.0) for i in range(40)])
    clusters = EuclideanCluster(min_size=1).compute(chain)
    assert len(clusters) == 1
    assert sorted(clusters[0]) == list(range(40))


def test_sparse_points_are_singletons():
    sparse = np.array([(i * 0.5, 0.0, 0.0) for i in range(40)])
    clusters = EuclideanCluster(min_size=1).compute(sparse)
    assert len(clusters) == 40
    assert all(len(c) == 1 for c in clusters)


def test_intensity_column_is_ignored():
    cloud = blob((0.0, 0.0, 0.0))
    with_intensity = np.hstack([cloud, np.full((len(cloud), 1), 999.0)])
    clusterer = EuclideanCluster()
    assert clusterer.compute(with_intensity) == clusterer.compute(cloud)


def test_bad_shape_raises():
    with pytest.raises(ValueError):
        EuclideanCluster().compute(np.zeros((5, 2)))