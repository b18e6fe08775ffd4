import numpy as np
import pytest

from cloudscope.czm import PatchWorkParams
from cloudscope.patchwork import OBJECT_INTENSITY, PatchWork


def _flat_ground(spacing=0.3, height=-1.5, seed=0):
    rng = np.random.default_rng(seed)
    xs = np.arange(-34.0, 34.0, spacing)
    gx, gy = np.meshgrid(xs, xs)
    z = height + rng.uniform(-0.01, 0.01, gx.shape)
    return np.column_stack([gx.ravel(), gy.ravel(), z.ravel()])


def _wall():
    ys = np.arange(-1.0, 1.0, 0.1)
    zs = np.arange(-1.45, 0.5, 0.1)
    gy, gz = np.meshgrid(ys, zs)
    return np.column_stack([np.full(gy.size, 8.0), gy.ravel(), gz.ravel()])


def _in_range(cloud, params):
    r = np.hypot(cloud[:, 0], cloud[:, 1])
    return int(np.count_nonzero((r > params.min_range) & (r <= params.max_range)))


@pytest.fixture(scope="module")
def flat_result():
    cloud = _flat_ground()
    pw = PatchWork()
    pw.estimate_ground(cloud)
    return cloud, pw


@pytest.fixture(scope="module")
def wall_result():
    cloud = np.vstack([_flat_ground(), _wall()])
    pw = PatchWork()
    pw.estimate_ground(cloud)
    return cloud, pw


def test_flat_ground_conserves_points_in_range(flat_result):
    cloud, pw = flat_result
    assert len(pw.ground) + len(pw.nonground) == _in_range(cloud, pw.params)


def test_flat_ground_is_mostly_ground(flat_result):
    cloud, pw = flat_result
    assert len(pw.ground) > 0.95 * _in_range(cloud, pw.params)


def test_sensor_height_follows_ground(flat_result):
    _, pw = flat_result
    assert pw.sensor_height == pytest.approx(1.5, abs=0.05)


def test_normals_point_up_and_match_centers(flat_result):
    _, pw = flat_result
    assert len(pw.normals) == len(pw.centers)
    assert len(pw.normals) > 0
    assert np.all(pw.normals[:, 2] > 0.99)


def test_wall_points_are_nonground(wall_result):
    _, pw = wall_result
    wall = _wall()
    expected = np.count_nonzero(wall[:, 2] > -1.0)
    assert np.count_nonzero(pw.nonground[:, 2] > -1.0) == expected
    assert np.count_nonzero(pw.ground[:, 2] > -1.0) == 0


def test_nonground_cloud_carries_intensity(wall_result):
    _, pw = wall_result
    cloud = pw.nonground_cloud
    assert cloud.shape == (len(pw.nonground), 4)
    assert np.all(cloud[:, 3] == OBJECT_INTENSITY)
    np.testing.assert_array_equal(cloud[:, :3], pw.nonground)


def test_points_outside_range_are_ignored():
    pw = PatchWork()
    cloud = np.array([[0.5, 0.5, -1.0], [1.0, 0.0, -1.0], [0.0, 1.5, -1.2]])
    ground, nonground = pw.estimate_ground(cloud)
    assert len(ground) == 0
    assert len(nonground) == 0


def test_extract_piecewise_ground_separates_raised_points():
    rng = np.random.default_rng(3)
    flat = np.column_stack(
        [
            rng.uniform(7.0, 8.0, 40),
            rng.uniform(0.0, 1.0, 40),
            -1.5 + rng.uniform(-0.005, 0.005, 40),
        ]
    )
    raised = np.array([[7.2, 0.3, 0.0], [7.5, 0.5, 0.0], [7.8, 0.7, 0.0]])
    src = np.vstack([flat, raised])
    src = src[np.argsort(src[:, 2], kind="stable")]

    pw = PatchWork()
    ground, nonground = pw.extract_piecewise_ground(1, src)
    assert len(ground) + len(nonground) == len(src)
    assert len(ground) == len(flat)
    np.testing.assert_array_equal(np.sort(nonground[:, 2]), raised[:, 2])


def test_params_are_copied():
    params = PatchWorkParams()
    pw = PatchWork(params)
    pw.estimate_ground(_flat_ground(spacing=0.5))
    assert params.sensor_height == 0.000001
    assert pw.params is not params


def test_wrong_zone_count_is_rejected():
    with pytest.raises(ValueError):
        PatchWork(PatchWorkParams(num_zones=3))


def test_too_many_rings_of_interest_rejected():
    pw = PatchWork()
    with pytest.raises(ValueError):
        pw.set_params(PatchWorkParams(num_rings_of_interest=5))


def test_bad_cloud_shape_rejected():
    pw = PatchWork()
    with pytest.raises(ValueError):
        pw.estimate_ground(np.zeros((4, 2)))