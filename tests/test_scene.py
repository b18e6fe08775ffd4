import numpy as np
import pytest

from cloudscope.boxes import ObjectBox
from cloudscope.scene import Scene, demo_cloud, grid_lines, voxel_filter


def test_demo_cloud_points_lie_in_quarter_ball():
    cloud = demo_cloud()
    assert cloud.shape[1] == 4
    assert len(cloud) > 0
    assert np.all((cloud[:, :3] ** 2).sum(axis=1) < 1000)
    assert np.all(cloud[:, 2] >= 0)
    assert np.all(cloud[:, 3] == 0)
    assert set(cloud[:, 0]).issubset(set(range(-50, 50, 3)))
    assert len({tuple(p) for p in cloud}) == len(cloud)


def test_scene_starts_with_demo_cloud():
    scene = Scene()
    assert scene.cloud_size() == len(demo_cloud())


def test_voxel_filter_averages_points_in_one_voxel():
    cloud = np.array([[0.1, 0.1, 0.1, 1.0], [0.3, 0.3, 0.3, 3.0]])
    out = voxel_filter(cloud, 1.0)
    assert out.shape == (1, 4)
    assert out[0] == pytest.approx([0.2, 0.2, 0.2, 2.0])


def test_voxel_filter_keeps_separate_voxels_and_drops_nan():
    cloud = np.array([[0.5, 0.5, 0.5, 0.0], [5.5, 0.5, 0.5, 0.0], [np.nan, 0.0, 0.0, 0.0]])
    out = voxel_filter(cloud, 1.0)
    assert len(out) == 2
    assert {tuple(p) for p in out} == {tuple(p) for p in cloud[:2]}


def test_voxel_filter_never_grows_cloud():
    cloud = demo_cloud()
    out = voxel_filter(cloud, 7.0)
    assert 0 < len(out) <= len(cloud)
    voxels_in = {tuple(v) for v in np.floor(cloud[:, :3] / 7.0)}
    voxels_out = {tuple(v) for v in np.floor(out[:, :3] / 7.0)}
    assert voxels_out <= voxels_in


def test_voxel_filter_rejects_bad_leaf():
    with pytest.raises(ValueError):
        voxel_filter(demo_cloud(), 0.0)


def test_grid_lines_lie_on_ground():
    lines = grid_lines(40, 5)
    names = [name for name, _, _ in lines]
    assert len(set(names)) == len(names)
    assert "GriglineY0" in names
    assert all(start[2] == 0.0 and end[2] == 0.0 for _, start, end in lines)
    ys = {start[0] for name, start, _ in lines if name.startswith("GriglineY")}
    xs = {start[1] for name, start, _ in lines if name.startswith("GriglineX")}
    assert ys == xs
    assert {-40.0, 40.0} <= ys


def test_filter_cloud_shrinks_scene():
    scene = Scene()
    before = scene.cloud_size()
    scene.filter_cloud(10.0)
    assert 0 < scene.cloud_size() < before


def test_set_original_cloud_defaults_to_empty():
    scene = Scene()
    scene.set_original_cloud(np.zeros((7, 3)))
    assert scene.cloud_size() == 7
    scene.set_original_cloud()
    assert scene.cloud_size() == 0


def test_render_describes_clouds_cubes_and_grid():
    scene = Scene()
    scene.set_object_cloud(np.ones((3, 4)))
    scene.set_objects([ObjectBox(trans=np.array([1.0, 2.0, 3.0]), size=np.array([4.0, 5.0, 6.0]))])
    frame = scene.render()
    clouds = {c["name"]: c for c in frame["clouds"]}
    assert clouds["cloud"]["color"] == (150, 255, 255)
    assert clouds["cloud2"]["color"] == (0, 255, 0)
    assert len(clouds["cloud2"]["points"]) == 3
    assert frame["cubes"][0]["name"] == "cube0"
    assert frame["cubes"][0]["center"] == (1.0, 2.0, 3.0)
    assert frame["cubes"][0]["size"] == (4.0, 5.0, 6.0)
    assert frame["lines"] == grid_lines(40, 5)