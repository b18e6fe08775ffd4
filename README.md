# cloudscope

Tools for inspecting recorded lidar point clouds: load `.pcd` frames, split
ground from obstacle points, cluster the obstacle points, fit oriented boxes
around the clusters and follow them from frame to frame.

## Install

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Command line

Installing the package provides the `cloudscope` command:

```
cloudscope [directory] [--config PATH] [--play]
```

- `directory` – a folder of `.pcd` files. The files are listed in name order;
  each file name (without `.pcd`) is read as a millisecond timestamp.
- `--config` – INI settings file, `./config/config.ini` by default. A missing
  file means no settings.
- `--play` – step through every cloud, waiting the play interval (0.5 s by
  default) between frames.

The command prints the numbered session log followed by one status line per
frame shown (index, time, point count and object count). It exits with
status 1 when the directory holds no `.pcd` files.

Settings are read by `cloudscope.session.read_settings`, which turns
`[section] key = value` into `"section/key"`. Two keys are used:

```ini
[perception]
algorithm = patchwork      ; or covariance; other names fall back to patchwork
perception = true          ; run object detection on every frame shown
```

## Library use

### Reading and writing clouds

```python
from cloudscope.pcd import read_pcd, write_pcd

cloud = read_pcd("frames/1690000000123.pcd")   # (N, 4): x, y, z, intensity
write_pcd("copy.pcd", cloud)
```

`read_pcd` handles `ascii`, `binary` and `binary_compressed` data; a missing
intensity field reads as zero, and malformed files raise `PcdError`.
`write_pcd` writes ascii data with float32 fields.

### Perception

A pipeline extracts the non-ground points, clusters them, builds an
`ObjectBox` for each cluster that is large or tall enough, and feeds the boxes
to an `ObjectTracker`. Two ground filters are available, chosen by name:

```python
from cloudscope.perception import create_pipeline

pipeline = create_pipeline("patchwork")   # or "covariance"
boxes = pipeline.run(cloud, time=1690000000.123)
tracked = pipeline.tracker.results
```

`run` returns the boxes found in the frame; the tracker keeps its own copies,
with ids, ages and velocities, in `tracker.results`. The pipeline also keeps
`original_cloud`, `object_cloud` and `clusters` of the last frame.

`PatchWorkPerception` uses the concentric-zone ground estimator
`cloudscope.patchwork.PatchWork` (parameters in `cloudscope.czm.PatchWorkParams`);
`CovariancePerception` uses the height-variance filter
`cloudscope.covariance.CovarianceFilter`.

The building blocks can also be used on their own:

```python
from cloudscope.cluster import EuclideanCluster
from cloudscope.perception import boxes_from_clusters, min_area_rect
from cloudscope.patchwork import PatchWork
from cloudscope.tracker import ObjectTracker

ground, nonground = PatchWork().estimate_ground(cloud[:, :3])
clusters = EuclideanCluster().compute(nonground)
boxes = boxes_from_clusters(nonground, clusters)

tracker = ObjectTracker()
tracked = tracker.track(boxes, 0.1)
```

### Browsing session

`cloudscope.session.Session` holds the state behind the command: the file
list (`open_directory`, `select`), playback (`next_frame`, `last_frame`,
`play_pause`, `tick`, `add_interval`, `minus_interval`), `merge` of several
clouds, `filter_cloud`, and the display texts such as `index_text`,
`cloud_time_text` and `cloud_size_text`. Its `log` is an `OutputLog` that
keeps the newest 100 lines once it passes 200.

### Scene

`cloudscope.scene.Scene` holds what a viewer would draw: the original cloud,
the object cloud, the object boxes and a ground grid. `Scene.render()` returns
a dictionary describing these drawables. `voxel_filter` down-samples a cloud
to voxel centroids, and `demo_cloud` gives the small sample cloud held before
any file is opened.

### Geometry helpers

`cloudscope.mathutil` has rotation and pose conversions: `Quaternion`,
`rpy_to_rotation`, `rotation_to_rpy`, `rpy_to_quat`, `quat_to_rpy`,
`vec_to_quat`, `axis_to_quat`, `pose6d_to_affine`, `affine_to_pose6d`,
`skew`, `q_left`, `q_right`, `r_left`, `r_inv_left`, `rad_in_range` and more.

### Vehicle configuration

```python
from cloudscope.config import load_truck_params

for truck in load_truck_params("config/config.yaml"):
    print(truck.name, truck.ip_text(), truck.front_lidar_text())
```

The YAML file lists vehicles under `truck_params.truck_name`; each vehicle
entry needs `ip` (four numbers), `name`, `lf` and `lb` (six lidar mounting
values each). Incomplete or malformed entries are skipped with a logged
warning.

## What it does not do

There is no graphical window: the scene is described as data and the command
prints text. Recording, pulling or parsing data on a remote vehicle is not
provided; the vehicle configuration can only be read and formatted.