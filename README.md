# obstaclespc

Obstacle detection from 3D point clouds and depth images, in pure Python.

Points are projected onto a 2D grid over the ground and clustered with a
connected-components algorithm (ER-CCL, from Tian et al. 2020, "A Fast Spatial
Clustering Method for Sparse LiDAR Point Clouds Using GPU Programming"). Each
cluster with enough points comes back as an obstacle object.

The package has no runtime dependencies beyond the Python standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Clustering a point cloud

```python
from obstaclespc.clustering import ErCCLConfig, PointCloud, Vector, apply_er_ccl_to_point_cloud

cloud = PointCloud()
for z in (1, 2, 3, 4):
    cloud.set(Vector(1, 1, z), None)

config = ErCCLConfig.from_attributes({
    "min_points_in_segment": 3,
    "clustering_radius": 1,
    "clustering_strictness": 3,
})
objects = apply_er_ccl_to_point_cloud(cloud, config, remove_ground_plane=None)
```

`PointCloud` holds distinct points (a `Vector` or an `(x, y, z)` tuple) with
optional data; it supports `len()`, iteration over `(point, data)` pairs, `in`,
and `bounds()`, which returns the minimum and maximum corners and raises
`ValueError` for an empty cloud.

`apply_er_ccl_to_point_cloud` returns a list of `VisionObject`s. Each has a
`point_cloud` with the cluster's points and a `geometry` holding the cluster's
`(min, max)` bounds. An empty cloud gives an empty list. If the config's normal
vector has a non-zero `y`, height is taken along `y` and the grid lies in
`x`/`z`; otherwise height is `z` and the grid lies in `x`/`y`.

`remove_ground_plane` is an optional callable that receives the cloud and the
config and returns the points that are not part of the ground. With `None` the
cloud is clustered as it is.

`ErCCLConfig.from_attributes` reads these keys and then calls
`set_default_values`, which fills in defaults where a value is left out or zero:

| key                           | default     |
|-------------------------------|-------------|
| `min_points_in_plane`         | 500         |
| `min_points_in_segment`       | 10          |
| `max_dist_from_plane_mm`      | 100         |
| `ground_plane_normal_vec`     | (0, 0, 1)   |
| `ground_angle_tolerance_degs` | 30          |
| `clustering_radius`           | 5           |
| `clustering_strictness`       | 1           |
| `camera_name`                 | (none)      |

A normal vector that is not of unit length, and an angle tolerance outside
0–180, are also replaced by the defaults. Values of the wrong type raise
`TypeError`.

`new_er_ccl_clustering(params, remove_ground_plane)` returns a segmenter: a
callable that takes a camera object with a `next_point_cloud()` method and
clusters the cloud it returns. It raises `ValueError` if `params` is `None`.

A clustering run whose labels do not settle within the iteration limit raises
`ConvergenceError`. The lower-level steps are also available:
`project_point_cloud`, `minimum_search`, `label_map_update` and
`similar_enough`.

## Vision services

`obstaclespc.pointcloud.register_point_cloud_segmenter` builds a
`VisionService` (from `obstaclespc.service`) that takes point clouds from a
camera and returns obstacle objects.

```python
from obstaclespc.pointcloud import ObstaclesPointCloudConfig, register_point_cloud_segmenter

conf = ObstaclesPointCloudConfig.from_attributes({"camera_name": "front"})
conf.validate("services.obstacles")
service = register_point_cloud_segmenter("obstacles", conf, {"front": my_camera}, None)
objects = service.get_object_point_clouds("front", {})
```

`obstaclespc.depth.register_obstacles_depth` does the same for depth cameras,
with height along `y`. Its segmenter, `ObstaclesDepth`, calls the camera's
`properties()`; if the result has `intrinsic_params` (a
`PinholeCameraIntrinsics`), the camera's `depth_map()` rows are lifted into a
point cloud, skipping zero depths, and clustered. Otherwise, or if
`properties()` fails, a warning is logged and a single `VisionObject` is
returned whose geometry is a `Vector(0, 0, d)` at the median depth `d`.

`validate` on either config returns `([camera_name], [])` and raises
`ValueError` if `camera_name` is missing or a numeric value is negative. The
register functions raise `ValueError` if the config is `None` or if the
configured camera is not among the dependencies.

`VisionService.get_properties` reports object point clouds as supported.
`get_object_point_clouds` uses the given camera name, or the default camera
when the name is empty, and raises `ResourceNotFoundError` if it is not among
the dependencies. These services have no detector or classifier, so
`detections` and `classifications` raise `NotImplementedError`.

## What this package does not do

- It does not fit or remove a ground plane itself. The `min_points_in_plane`,
  `max_dist_from_plane_mm` and `ground_angle_tolerance_degs` settings are only
  kept in the config for a `remove_ground_plane` callable you supply.
- It does not talk to cameras or decode images. Cameras are any objects with
  `next_point_cloud()`, or `properties()` and `depth_map()`.
- It provides no command-line program and no server; the services are plain
  Python objects to be called from your own code.