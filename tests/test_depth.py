from types import SimpleNamespace

import pytest

from obstaclespc.clustering import ErCCLConfig, Vector
from obstaclespc.depth import (
    ObsDepthConfig,
    ObstaclesDepth,
    PinholeCameraIntrinsics,
    median_depth_object,
    register_obstacles_depth,
)


class _DepthCamera:
    def __init__(self, depth_map=None, intrinsics=None, fail_properties=False):
        self._depth_map = depth_map
        self._intrinsics = intrinsics
        self._fail_properties = fail_properties

    def properties(self):
        if self._fail_properties:
            raise RuntimeError("no properties")
        return SimpleNamespace(intrinsic_params=self._intrinsics)

    def depth_map(self):
        if self._depth_map is None:
            raise RuntimeError("no image")
        return self._depth_map

    def next_point_cloud(self):
        raise RuntimeError("no properties")


def _params(**overrides):
    values = dict(
        min_pts_in_plane=100,
        max_dist_from_plane=10,
        min_pts_in_segment=3,
        angle_tolerance=20,
        clustering_radius=5,
        clustering_strictness=3,
        default_camera="fakeCamera",
    )
    values.update(overrides)
    return ObsDepthConfig(**values)


@pytest.fixture
def deps():
    return {"fakeCamera": _DepthCamera()}


def test_register_nil_config(deps):
    with pytest.raises(ValueError, match="cannot be nil"):
        register_obstacles_depth("test_obs_depth", None, deps)


def test_register_out_of_bounds_radius_still_succeeds(deps):
    service = register_obstacles_depth("test_obs_depth", _params(clustering_radius=-3), deps)
    assert service.name == "test_obs_depth"


def test_register_success(deps):
    service = register_obstacles_depth("test_obs_depth", _params(clustering_radius=1), deps)
    assert service.name == "test_obs_depth"
    assert service.get_properties().object_pcds_supported is True


def test_register_invalid_camera(deps):
    with pytest.raises(ValueError, match='could not find camera "not-camera"'):
        register_obstacles_depth("test_obs_depth", _params(default_camera="not-camera"), deps)


def test_median_depth_object():
    objects = median_depth_object([3, 1, 2])
    assert len(objects) == 1
    assert objects[0].geometry == Vector(0.0, 0.0, 2.0)


def test_median_depth_object_empty():
    with pytest.raises(ValueError, match="could not get info from depth map"):
        median_depth_object([])


def test_intrinsics_skip_zero_depth():
    intrinsics = PinholeCameraIntrinsics(width=2, height=1, fx=1, fy=1, ppx=0, ppy=0)
    cloud = intrinsics.to_point_cloud([[0, 5]])
    assert len(cloud) == 1
    assert (5, 0, 5) in cloud


def test_segment_without_properties_uses_median():
    segmenter = ObstaclesDepth(ErCCLConfig())
    camera = _DepthCamera(depth_map=[[4, 8], [6, 2]], fail_properties=True)
    objects = segmenter.segment(camera)
    assert objects[0].geometry == Vector(0.0, 0.0, 6.0)


def test_segment_without_intrinsics_uses_median():
    segmenter = ObstaclesDepth(ErCCLConfig())
    camera = _DepthCamera(depth_map=[[7]])
    objects = segmenter.segment(camera)
    assert objects[0].geometry == Vector(0.0, 0.0, 7.0)


def test_segment_with_intrinsics_clusters_points():
    conf = ErCCLConfig(min_pts_in_segment=1, normal_vec=Vector(0.0, -1.0, 0.0))
    conf.set_default_values()
    intrinsics = PinholeCameraIntrinsics(width=2, height=2, fx=1, fy=1, ppx=0, ppy=0)
    segmenter = ObstaclesDepth(conf)
    camera = _DepthCamera(depth_map=[[10, 10], [10, 10]], intrinsics=intrinsics)
    objects = segmenter.segment(camera)
    assert segmenter.intrinsics == intrinsics
    assert sum(len(o.point_cloud) for o in objects) == 4
    expected = intrinsics.to_point_cloud([[10, 10], [10, 10]])
    assert all(p in expected for o in objects for p, _ in o.point_cloud)


def test_with_intrinsics_requires_intrinsics():
    segmenter = ObstaclesDepth(ErCCLConfig())
    with pytest.raises(ValueError, match="no instrinsics found"):
        segmenter.with_intrinsics(_DepthCamera(depth_map=[[1]]))


def test_camera_without_image():
    segmenter = ObstaclesDepth(ErCCLConfig())
    with pytest.raises(RuntimeError, match="could not get image"):
        segmenter.without_intrinsics(_DepthCamera())


def test_bad_depth_map():
    segmenter = ObstaclesDepth(ErCCLConfig())
    with pytest.raises(ValueError, match="could not convert image to depth map"):
        segmenter.without_intrinsics(_DepthCamera(depth_map=[["x"]]))


def test_validate():
    assert _params().validate("path") == (["fakeCamera"], [])
    with pytest.raises(ValueError, match="clustering_radius must be positive"):
        _params(clustering_radius=-3).validate("path")


def test_from_attributes():
    config = ObsDepthConfig.from_attributes({"min_points_in_segment": 3, "camera_name": "fakeCamera"})
    assert config.min_pts_in_segment == 3
    assert config.default_camera == "fakeCamera"