import pytest

from obstaclespc.clustering import PointCloud
from obstaclespc.pointcloud import (
    NormalVec,
    ObstaclesPointCloudConfig,
    register_point_cloud_segmenter,
)
from obstaclespc.service import ResourceNotFoundError


class _FakeCamera:
    def __init__(self, cloud=None):
        self.cloud = cloud

    def next_point_cloud(self):
        if self.cloud is None:
            raise RuntimeError("no pointcloud")
        return self.cloud


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
    return ObstaclesPointCloudConfig(**values)


@pytest.fixture
def camera():
    return _FakeCamera()


@pytest.fixture
def deps(camera):
    return {"fakeCamera": camera}


def test_register_nil_config(deps):
    with pytest.raises(ValueError, match="cannot be nil"):
        register_point_cloud_segmenter("test_rcs", None, deps)


def test_register_out_of_bounds_radius_still_succeeds(deps):
    service = register_point_cloud_segmenter("test_rcs", _params(clustering_radius=-3), deps)
    assert service.name == "test_rcs"


def test_register_success(deps):
    service = register_point_cloud_segmenter("test_rcs", _params(clustering_radius=1), deps)
    assert service.name == "test_rcs"
    assert service.default_camera == "fakeCamera"


def test_register_invalid_camera(deps):
    with pytest.raises(ValueError, match='could not find camera "not-camera"'):
        register_point_cloud_segmenter("test_rcs", _params(default_camera="not-camera"), deps)


def test_properties(deps):
    service = register_point_cloud_segmenter("test_rcs", _params(clustering_radius=1), deps)
    props = service.get_properties()
    assert props.object_pcds_supported is True
    assert props.detection_supported is False
    assert props.classification_supported is False


def test_missing_camera(deps):
    service = register_point_cloud_segmenter("test_rcs", _params(clustering_radius=1), deps)
    with pytest.raises(ResourceNotFoundError, match="Resource missing from dependencies"):
        service.get_object_point_clouds("no_camera", {})


def test_camera_without_point_cloud(deps):
    service = register_point_cloud_segmenter("test_rcs", _params(clustering_radius=1), deps)
    with pytest.raises(RuntimeError, match="no pointcloud"):
        service.get_object_point_clouds("fakeCamera", {})


def test_two_clusters(camera, deps):
    red = (255, 0, 0, 255)
    points = [(1, 1, z) for z in (1, 2, 3, 4)] + [(2, 2, z) for z in (101, 102, 103, 104)]
    camera.cloud = PointCloud([(p, red) for p in points])
    service = register_point_cloud_segmenter("test_rcs", _params(clustering_radius=1), deps)
    objects = service.get_object_point_clouds("fakeCamera", None)
    assert len(objects) == 2
    assert sorted(len(o.point_cloud) for o in objects) == [4, 4]
    found = {p for o in objects for p, _ in o.point_cloud}
    assert found == {(p.x, p.y, p.z) for p, _ in camera.cloud} or len(found) == len(points)


def test_detections_not_implemented(deps):
    service = register_point_cloud_segmenter("test_rcs", _params(clustering_radius=1), deps)
    with pytest.raises(NotImplementedError, match="does not implement"):
        service.detections(None, None)


def test_validate_ok():
    assert _params().validate("path") == (["fakeCamera"], [])


def test_validate_needs_camera():
    with pytest.raises(ValueError, match="camera_name"):
        _params(default_camera="").validate("path")


@pytest.mark.parametrize(
    "field, message",
    [
        ("min_pts_in_plane", "min_points_in_plane must be positive"),
        ("min_pts_in_segment", "min_points_in_segment must be positive"),
        ("max_dist_from_plane", "max_dist_from_plane_mm must be positive"),
        ("clustering_radius", "clustering_radius must be positive"),
        ("clustering_strictness", "clustering_strictness must be non-negative"),
        ("angle_tolerance", "ground_angle_tolerance_degs must be non-negative"),
    ],
)
def test_validate_negative(field, message):
    with pytest.raises(ValueError, match=message):
        _params(**{field: -1}).validate("path")


def test_from_attributes():
    config = ObstaclesPointCloudConfig.from_attributes(
        {
            "min_points_in_plane": 100,
            "clustering_radius": 5,
            "camera_name": "fakeCamera",
            "ground_plane_normal_vec": {"x": 0, "y": 1, "z": 0},
        }
    )
    assert config.min_pts_in_plane == 100
    assert config.clustering_radius == 5
    assert config.default_camera == "fakeCamera"
    assert config.ground_plane_normal_vec == NormalVec(0.0, 1.0, 0.0)


def test_from_attributes_rejects_bad_type():
    with pytest.raises(TypeError):
        ObstaclesPointCloudConfig.from_attributes({"camera_name": 3})