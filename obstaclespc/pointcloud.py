"""The obstacles-pointcloud vision model: ER-CCL clustering of a camera's point cloud."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from .clustering import (
    ErCCLConfig,
    GroundPlaneRemover,
    Vector,
    _to_float,
    _to_int,
    _to_str,
    _to_vector,
)
from .service import VisionService


@dataclass(frozen=True)
class NormalVec:
    """Normal vector of the ground plane as given in the configuration."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


def _to_normal_vec(key: str, value: Any) -> NormalVec:
    if isinstance(value, NormalVec):
        return value
    vec = _to_vector(key, value)
    return NormalVec(vec.x, vec.y, vec.z)


def _validate_common(cfg: Any, path: str) -> tuple[list[str], list[str]]:
    if not cfg.default_camera:
        raise ValueError(
            f'expected "camera_name" attribute (DefaultCamera) for obstacles pointcloud at "{path}"'
        )
    checks = [
        (cfg.min_pts_in_plane, "min_points_in_plane must be positive"),
        (cfg.min_pts_in_segment, "min_points_in_segment must be positive"),
        (cfg.max_dist_from_plane, "max_dist_from_plane_mm must be positive"),
        (cfg.clustering_radius, "clustering_radius must be positive"),
        (cfg.clustering_strictness, "clustering_strictness must be non-negative"),
        (cfg.angle_tolerance, "ground_angle_tolerance_degs must be non-negative"),
    ]
    for value, message in checks:
        if value < 0:
            raise ValueError(message)
    return [cfg.default_camera], []


def _apply_attributes(
    config: Any,
    attributes: Mapping[str, Any],
    fields: Mapping[str, tuple[str, Callable[[str, Any], Any]]],
) -> None:
    lowered = {str(k).lower(): v for k, v in attributes.items()}
    for key, (attr, convert) in fields.items():
        value = lowered.get(key)
        if value is not None:
            setattr(config, attr, convert(key, value))


_COMMON_FIELDS: dict[str, tuple[str, Callable[[str, Any], Any]]] = {
    "min_points_in_plane": ("min_pts_in_plane", _to_int),
    "min_points_in_segment": ("min_pts_in_segment", _to_int),
    "max_dist_from_plane_mm": ("max_dist_from_plane", _to_float),
    "clustering_radius": ("clustering_radius", _to_int),
    "clustering_strictness": ("clustering_strictness", _to_float),
    "ground_angle_tolerance_degs": ("angle_tolerance", _to_float),
    "camera_name": ("default_camera", _to_str),
}


@dataclass
class ObstaclesPointCloudConfig:
    """Attributes of the obstacles-pointcloud vision service."""

    min_pts_in_plane: int = 0
    min_pts_in_segment: int = 0
    max_dist_from_plane: float = 0.0
    clustering_radius: int = 0
    clustering_strictness: float = 0.0
    angle_tolerance: float = 0.0
    default_camera: str = ""
    ground_plane_normal_vec: NormalVec = field(default_factory=NormalVec)

    def validate(self, path: str) -> tuple[list[str], list[str]]:
        """Check the attributes; return required and optional dependencies."""
        return _validate_common(self, path)

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "ObstaclesPointCloudConfig":
        """Build a config from an attribute mapping."""
        config = cls()
        fields = dict(_COMMON_FIELDS)
        fields["ground_plane_normal_vec"] = ("ground_plane_normal_vec", _to_normal_vec)
        _apply_attributes(config, attributes, fields)
        return config


def _check_camera(deps: Mapping[str, Any], camera_name: str) -> None:
    if camera_name and camera_name not in deps:
        raise ValueError(f'could not find camera "{camera_name}"')


def register_point_cloud_segmenter(
    name: str,
    conf: Optional[ObstaclesPointCloudConfig],
    deps: Mapping[str, Any],
    remove_ground_plane: Optional[GroundPlaneRemover] = None,
) -> VisionService:
    """Create a vision service that clusters the camera's point clouds."""
    if conf is None:
        raise ValueError("config for obstacles pointcloud segmenter cannot be nil")

    vec = conf.ground_plane_normal_vec
    if vec.x == 0 and vec.y == 0 and vec.z == 0:
        normal = Vector(0.0, 0.0, 1.0)
    else:
        normal = Vector(vec.x, vec.y, vec.z)

    cfg = ErCCLConfig(
        min_pts_in_plane=conf.min_pts_in_plane,
        min_pts_in_segment=conf.min_pts_in_segment,
        max_dist_from_plane=conf.max_dist_from_plane,
        normal_vec=normal,
        angle_tolerance=conf.angle_tolerance,
        clustering_radius=conf.clustering_radius,
        clustering_strictness=conf.clustering_strictness,
        default_camera=conf.default_camera,
        remove_ground_plane=remove_ground_plane,
    )
    cfg.set_default_values()
    _check_camera(deps, conf.default_camera)
    return VisionService(name, deps, cfg.segment, conf.default_camera)