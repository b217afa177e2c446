"""The obstacles-depth vision model: obstacles from a camera's depth map."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from .clustering import (
    ErCCLConfig,
    GroundPlaneRemover,
    PointCloud,
    Vector,
    VisionObject,
    apply_er_ccl_to_point_cloud,
)
from .pointcloud import _COMMON_FIELDS, _apply_attributes, _check_camera, _validate_common
from .service import VisionService

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class PinholeCameraIntrinsics:
    """Pinhole camera model used to lift depth pixels into 3D."""

    width: int
    height: int
    fx: float
    fy: float
    ppx: float
    ppy: float

    def to_point_cloud(self, depth_map: Sequence[Sequence[float]]) -> PointCloud:
        """Project every pixel with non-zero depth into a point cloud."""
        cloud = PointCloud()
        for y, row in enumerate(depth_map):
            for x, depth in enumerate(row):
                if depth == 0:
                    continue
                z = float(depth)
                cloud.set(
                    Vector((x - self.ppx) * z / self.fx, (y - self.ppy) * z / self.fy, z)
                )
        return cloud


@dataclass
class ObsDepthConfig:
    """Attributes of the obstacles-depth vision service."""

    min_pts_in_plane: int = 0
    min_pts_in_segment: int = 0
    max_dist_from_plane: float = 0.0
    clustering_radius: int = 0
    clustering_strictness: float = 0.0
    angle_tolerance: float = 0.0
    default_camera: str = ""

    def validate(self, path: str) -> tuple[list[str], list[str]]:
        """Check the attributes; return required and optional dependencies."""
        return _validate_common(self, path)

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "ObsDepthConfig":
        """Build a config from an attribute mapping."""
        config = cls()
        _apply_attributes(config, attributes, _COMMON_FIELDS)
        return config


def median_depth_object(depth_data: Iterable[float]) -> list[VisionObject]:
    """Return one object whose geometry is a point at the median depth."""
    ordered = sorted(depth_data)
    if not ordered:
        raise ValueError("could not get info from depth map")
    median = ordered[int(0.5 * len(ordered))]
    return [VisionObject(geometry=Vector(0.0, 0.0, float(median)))]


@dataclass
class ObstaclesDepth:
    """Segmenter that finds obstacles in a depth camera's view."""

    clustering_conf: ErCCLConfig
    intrinsics: Optional[PinholeCameraIntrinsics] = None
    logger: logging.Logger = field(default=_LOG, repr=False)

    def segment(self, camera: Any) -> list[VisionObject]:
        """Use the camera's intrinsics if it has them, the median depth otherwise."""
        try:
            props = camera.properties()
        except Exception as err:  # camera could not report its properties
            self.logger.warning(
                "could not find camera properties. obstacles depth started without "
                "camera's intrinsic parameters: %s",
                err,
            )
            return self.without_intrinsics(camera)
        intrinsics = getattr(props, "intrinsic_params", None)
        if intrinsics is None:
            self.logger.warning("obstacles depth started but camera did not have intrinsic parameters")
            return self.without_intrinsics(camera)
        self.intrinsics = intrinsics
        return self.with_intrinsics(camera)

    def without_intrinsics(self, camera: Any) -> list[VisionObject]:
        """Return the median depth of the depth map as a single point object."""
        depth_map = _read_depth_map(camera)
        return median_depth_object(d for row in depth_map for d in row)

    def with_intrinsics(self, camera: Any) -> list[VisionObject]:
        """Lift the depth map into 3D and cluster it into obstacles."""
        if self.intrinsics is None:
            raise ValueError(
                "tried to build obstacles depth with intrinsics but no instrinsics found"
            )
        depth_map = _read_depth_map(camera)
        cloud = self.intrinsics.to_point_cloud(depth_map)
        conf = self.clustering_conf
        return apply_er_ccl_to_point_cloud(cloud, conf, conf.remove_ground_plane)


def _read_depth_map(camera: Any) -> list[list[float]]:
    try:
        image = camera.depth_map()
    except Exception as err:
        raise RuntimeError(f"could not get image from {camera}") from err
    try:
        rows = [[float(d) for d in row] for row in image]
    except (TypeError, ValueError) as err:
        raise ValueError("could not convert image to depth map") from err
    if any(d < 0 for row in rows for d in row):
        raise ValueError("could not convert image to depth map")
    return rows


def register_obstacles_depth(
    name: str,
    conf: Optional[ObsDepthConfig],
    deps: Mapping[str, Any],
    remove_ground_plane: Optional[GroundPlaneRemover] = None,
) -> VisionService:
    """Create a vision service that finds obstacles in depth images."""
    if conf is None:
        raise ValueError("config for obstacles_depth cannot be nil")
    cfg = ErCCLConfig(
        min_pts_in_plane=conf.min_pts_in_plane,
        min_pts_in_segment=conf.min_pts_in_segment,
        max_dist_from_plane=conf.max_dist_from_plane,
        normal_vec=Vector(0.0, -1.0, 0.0),
        angle_tolerance=conf.angle_tolerance,
        clustering_radius=conf.clustering_radius,
        clustering_strictness=conf.clustering_strictness,
        remove_ground_plane=remove_ground_plane,
    )
    cfg.set_default_values()
    segmenter = ObstaclesDepth(cfg)
    _check_camera(deps, conf.default_camera)
    return VisionService(name, deps, segmenter.segment, conf.default_camera)