"""ER-CCL connected-component clustering of point clouds into obstacles."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Protocol

MAX_CCL_ITERATIONS = 300000
GRID_SIZE = 200
MIN_PTS_IN_PLANE_DEFAULT = 500
MIN_PTS_IN_SEGMENT_DEFAULT = 10
MAX_DIST_FROM_PLANE_DEFAULT = 100
ANGLE_TOLERANCE_DEFAULT = 30.0
CLUSTERING_RADIUS_DEFAULT = 5
CLUSTERING_STRICTNESS_DEFAULT = 1

# Weighting between distance and height similarity used by the segmenter.
SIMILARITY_ALPHA = 0.9

_UNIT_EPSILON = 5e-14


@dataclass(frozen=True)
class Vector:
    """A point or direction in 3D space."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def norm2(self) -> float:
        """Squared Euclidean length."""
        return self.x * self.x + self.y * self.y + self.z * self.z

    def is_unit(self) -> bool:
        """True if the vector has length one, up to rounding."""
        return abs(self.norm2() - 1) <= _UNIT_EPSILON


def _as_vector(point: Any) -> Vector:
    if isinstance(point, Vector):
        return point
    x, y, z = point
    return Vector(float(x), float(y), float(z))


class PointCloud:
    """A set of distinct points, each carrying optional data."""

    def __init__(self, points: Optional[Mapping[Any, Any] | Iterable[tuple[Any, Any]]] = None):
        self._points: dict[Vector, Any] = {}
        if points is not None:
            items = points.items() if isinstance(points, Mapping) else points
            for point, data in items:
                self.set(point, data)

    def set(self, point: Any, data: Any = None) -> None:
        """Add a point, replacing the data of an existing one."""
        self._points[_as_vector(point)] = data

    def bounds(self) -> tuple[Vector, Vector]:
        """Return the minimum and maximum corners of the cloud."""
        if not self._points:
            raise ValueError("an empty point cloud has no bounds")
        points = self._points.keys()
        lo = Vector(min(p.x for p in points), min(p.y for p in points), min(p.z for p in points))
        hi = Vector(max(p.x for p in points), max(p.y for p in points), max(p.z for p in points))
        return lo, hi

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[tuple[Vector, Any]]:
        return iter(self._points.items())

    def __contains__(self, point: Any) -> bool:
        return _as_vector(point) in self._points

    def __repr__(self) -> str:
        return f"PointCloud({len(self._points)} points)"


@dataclass
class VisionObject:
    """A detected object: its points and a geometry describing it."""

    point_cloud: Optional[PointCloud] = None
    geometry: Any = None


@dataclass
class Node:
    """One grid cell of the projected cloud; label -1 means the cell is empty."""

    i: int
    j: int
    label: int = -1
    min_height: float = 0.0
    max_height: float = 0.0


class ConvergenceError(RuntimeError):
    """Raised when the label map does not settle within the iteration limit."""


class _PointCloudSource(Protocol):
    def next_point_cloud(self) -> PointCloud: ...


GroundPlaneRemover = Callable[[PointCloud, "ErCCLConfig"], PointCloud]


def _to_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"'{key}' expected an integer, got {type(value).__name__}")
    return int(value)


def _to_float(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"'{key}' expected a number, got {type(value).__name__}")
    return float(value)


def _to_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"'{key}' expected a string, got {type(value).__name__}")
    return value


def _to_vector(key: str, value: Any) -> Vector:
    if isinstance(value, Vector):
        return value
    if not isinstance(value, Mapping):
        raise TypeError(f"'{key}' expected a mapping, got {type(value).__name__}")
    lowered = {str(k).lower(): v for k, v in value.items()}
    coords = {
        axis: _to_float(f"{key}.{axis}", lowered[axis])
        for axis in ("x", "y", "z")
        if lowered.get(axis) is not None
    }
    return Vector(**coords)


_ATTRIBUTE_FIELDS: dict[str, tuple[str, Callable[[str, Any], Any]]] = {
    "min_points_in_plane": ("min_pts_in_plane", _to_int),
    "min_points_in_segment": ("min_pts_in_segment", _to_int),
    "max_dist_from_plane_mm": ("max_dist_from_plane", _to_float),
    "ground_plane_normal_vec": ("normal_vec", _to_vector),
    "ground_angle_tolerance_degs": ("angle_tolerance", _to_float),
    "clustering_radius": ("clustering_radius", _to_int),
    "clustering_strictness": ("clustering_strictness", _to_float),
    "camera_name": ("default_camera", _to_str),
}


@dataclass
class ErCCLConfig:
    """Parameters of the ground-removal and connected-components clustering."""

    min_pts_in_plane: int = 0
    min_pts_in_segment: int = 0
    max_dist_from_plane: float = 0.0
    normal_vec: Vector = field(default_factory=Vector)
    angle_tolerance: float = 0.0
    clustering_radius: int = 0
    clustering_strictness: float = 0.0
    default_camera: str = ""
    remove_ground_plane: Optional[GroundPlaneRemover] = field(
        default=None, repr=False, compare=False
    )

    def set_default_values(self) -> None:
        """Replace unset or out-of-range values with the defaults."""
        if self.min_pts_in_plane == 0:
            self.min_pts_in_plane = MIN_PTS_IN_PLANE_DEFAULT
        if self.min_pts_in_segment == 0:
            self.min_pts_in_segment = MIN_PTS_IN_SEGMENT_DEFAULT
        if self.max_dist_from_plane == 0:
            self.max_dist_from_plane = MAX_DIST_FROM_PLANE_DEFAULT
        if not self.normal_vec.is_unit() or self.normal_vec.norm2() == 0:
            self.normal_vec = Vector(0.0, 0.0, 1.0)
        if self.angle_tolerance == 0.0 or not 0 <= self.angle_tolerance <= 180:
            self.angle_tolerance = ANGLE_TOLERANCE_DEFAULT
        if self.clustering_radius == 0:
            self.clustering_radius = CLUSTERING_RADIUS_DEFAULT
        if self.clustering_strictness == 0:
            self.clustering_strictness = CLUSTERING_STRICTNESS_DEFAULT

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "ErCCLConfig":
        """Build a config from an attribute mapping and fill in defaults."""
        config = cls()
        lowered = {str(k).lower(): v for k, v in attributes.items()}
        for key, (attr, convert) in _ATTRIBUTE_FIELDS.items():
            value = lowered.get(key)
            if value is not None:
                setattr(config, attr, convert(key, value))
        config.set_default_values()
        return config

    def segment(self, camera: _PointCloudSource) -> list[VisionObject]:
        """Fetch the camera's next point cloud and cluster it into objects."""
        cloud = camera.next_point_cloud()
        return apply_er_ccl_to_point_cloud(cloud, self, self.remove_ground_plane)


def new_er_ccl_clustering(
    params: Optional[Mapping[str, Any]],
    remove_ground_plane: Optional[GroundPlaneRemover] = None,
) -> Callable[[_PointCloudSource], list[VisionObject]]:
    """Return a segmenter configured from the given attributes."""
    if params is None:
        raise ValueError("config for ER-CCL segmentation cannot be nil")
    config = ErCCLConfig.from_attributes(params)
    config.remove_ground_plane = remove_ground_plane
    return config.segment


def _grid_resolution(lo: Vector, hi: Vector, height_is_y: bool) -> float:
    across = math.ceil((hi.x - lo.x) / GRID_SIZE)
    other = (hi.z - lo.z) if height_is_y else (hi.y - lo.y)
    resolution = math.ceil((math.ceil(other / GRID_SIZE) + across) / 2)
    # A cloud with no horizontal extent fits in a single cell.
    return float(max(resolution, 1))


def _cell(point: Vector, lo: Vector, s: float, height_is_y: bool) -> tuple[int, int]:
    i = math.ceil((point.x - lo.x) / s)
    j = math.ceil((point.z - lo.z) / s) if height_is_y else math.ceil((point.y - lo.y) / s)
    return i, j


def apply_er_ccl_to_point_cloud(
    cloud: PointCloud,
    config: ErCCLConfig,
    remove_ground_plane: Optional[GroundPlaneRemover] = None,
) -> list[VisionObject]:
    """Cluster the non-ground points of a cloud into objects."""
    non_plane = remove_ground_plane(cloud, config) if remove_ground_plane else cloud
    if not len(non_plane):
        return []

    height_is_y = config.normal_vec.y != 0
    lo, _ = non_plane.bounds()
    resolution = _grid_resolution(*non_plane.bounds(), height_is_y)

    label_map = project_point_cloud(non_plane, resolution, height_is_y)
    label_map_update(
        label_map,
        config.clustering_radius,
        SIMILARITY_ALPHA,
        config.clustering_strictness,
        resolution,
    )

    segments: dict[int, PointCloud] = {}
    for point, data in non_plane:
        i, j = _cell(point, lo, resolution, height_is_y)
        segments.setdefault(label_map[i][j].label, PointCloud()).set(point, data)

    min_pts = config.min_pts_in_segment or int(max(len(non_plane) / GRID_SIZE, 10.0))
    return [
        VisionObject(point_cloud=segment, geometry=segment.bounds())
        for segment in segments.values()
        if len(segment) >= min_pts
    ]


def label_map_update(
    label_map: list[list[Node]], r: int, alpha: float, beta: float, s: float
) -> None:
    """Repeat the minimum search until no label changes."""
    for iteration in count():
        if not minimum_search(label_map, r, alpha, beta, s):
            return
        if iteration > MAX_CCL_ITERATIONS:
            raise ConvergenceError("could not converge, change parameters")


def project_point_cloud(cloud: PointCloud, s: float, height_is_y: bool) -> list[list[Node]]:
    """Project the cloud onto a horizontal grid of cells of side s."""
    if not len(cloud):
        return []
    lo, hi = cloud.bounds()
    h = max(0, math.ceil((hi.x - lo.x) / s) + 1)
    extent = (hi.z - lo.z) if height_is_y else (hi.y - lo.y)
    w = max(0, math.ceil(extent / s) + 1)

    grid = [[Node(i, j) for j in range(w)] for i in range(h)]
    for point, _ in cloud:
        i, j = _cell(point, lo, s, height_is_y)
        height = point.y if height_is_y else point.z
        node = grid[i][j]
        node.max_height = max(node.max_height, height)
        node.min_height = min(node.min_height, height)
        node.label = i * w + j
    return grid


def minimum_search(label_map: list[list[Node]], r: int, alpha: float, beta: float, s: float) -> bool:
    """Spread the smallest label once from every cell; return whether anything changed."""
    changed = False
    for i, row in enumerate(label_map):
        for j, node in enumerate(row):
            if node.label == -1:
                continue
            min_label = node.label
            neighbors = []
            for neighbor_row in label_map[i:i + r]:
                for neighbor in neighbor_row[j:j + r]:
                    if neighbor is node:
                        continue
                    if similar_enough(node, neighbor, r, alpha, beta, s):
                        neighbors.append(neighbor)
                        min_label = min(min_label, neighbor.label)
            if min_label != node.label:
                changed = True
                node.label = min_label
            for neighbor in neighbors:
                if neighbor.label != min_label:
                    changed = True
                    neighbor.label = min_label
    return changed


def similar_enough(cur_node: Node, neighbor: Node, r: int, alpha: float, beta: float, s: float) -> bool:
    """Score two cells by distance and height difference against a radius-based threshold."""
    if neighbor.label == -1:
        return False
    di = cur_node.i - neighbor.i
    dj = cur_node.j - neighbor.j
    d = s * math.sqrt(di * di + dj * dj)
    h = abs(cur_node.max_height - neighbor.max_height) + abs(cur_node.min_height - neighbor.min_height)
    ecc = alpha * math.exp(-d) + (1 - alpha) * math.exp(-h)
    return ecc >= beta * math.exp(-r)