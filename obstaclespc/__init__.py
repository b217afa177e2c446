"""Obstacle segmentation of point clouds and depth maps with ER-CCL clustering."""

__version__ = "0.1.0"

__all__ = ["clustering", "service", "pointcloud", "depth"]