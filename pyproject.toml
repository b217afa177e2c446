[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "obstaclespc"
version = "0.1.0"
description = "Obstacle segmentation of point clouds and depth maps using ER-CCL connected-components clustering"
requires-python = ">=3.10"
keywords = ["point cloud", "obstacles", "segmentation", "clustering", "depth map", "vision"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Recognition",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["obstaclespc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
