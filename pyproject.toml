[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gvdskeleton"
version = "0.1.0"
description = "Generalized Voronoi diagram skeletons and sparse navigation graphs from voxel distance maps"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "voronoi",
    "skeleton",
    "esdf",
    "voxel",
    "path-planning",
    "a-star",
    "robotics",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gvdskeleton"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
