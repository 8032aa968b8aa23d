"""Voronoi skeletons and sparse planning graphs from voxel distance maps."""

__version__ = "0.1.0"

__all__ = [
    "layer",
    "skeleton",
    "template_matcher",
    "skeleton_io",
    "planner",
    "sparse_graph_planner",
    "topology",
    "refinement",
    "generator",
]