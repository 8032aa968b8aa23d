"""Saving and loading sparse skeleton graphs as JSON."""

from __future__ import annotations

import json
from os import PathLike
from typing import Any, Union

from .skeleton import SkeletonEdge, SkeletonVertex, SparseSkeletonGraph

PathType = Union[str, "PathLike[str]"]


def vertex_to_record(vertex: SkeletonVertex) -> dict[str, Any]:
    x, y, z = vertex.point
    return {
        "vertex_id": vertex.vertex_id,
        "point_x": x,
        "point_y": y,
        "point_z": z,
        "subgraph_id": vertex.subgraph_id,
        "edge_list": list(vertex.edge_list),
    }


def edge_to_record(edge: SkeletonEdge) -> dict[str, Any]:
    sx, sy, sz = edge.start_point
    ex, ey, ez = edge.end_point
    return {
        "edge_id": edge.edge_id,
        "start_vertex": edge.start_vertex,
        "end_vertex": edge.end_vertex,
        "start_point_x": sx,
        "start_point_y": sy,
        "start_point_z": sz,
        "end_point_x": ex,
        "end_point_y": ey,
        "end_point_z": ez,
        "start_distance": edge.start_distance,
        "end_distance": edge.end_distance,
    }


def record_to_vertex(record: dict[str, Any]) -> SkeletonVertex:
    return SkeletonVertex(
        point=(float(record["point_x"]), float(record["point_y"]), float(record["point_z"])),
        vertex_id=int(record["vertex_id"]),
        edge_list=[int(e) for e in record["edge_list"]],
        subgraph_id=int(record["subgraph_id"]),
    )


def record_to_edge(record: dict[str, Any]) -> SkeletonEdge:
    return SkeletonEdge(
        edge_id=int(record["edge_id"]),
        start_vertex=int(record["start_vertex"]),
        end_vertex=int(record["end_vertex"]),
        start_point=(
            float(record["start_point_x"]),
            float(record["start_point_y"]),
            float(record["start_point_z"]),
        ),
        end_point=(
            float(record["end_point_x"]),
            float(record["end_point_y"]),
            float(record["end_point_z"]),
        ),
        start_distance=float(record["start_distance"]),
        end_distance=float(record["end_distance"]),
    )


def _check_path(path: PathType) -> None:
    if not str(path):
        raise ValueError("file name must not be empty")


def save_sparse_graph(path: PathType, graph: SparseSkeletonGraph) -> None:
    """Write the graph, replacing any existing file."""
    _check_path(path)
    document = {
        "vertices": [vertex_to_record(graph.vertex(i)) for i in graph.vertex_ids()],
        "edges": [edge_to_record(graph.edge(i)) for i in graph.edge_ids()],
    }
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(document, handle)


def load_sparse_graph(path: PathType) -> SparseSkeletonGraph:
    """Read a graph written by save_sparse_graph."""
    _check_path(path)
    with open(path, encoding="utf-8") as handle:
        try:
            document = json.load(handle)
        except json.JSONDecodeError as error:
            raise ValueError(f"could not read skeleton graph from {path}") from error
    graph = SparseSkeletonGraph()
    try:
        for record in document["vertices"]:
            graph.add_serialized_vertex(record_to_vertex(record))
        for record in document["edges"]:
            graph.add_serialized_edge(record_to_edge(record))
    except (KeyError, TypeError, ValueError) as error:
        raise ValueError(f"malformed skeleton graph in {path}") from error
    return graph