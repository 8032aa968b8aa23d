"""Skeleton point sets and the sparse skeleton graph."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

Point = tuple[float, float, float]
_ORIGIN: Point = (0.0, 0.0, 0.0)


@dataclass
class SkeletonPoint:
    point: Point = _ORIGIN
    distance: float = 0.0
    num_basis_points: int = 0
    basis_directions: list[Point] = field(default_factory=list)


@dataclass
class SkeletonVertex:
    point: Point = _ORIGIN
    vertex_id: int = -1
    edge_list: list[int] = field(default_factory=list)
    distance: float = 0.0
    subgraph_id: int = 0


@dataclass
class SkeletonEdge:
    edge_id: int = -1
    start_vertex: int = -1
    end_vertex: int = -1
    start_point: Point = _ORIGIN
    end_point: Point = _ORIGIN
    start_distance: float = 0.0
    end_distance: float = 0.0


def _points_and_distances(points: list[SkeletonPoint]) -> tuple[list[Point], list[float]]:
    return [p.point for p in points], [p.distance for p in points]


@dataclass
class Skeleton:
    """Diagram points, with the subsets classified as edges and vertices."""

    points: list[SkeletonPoint] = field(default_factory=list)
    edges: list[SkeletonPoint] = field(default_factory=list)
    vertices: list[SkeletonPoint] = field(default_factory=list)

    def pointcloud(self) -> list[Point]:
        """Positions of the edge points."""
        return [p.point for p in self.edges]

    def pointcloud_with_distances(self) -> tuple[list[Point], list[float]]:
        return _points_and_distances(self.points)

    def edge_pointcloud_with_distances(self) -> tuple[list[Point], list[float]]:
        return _points_and_distances(self.edges)

    def vertex_pointcloud_with_distances(self) -> tuple[list[Point], list[float]]:
        return _points_and_distances(self.vertices)


class SparseSkeletonGraph:
    """Vertices and edges keyed by id; ids are handed out in increasing order."""

    def __init__(self) -> None:
        self.vertices: dict[int, SkeletonVertex] = {}
        self.edges: dict[int, SkeletonEdge] = {}
        self._next_vertex_id = 0
        self._next_edge_id = 0

    def add_vertex(self, vertex: SkeletonVertex) -> int:
        vertex_id = self._next_vertex_id
        self._next_vertex_id += 1
        self.vertices[vertex_id] = replace(
            vertex, vertex_id=vertex_id, edge_list=list(vertex.edge_list)
        )
        return vertex_id

    def add_edge(self, edge: SkeletonEdge) -> int:
        start = self.vertex(edge.start_vertex)
        end = self.vertex(edge.end_vertex)
        edge_id = self._next_edge_id
        self._next_edge_id += 1
        self.edges[edge_id] = replace(
            edge, edge_id=edge_id, start_point=start.point, end_point=end.point
        )
        start.edge_list.append(edge_id)
        end.edge_list.append(edge_id)
        return edge_id

    def has_vertex(self, vertex_id: int) -> bool:
        return vertex_id in self.vertices

    def has_edge(self, edge_id: int) -> bool:
        return edge_id in self.edges

    def vertex(self, vertex_id: int) -> SkeletonVertex:
        try:
            return self.vertices[vertex_id]
        except KeyError:
            raise KeyError(f"no vertex with id {vertex_id}") from None

    def edge(self, edge_id: int) -> SkeletonEdge:
        try:
            return self.edges[edge_id]
        except KeyError:
            raise KeyError(f"no edge with id {edge_id}") from None

    def clear(self) -> None:
        self._next_vertex_id = 0
        self._next_edge_id = 0
        self.vertices.clear()
        self.edges.clear()

    def vertex_ids(self) -> list[int]:
        return sorted(self.vertices)

    def edge_ids(self) -> list[int]:
        return sorted(self.edges)

    def remove_vertex(self, vertex_id: int) -> None:
        """Remove a vertex and every edge touching it; unknown ids are ignored."""
        vertex = self.vertices.get(vertex_id)
        if vertex is None:
            return
        for edge_id in list(vertex.edge_list):
            self.remove_edge(edge_id)
        del self.vertices[vertex_id]

    def remove_edge(self, edge_id: int) -> None:
        """Remove an edge and unhook it from its vertices; unknown ids are ignored."""
        edge = self.edges.pop(edge_id, None)
        if edge is None:
            return
        for end_id in (edge.start_vertex, edge.end_vertex):
            end = self.vertices.get(end_id)
            if end is not None and edge_id in end.edge_list:
                end.edge_list.remove(edge_id)

    def are_vertices_directly_connected(self, vertex_id_1: int, vertex_id_2: int) -> bool:
        return any(
            vertex_id_2 in (edge.start_vertex, edge.end_vertex)
            for edge in map(self.edge, self.vertex(vertex_id_1).edge_list)
        )

    def add_serialized_vertex(self, vertex: SkeletonVertex) -> None:
        """Store a vertex under its own id, as read back from storage."""
        self.vertices[vertex.vertex_id] = replace(vertex, edge_list=list(vertex.edge_list))
        self._next_vertex_id = max(self._next_vertex_id, vertex.vertex_id + 1)

    def add_serialized_edge(self, edge: SkeletonEdge) -> None:
        """Store an edge under its own id, as read back from storage."""
        self.edges[edge.edge_id] = replace(edge)
        self._next_edge_id = max(self._next_edge_id, edge.edge_id + 1)