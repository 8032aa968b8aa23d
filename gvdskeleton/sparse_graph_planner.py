"""A* planning over the vertices and edges of a sparse skeleton graph."""

from __future__ import annotations

import heapq
import math
from typing import Optional

from .skeleton import Point, SparseSkeletonGraph


def _squared_distance(a, b) -> float:
    return sum((x - y) ** 2 for x, y in zip(a, b))


class SparseGraphPlanner:
    """Plans between the graph vertices nearest to a start and goal point.

    setup() snapshots the vertex positions used for nearest-vertex lookups.
    """

    def __init__(self, graph: Optional[SparseSkeletonGraph] = None) -> None:
        self.graph = graph
        self._index: Optional[list[tuple[int, Point]]] = None

    def _require_graph(self) -> SparseSkeletonGraph:
        if self.graph is None:
            raise RuntimeError("no graph set")
        return self.graph

    def setup(self) -> None:
        graph = self._require_graph()
        self._index = [(vertex_id, v.point) for vertex_id, v in sorted(graph.vertices.items())]

    def closest_vertices(self, point, num_vertices: int) -> list[int]:
        """Ids of up to num_vertices vertices, nearest first."""
        self._require_graph()
        if self._index is None:
            raise RuntimeError("setup() must be called first")
        if num_vertices < 0:
            raise ValueError("num_vertices must not be negative")
        nearest = heapq.nsmallest(
            num_vertices,
            self._index,
            key=lambda item: (_squared_distance(item[1], point), item[0]),
        )
        return [vertex_id for vertex_id, _ in nearest]

    def get_path(self, start_position, end_position) -> Optional[list[Point]]:
        """Vertex positions from the vertex nearest the start to the one nearest the end."""
        start_ids = self.closest_vertices(start_position, 1)
        end_ids = self.closest_vertices(end_position, 1)
        if not start_ids or not end_ids:
            raise ValueError("graph has no vertices")
        vertex_path = self.get_path_between_vertices(start_ids[0], end_ids[0])
        if vertex_path is None:
            return None
        graph = self._require_graph()
        return [graph.vertex(vertex_id).point for vertex_id in vertex_path]

    def get_path_between_vertices(
        self, start_vertex_id: int, end_vertex_id: int
    ) -> Optional[list[int]]:
        """Vertex ids from start to end, or None if they are not connected."""
        graph = self._require_graph()
        end_point = graph.vertex(end_vertex_id).point

        f_score = {start_vertex_id: math.dist(end_point, graph.vertex(start_vertex_id).point)}
        g_score = {start_vertex_id: 0.0}
        parents: dict[int, int] = {}
        open_set = {start_vertex_id}
        closed: set[int] = set()

        while open_set:
            current = min(sorted(open_set), key=f_score.__getitem__)
            open_set.discard(current)
            vertex = graph.vertex(current)

            if current == end_vertex_id:
                path = [end_vertex_id]
                while path[-1] in parents:
                    path.append(parents[path[-1]])
                path.reverse()
                return path
            closed.add(current)

            for edge_id in vertex.edge_list:
                edge = graph.edge(edge_id)
                neighbor_id = (
                    edge.end_vertex if edge.start_vertex == current else edge.start_vertex
                )
                if neighbor_id in closed:
                    continue
                open_set.add(neighbor_id)
                neighbor = graph.vertex(neighbor_id)
                tentative = g_score[current] + math.dist(neighbor.point, vertex.point)
                if neighbor_id not in g_score or g_score[neighbor_id] < tentative:
                    g_score[neighbor_id] = tentative
                    f_score[neighbor_id] = tentative + math.dist(end_point, neighbor.point)
                    parents[neighbor_id] = current
        return None