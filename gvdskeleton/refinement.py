"""Refinement of a sparse skeleton graph against the diagram and the ESDF.

The refiner splits edges that stray from the diagram, reconnects
disconnected subgraphs and removes redundant vertices.
"""

from __future__ import annotations

import heapq
import logging
import math
from collections import deque
from typing import Iterable, Optional, Sequence

from .layer import Layer, Point, SkeletonVoxel
from .planner import SkeletonAStar
from .skeleton import SkeletonEdge, SkeletonVertex, SparseSkeletonGraph

logger = logging.getLogger(__name__)

_SPLIT_MAX_ITERATIONS = 500
_SIMPLIFY_MAX_ITERATIONS = 100
_SIMPLIFY_NUM_NEIGHBORS = 10
_RECONNECT_NUM_NEIGHBORS = 5


def _sub(a: Sequence[float], b: Sequence[float]) -> tuple[float, float, float]:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _cross(a: Sequence[float], b: Sequence[float]) -> tuple[float, float, float]:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _norm(v: Sequence[float]) -> float:
    return math.sqrt(sum(c * c for c in v))


def _squared_distance(a: Sequence[float], b: Sequence[float]) -> float:
    return sum((x - y) ** 2 for x, y in zip(a, b))


def _nearest(
    candidates: Iterable[tuple[int, Point]], point: Sequence[float], k: int
) -> list[tuple[int, float]]:
    """The k nearest (vertex_id, squared_distance) pairs, closest first."""
    ranked = heapq.nsmallest(
        k,
        ((vertex_id, _squared_distance(p, point)) for vertex_id, p in candidates),
        key=lambda item: (item[1], item[0]),
    )
    return ranked


def max_edge_distance_on_path(
    start: Sequence[float], end: Sequence[float], coordinate_path: Sequence[Sequence[float]]
) -> tuple[float, int]:
    """Largest distance of a path point from the line start-end, and its index."""
    direction = _sub(end, start)
    length = _norm(direction)
    max_d, max_index = 0.0, 0
    if length == 0.0:
        return max_d, max_index
    for index, point in enumerate(coordinate_path):
        d = _norm(_cross(direction, _sub(start, point))) / length
        if d > max_d:
            max_d, max_index = d, index
    return max_d, max_index


def merge_subgraphs(subgraph_1: int, subgraph_2: int, subgraph_map: dict[int, int]) -> None:
    """Map every subgraph that maps to the higher of the two roots onto the lower."""
    root_1 = subgraph_map.setdefault(subgraph_1, 0)
    root_2 = subgraph_map.setdefault(subgraph_2, 0)
    new_subgraph = min(root_1, root_2)
    old_subgraph = max(root_1, root_2)
    for key, value in subgraph_map.items():
        if value == old_subgraph:
            subgraph_map[key] = new_subgraph


class GraphRefiner:
    """Cleans up a sparse graph using the skeleton layer and an A* planner."""

    def __init__(
        self,
        graph: SparseSkeletonGraph,
        skeleton_layer: Layer[SkeletonVoxel],
        planner: SkeletonAStar,
        *,
        vertex_pruning_radius: float = 0.35,
    ) -> None:
        self.graph = graph
        self.skeleton_layer = skeleton_layer
        self.planner = planner
        self.vertex_pruning_radius = vertex_pruning_radius

    @property
    def voxel_size(self) -> float:
        return self.skeleton_layer.voxel_size

    def _vertex_snapshot(self) -> list[tuple[int, Point]]:
        return [(vertex_id, v.point) for vertex_id, v in sorted(self.graph.vertices.items())]

    def max_edge_distance_from_straight_line(
        self, start, end
    ) -> tuple[float, list[Point], int]:
        """Follow the diagram from start to end and measure its deviation.

        Returns (max_distance, coordinate_path, max_index); max_distance is
        -1.0 and the path empty when the diagram does not connect the points.
        """
        path = self.planner.get_path_on_diagram(start, end)
        if path is None:
            logger.info("No diagram path between %s and %s", tuple(start), tuple(end))
            return -1.0, [], 0
        max_d, max_index = max_edge_distance_on_path(start, end, path)
        return max_d, path, max_index

    def split_edges(self) -> None:
        """Split every edge of the graph that deviates from the diagram."""
        self.split_specific_edges(self.graph.edge_ids())

    def split_specific_edges(self, starting_edge_ids: Iterable[int]) -> None:
        """Split the given edges, and the edges that splitting creates, where needed."""
        graph = self.graph
        max_threshold = 2 * self.voxel_size
        search_radius_sq = self.vertex_pruning_radius * self.vertex_pruning_radius
        self.planner.max_iterations = _SPLIT_MAX_ITERATIONS

        tree = self._vertex_snapshot()
        pending = deque(starting_edge_ids)
        num_vertices_added = 0
        try:
            while pending:
                edge_id = pending.popleft()
                if not graph.has_edge(edge_id):
                    continue
                edge = graph.edge(edge_id)
                start, end = edge.start_point, edge.end_point

                max_d, coordinate_path, max_index = self.max_edge_distance_from_straight_line(
                    start, end
                )
                if max_d <= -1.0:
                    graph.remove_edge(edge_id)
                if max_d <= max_threshold:
                    continue

                new_point = coordinate_path[max_index]
                if self._reroute_through_nearby_vertex(
                    edge, edge_id, new_point, max_d, tree, search_radius_sq, pending
                ):
                    continue

                voxel = self.skeleton_layer.voxel_by_coordinates(new_point)
                if voxel is None or (voxel.is_vertex and voxel.vertex_id > -1):
                    continue

                vertex_id = graph.add_vertex(SkeletonVertex(point=new_point))
                num_vertices_added += 1
                voxel.is_vertex = True
                voxel.vertex_id = vertex_id

                pending.append(
                    graph.add_edge(
                        SkeletonEdge(start_vertex=edge.start_vertex, end_vertex=vertex_id)
                    )
                )
                pending.append(
                    graph.add_edge(SkeletonEdge(start_vertex=vertex_id, end_vertex=edge.end_vertex))
                )
                graph.remove_edge(edge_id)
                tree.append((vertex_id, new_point))
        finally:
            self.planner.max_iterations = 0
        logger.info("[Split Edges] Num vertices added: %d", num_vertices_added)

    def _reroute_through_nearby_vertex(
        self,
        edge: SkeletonEdge,
        edge_id: int,
        new_point: Point,
        max_d: float,
        tree: list[tuple[int, Point]],
        search_radius_sq: float,
        pending: deque,
    ) -> bool:
        """Replace the edge by two through an existing nearby vertex if that is better."""
        graph = self.graph
        nearest = _nearest(tree, new_point, 1)
        if not nearest:
            return False
        candidate_id, squared_distance = nearest[0]
        if squared_distance >= search_radius_sq or not graph.has_vertex(candidate_id):
            return False
        candidate = graph.vertex(candidate_id)
        if candidate.vertex_id in (edge.start_vertex, edge.end_vertex):
            return False
        if graph.are_vertices_directly_connected(
            candidate.vertex_id, edge.start_vertex
        ) and graph.are_vertices_directly_connected(candidate.vertex_id, edge.end_vertex):
            return False

        start, end = edge.start_point, edge.end_point
        start_path = self.planner.get_path_on_diagram(start, candidate.point)
        end_path = self.planner.get_path_on_diagram(candidate.point, end)
        if start_path is None or end_path is None:
            return False
        max_d_start, _ = max_edge_distance_on_path(start, candidate.point, start_path)
        max_d_end, _ = max_edge_distance_on_path(candidate.point, end, end_path)
        if not (max_d_start < max_d and max_d_end < max_d):
            return False

        pending.append(
            graph.add_edge(
                SkeletonEdge(start_vertex=edge.start_vertex, end_vertex=candidate.vertex_id)
            )
        )
        pending.append(
            graph.add_edge(SkeletonEdge(start_vertex=candidate.vertex_id, end_vertex=edge.end_vertex))
        )
        graph.remove_edge(edge_id)
        return True

    def _label_subgraphs(self) -> tuple[list[int], dict[int, int]]:
        """Label connected components; drop lone vertices. Returns ids and examples."""
        vertex_ids = self.graph.vertex_ids()
        examples: dict[int, int] = {}
        last_subgraph = 0
        for vertex_id in vertex_ids:
            if not self.graph.has_vertex(vertex_id):
                continue
            if self.graph.vertex(vertex_id).subgraph_id > 0:
                continue
            last_subgraph += 1
            if self.recursively_label(vertex_id, last_subgraph) == 1:
                self.graph.remove_vertex(vertex_id)
            else:
                examples[last_subgraph] = vertex_id
        return vertex_ids, examples

    def repair_graph(self) -> None:
        """Connect disconnected subgraphs along the diagram."""
        _, examples = self._label_subgraphs()
        if len(examples) <= 1:
            return
        logger.info("[Subgraph] Number of disconnected subgraphs: %d", len(examples))

        graph = self.graph
        new_edge_ids: list[int] = []
        for subgraph_1, vertex_id_1 in sorted(examples.items()):
            vertex_1 = graph.vertex(vertex_id_1)
            if vertex_1.subgraph_id != subgraph_1:
                continue
            for subgraph_2, vertex_id_2 in sorted(examples.items()):
                if subgraph_1 == subgraph_2:
                    continue
                vertex_2 = graph.vertex(vertex_id_2)
                if vertex_2.subgraph_id != subgraph_2:
                    continue
                path = self.planner.get_path_on_diagram(vertex_1.point, vertex_2.point)
                if path is not None:
                    new_edge_ids.extend(
                        self.try_to_find_edges_in_coordinate_path(path, subgraph_1, subgraph_2)
                    )
        logger.info(
            "[Subgraph] Trying to check if we need to split %d new edges.", len(new_edge_ids)
        )
        self.split_specific_edges(new_edge_ids)

        unique = {
            v.subgraph_id for v in graph.vertices.values() if v.subgraph_id > 0
        }
        logger.info("[Subgraph] Final number of disconnected subgraphs: %d", len(unique))

    def recursively_label(self, vertex_id: int, subgraph_id: int) -> int:
        """Give the component of vertex_id the label; return how many were relabelled."""
        graph = self.graph
        num_labelled = 0
        stack = [vertex_id]
        while stack:
            current = stack.pop()
            vertex = graph.vertex(current)
            if vertex.subgraph_id == subgraph_id:
                continue
            vertex.subgraph_id = subgraph_id
            num_labelled += 1
            for edge_id in vertex.edge_list:
                edge = graph.edge(edge_id)
                stack.append(
                    edge.end_vertex if edge.start_vertex == current else edge.start_vertex
                )
        return num_labelled

    def try_to_find_edges_in_coordinate_path(
        self, coordinate_path, subgraph_id_start: int, subgraph_id_end: int
    ) -> list[int]:
        """Add edges where the path crosses from one subgraph's vertex to another's.

        Returns the ids of the edges added.
        """
        graph = self.graph
        new_edge_ids: list[int] = []
        last_subgraph_id = subgraph_id_start
        last_vertex_id = -1
        for coord in coordinate_path:
            voxel = self.skeleton_layer.voxel_by_coordinates(coord)
            if voxel is None or not voxel.is_vertex or voxel.vertex_id < 0:
                continue
            vertex_id = voxel.vertex_id
            if not graph.has_vertex(vertex_id):
                continue
            vertex = graph.vertex(vertex_id)
            if vertex.subgraph_id <= 0:
                continue
            if vertex.subgraph_id == last_subgraph_id:
                last_vertex_id = vertex_id
            elif last_vertex_id != -1:
                new_edge_ids.append(
                    graph.add_edge(SkeletonEdge(start_vertex=last_vertex_id, end_vertex=vertex_id))
                )
                self.recursively_label(vertex_id, last_subgraph_id)
            last_vertex_id = vertex_id
            if last_subgraph_id == subgraph_id_end:
                break
        return new_edge_ids

    def simplify_graph(self) -> None:
        """Simplify vertices, then reconnect subgraphs through the ESDF."""
        self.planner.max_iterations = _SIMPLIFY_MAX_ITERATIONS
        self.simplify_vertices()
        self.reconnect_subgraphs_along_esdf()

    def simplify_vertices(self) -> None:
        """Join nearby dead ends and skip two-edge vertices along straight ESDF paths."""
        graph = self.graph
        tree = self._vertex_snapshot()
        vertex_ids = graph.vertex_ids()
        max_threshold = 2 * self.voxel_size
        candidates = removed = edges_added = 0

        for vertex_id in vertex_ids:
            vertex = graph.vertex(vertex_id)
            if len(vertex.edge_list) != 1:
                continue
            for neighbor_id, _ in _nearest(tree, vertex.point, _SIMPLIFY_NUM_NEIGHBORS):
                neighbor = graph.vertex(neighbor_id)
                if len(neighbor.edge_list) != 1:
                    continue
                if self.planner.get_path_on_diagram(vertex.point, neighbor.point) is not None:
                    continue
                path = self.planner.get_path_in_esdf(vertex.point, neighbor.point)
                if path is None:
                    continue
                max_d, _ = max_edge_distance_on_path(vertex.point, neighbor.point, path)
                if max_d > max_threshold:
                    continue
                graph.add_edge(SkeletonEdge(start_vertex=vertex_id, end_vertex=neighbor.vertex_id))
                edges_added += 1
                break

        for vertex_id in vertex_ids:
            if not graph.has_vertex(vertex_id):
                continue
            vertex = graph.vertex(vertex_id)
            if len(vertex.edge_list) != 2:
                continue
            candidates += 1
            edge_1 = graph.edge(vertex.edge_list[0])
            edge_2 = graph.edge(vertex.edge_list[1])
            vertex_id_1 = edge_1.end_vertex if edge_1.start_vertex == vertex_id else edge_1.start_vertex
            vertex_id_2 = edge_2.end_vertex if edge_2.start_vertex == vertex_id else edge_2.start_vertex
            point_1 = graph.vertex(vertex_id_1).point
            point_2 = graph.vertex(vertex_id_2).point

            path = self.planner.get_path_in_esdf(point_1, point_2)
            if path is None:
                continue
            max_d, _ = max_edge_distance_on_path(point_1, point_2, path)
            if max_d <= max_threshold:
                graph.add_edge(SkeletonEdge(start_vertex=vertex_id_1, end_vertex=vertex_id_2))
                graph.remove_vertex(vertex_id)
                removed += 1
        logger.info(
            "[Simplify Vertices] Vertex removals: %d / %d, Edges added: %d",
            removed, candidates, edges_added,
        )

    def reconnect_subgraphs_along_esdf(self) -> None:
        """Link nearby vertices of different subgraphs through free ESDF space."""
        graph = self.graph
        vertex_ids, examples = self._label_subgraphs()
        subgraph_map = {subgraph: subgraph for subgraph in examples}
        if len(examples) <= 1:
            return
        logger.info("[Subgraph] Number of disconnected subgraphs: %d", len(examples))

        tree = self._vertex_snapshot()
        potential = diagram_candidates = 0
        for vertex_id in vertex_ids:
            if not graph.has_vertex(vertex_id):
                continue
            vertex = graph.vertex(vertex_id)
            for neighbor_id, _ in _nearest(tree, vertex.point, _RECONNECT_NUM_NEIGHBORS):
                neighbor = graph.vertex(neighbor_id)
                if subgraph_map.setdefault(neighbor.subgraph_id, 0) == subgraph_map.setdefault(
                    vertex.subgraph_id, 0
                ):
                    continue
                potential += 1
                path = self.planner.get_path_in_esdf(vertex.point, neighbor.point)
                if path is not None:
                    diagram_candidates += 1
                    graph.add_edge(
                        SkeletonEdge(start_vertex=vertex_id, end_vertex=neighbor.vertex_id)
                    )
                    merge_subgraphs(vertex.subgraph_id, neighbor.subgraph_id, subgraph_map)
        logger.info(
            "[Subgraph] Potential edge candidates: %d diagram candidates: %d",
            potential, diagram_candidates,
        )

        unique: set[int] = set()
        for vertex_id in vertex_ids:
            if not graph.has_vertex(vertex_id):
                continue
            vertex = graph.vertex(vertex_id)
            vertex.subgraph_id = subgraph_map.setdefault(vertex.subgraph_id, 0)
            unique.add(vertex.subgraph_id)
        logger.info("[Subgraph] Final number of disconnected subgraphs: %d", len(unique))


def _optional_point(point: Optional[Point]) -> Optional[Point]:
    return None if point is None else tuple(point)