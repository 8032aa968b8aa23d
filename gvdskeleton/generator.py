"""Generation of the skeleton diagram and its sparse graph from an ESDF layer."""

from __future__ import annotations

import logging
import math
from collections import deque
from enum import Enum
from os import PathLike
from typing import Iterator, Optional, Sequence, Union

from .layer import (
    NEIGHBOR_OFFSETS,
    EsdfVoxel,
    Index,
    Layer,
    SkeletonVoxel,
    global_index_from_point,
    global_neighbors,
    neighbors,
)
from .planner import SkeletonAStar
from .refinement import GraphRefiner
from .skeleton import (
    Skeleton,
    SkeletonEdge,
    SkeletonPoint,
    SkeletonVertex,
    SparseSkeletonGraph,
)
from .skeleton_io import load_sparse_graph, save_sparse_graph
from .template_matcher import VoxelTemplateMatcher
from .topology import is_end_point, is_simple_point, map_neighbor_index_to_bitset_index

logger = logging.getLogger(__name__)

PathType = Union[str, "PathLike[str]"]

_DIRECTION_EPSILON = 1e-6


class CleanupStyle(Enum):
    """How the sparse graph is cleaned up after flood-fill construction."""

    NONE = "none"
    MATCH_UNDERLYING_DIAGRAM = "match_underlying_diagram"
    SIMPLIFY = "simplify"


def _normalized(vector: Sequence[float]) -> Optional[tuple[float, float, float]]:
    norm = math.sqrt(sum(c * c for c in vector))
    if norm < _DIRECTION_EPSILON:
        return None
    return tuple(c / norm for c in vector)


def _squared_distance(a: Sequence[float], b: Sequence[float]) -> float:
    return sum((x - y) ** 2 for x, y in zip(a, b))


class SkeletonGenerator:
    """Builds the generalized Voronoi diagram of an ESDF and a sparse graph over it."""

    def __init__(
        self,
        esdf_layer: Optional[Layer[EsdfVoxel]] = None,
        *,
        min_separation_angle: float = 0.785,
        generate_by_layer_neighbors: bool = False,
        num_neighbors_for_edge: int = 18,
        check_edges_on_construction: bool = False,
        vertex_pruning_radius: float = 0.35,
        min_gvd_distance: float = 0.4,
        cleanup_style: CleanupStyle = CleanupStyle.SIMPLIFY,
    ) -> None:
        self.min_separation_angle = min_separation_angle
        self.generate_by_layer_neighbors = generate_by_layer_neighbors
        self.num_neighbors_for_edge = num_neighbors_for_edge
        self.check_edges_on_construction = check_edges_on_construction
        self.vertex_pruning_radius = vertex_pruning_radius
        self.min_gvd_distance = min_gvd_distance
        self.cleanup_style = cleanup_style

        self.pruning_template_matcher = VoxelTemplateMatcher()
        self.pruning_template_matcher.set_deletion_templates()
        self.corner_template_matcher = VoxelTemplateMatcher()
        self.corner_template_matcher.set_corner_templates()

        self.skeleton = Skeleton()
        self.graph = SparseSkeletonGraph()
        self.planner = SkeletonAStar()
        self.esdf_layer: Optional[Layer[EsdfVoxel]] = None
        self.skeleton_layer: Optional[Layer[SkeletonVoxel]] = None

        if esdf_layer is not None:
            self.set_esdf_layer(esdf_layer)

    def set_esdf_layer(self, esdf_layer: Layer[EsdfVoxel]) -> None:
        """Use this ESDF and start a fresh skeleton layer of the same shape."""
        if esdf_layer is None:
            raise ValueError("esdf_layer must not be None")
        self.esdf_layer = esdf_layer
        self.skeleton_layer = Layer(
            esdf_layer.voxel_size, esdf_layer.voxels_per_side, SkeletonVoxel
        )
        self.planner.skeleton_layer = self.skeleton_layer
        self.planner.esdf_layer = esdf_layer
        self.planner.min_esdf_distance = self.min_gvd_distance

    def set_skeleton_layer(self, skeleton_layer: Layer[SkeletonVoxel]) -> None:
        """Use an existing skeleton layer, for instance one loaded from storage."""
        self.skeleton_layer = skeleton_layer
        self.planner.skeleton_layer = skeleton_layer

    def _require_esdf_layer(self) -> Layer[EsdfVoxel]:
        if self.esdf_layer is None:
            raise RuntimeError("no ESDF layer set")
        return self.esdf_layer

    def _require_skeleton_layer(self) -> Layer[SkeletonVoxel]:
        if self.skeleton_layer is None:
            raise RuntimeError("no skeleton layer set")
        return self.skeleton_layer

    def _locate(self, point) -> tuple[Index, Index, SkeletonVoxel]:
        layer = self._require_skeleton_layer()
        block_index = layer.block_index_from_coordinates(point)
        block = layer.block(block_index)
        if block is None:
            raise RuntimeError(f"no skeleton block at {tuple(point)}")
        voxel_index = block.voxel_index_from_coordinates(point)
        return block_index, voxel_index, block.voxel(voxel_index)

    @staticmethod
    def _neighbor_voxels(
        layer: Layer, block_index: Index, voxel_index: Index
    ) -> Iterator[tuple[int, object]]:
        """Yield (neighbour position, voxel) for neighbours in allocated blocks."""
        for position, (nb_block, nb_voxel) in enumerate(
            neighbors(block_index, voxel_index, layer.voxels_per_side)
        ):
            block = layer.block(nb_block)
            if block is not None:
                yield position, block.voxel(nb_voxel)

    def update_skeleton_from_layer(self) -> None:
        """Rebuild the point lists from the flags stored in the skeleton layer."""
        layer = self._require_skeleton_layer()
        skeleton = self.skeleton
        skeleton.points.clear()
        skeleton.edges.clear()
        skeleton.vertices.clear()

        for block_index in layer.block_indices():
            block = layer.block(block_index)
            for voxel_index, voxel in block.iter_voxels():
                if not voxel.is_face:
                    continue
                point = SkeletonPoint(
                    point=block.coordinates_of(voxel_index),
                    distance=voxel.distance,
                    num_basis_points=voxel.num_basis_points,
                )
                skeleton.points.append(point)
                if voxel.is_edge:
                    skeleton.edges.append(point)
                if voxel.is_vertex:
                    skeleton.vertices.append(point)

    def _usable(self, voxel: EsdfVoxel) -> bool:
        return voxel.observed and voxel.distance >= self.min_gvd_distance and not voxel.fixed

    def _basis_directions(
        self, esdf: Layer[EsdfVoxel], block_index: Index, voxel_index: Index, parent_dir
    ) -> list[tuple[float, float, float]]:
        directions = []
        for position, neighbor in self._neighbor_voxels(esdf, block_index, voxel_index):
            if not self._usable(neighbor):
                continue
            offset = NEIGHBOR_OFFSETS[position]
            relative = _normalized(tuple(p + o for p, o in zip(neighbor.parent, offset)))
            if relative is None:
                # The neighbour points straight at this voxel: it is our child.
                continue
            dot = sum(a * b for a, b in zip(relative, parent_dir))
            if -1.0 <= dot <= 1.0 and math.acos(dot) >= self.min_separation_angle:
                directions.append(relative)
        return directions

    def generate_skeleton(self) -> None:
        """Find diagram voxels in the ESDF, thin them to edges and find vertices."""
        esdf = self._require_esdf_layer()
        skeleton_layer = self._require_skeleton_layer()
        skeleton = self.skeleton
        skeleton.points.clear()

        for block_index in esdf.block_indices():
            esdf_block = esdf.block(block_index)
            skeleton_block = skeleton_layer.allocate_block(block_index)
            for voxel_index, esdf_voxel in esdf_block.iter_voxels():
                if not self._usable(esdf_voxel):
                    continue
                parent_dir = _normalized(esdf_voxel.parent)
                if parent_dir is None:
                    continue
                directions = self._basis_directions(esdf, block_index, voxel_index, parent_dir)
                if not directions:
                    continue

                point = SkeletonPoint(
                    point=esdf_block.coordinates_of(voxel_index),
                    distance=esdf_voxel.distance,
                    num_basis_points=len(directions),
                    basis_directions=directions,
                )
                skeleton.points.append(point)

                voxel = skeleton_block.voxel(voxel_index)
                voxel.distance = point.distance
                voxel.num_basis_points = point.num_basis_points
                if self.generate_by_layer_neighbors:
                    voxel.is_face = True
                else:
                    voxel.is_face = voxel.num_basis_points == 9
                    voxel.is_edge = voxel.num_basis_points >= 12
                    voxel.is_vertex = voxel.num_basis_points == 16
                    if voxel.is_edge:
                        skeleton.edges.append(point)
                    if voxel.is_vertex:
                        skeleton.vertices.append(point)

        logger.info(
            "[GVD] Finished finding GVD candidates. Number of skeleton points: %d edges: %d",
            len(skeleton.points),
            len(skeleton.edges),
        )
        if self.generate_by_layer_neighbors:
            self.generate_edges_by_layer_neighbors()
        while self.prune_diagram_edges() > 0:
            pass
        self.generate_vertices_by_layer_neighbors()
        self.prune_diagram_vertices()

    def generate_edges_by_layer_neighbors(self) -> None:
        """Mark diagram points with enough diagram neighbours as edges."""
        layer = self._require_skeleton_layer()
        for point in self.skeleton.points:
            block_index, voxel_index, voxel = self._locate(point.point)
            count = sum(
                1
                for _, neighbor in self._neighbor_voxels(layer, block_index, voxel_index)
                if neighbor.is_face
            )
            if count >= self.num_neighbors_for_edge:
                voxel.is_edge = True
                self.skeleton.edges.append(point)

    def prune_diagram_edges(self) -> int:
        """Remove one pass of deletable edge voxels; return how many were removed."""
        layer = self._require_skeleton_layer()
        edges = self.skeleton.edges
        removed: set[int] = set()

        for position, edge in enumerate(edges):
            block_index, voxel_index, voxel = self._locate(edge.point)
            if not voxel.is_edge:
                continue
            bits = 0
            for neighbor_position, neighbor in self._neighbor_voxels(
                layer, block_index, voxel_index
            ):
                if neighbor.is_edge:
                    bits |= 1 << map_neighbor_index_to_bitset_index(neighbor_position)
            if (
                self.pruning_template_matcher.fits_templates(bits)
                and is_simple_point(bits)
                and not is_end_point(bits, self.corner_template_matcher)
            ):
                voxel.is_edge = False
                removed.add(position)

        if removed:
            edges[:] = [edge for position, edge in enumerate(edges) if position not in removed]
        return len(removed)

    def generate_vertices_by_layer_neighbors(self) -> None:
        """Mark edge points that end a line or join three or more as vertices."""
        layer = self._require_skeleton_layer()
        for point in self.skeleton.edges:
            block_index, voxel_index, voxel = self._locate(point.point)
            count = sum(
                1
                for _, neighbor in self._neighbor_voxels(layer, block_index, voxel_index)
                if neighbor.is_edge
            )
            if (count >= 3 or count == 1) and not voxel.is_vertex:
                voxel.is_vertex = True
                voxel.is_edge = True
                self.skeleton.vertices.append(point)

    def prune_diagram_vertices(self) -> None:
        """Of vertices closer than the pruning radius, keep the one farthest from obstacles."""
        vertices = self.skeleton.vertices
        radius_sq = self.vertex_pruning_radius * self.vertex_pruning_radius
        deletion: set[int] = set()

        for i, vertex in enumerate(vertices):
            if i in deletion:
                continue
            matches = sorted(
                (
                    (_squared_distance(other.point, vertex.point), j)
                    for j, other in enumerate(vertices)
                    if _squared_distance(other.point, vertex.point) < radius_sq
                )
            )
            largest = vertex.distance
            favorite = i
            for _, j in matches:
                if j == i or j in deletion:
                    continue
                if vertices[j].distance > largest:
                    deletion.add(favorite)
                    largest = vertices[j].distance
                    favorite = j
                else:
                    deletion.add(j)

        logger.info(
            "[Prune] Number of vertices before prune: %d Number of deleted vertices: %d",
            len(vertices),
            len(deletion),
        )
        for index in sorted(deletion, reverse=True):
            point = vertices.pop(index)
            _, _, voxel = self._locate(point.point)
            voxel.is_vertex = False
            voxel.is_edge = True

    def _refiner(self) -> GraphRefiner:
        return GraphRefiner(
            self.graph,
            self._require_skeleton_layer(),
            self.planner,
            vertex_pruning_radius=self.vertex_pruning_radius,
        )

    def generate_sparse_graph(self) -> None:
        """Connect diagram vertices by flood-filling along edge voxels, then clean up."""
        layer = self._require_skeleton_layer()
        graph = self.graph
        graph.clear()

        vertex_ids = []
        for point in self.skeleton.vertices:
            vertex_id = graph.add_vertex(
                SkeletonVertex(point=point.point, distance=point.distance)
            )
            vertex_ids.append(vertex_id)
            voxel = layer.voxel_by_coordinates(point.point)
            if voxel is None:
                raise RuntimeError(f"no skeleton voxel at {tuple(point.point)}")
            voxel.vertex_id = vertex_id

        queue: deque[tuple[Index, int]] = deque()
        for vertex_id in vertex_ids:
            global_index = global_index_from_point(graph.vertex(vertex_id).point, layer.voxel_size)
            queue.extend((n, vertex_id) for n in global_neighbors(global_index))

        while queue:
            global_index, parent_id = queue.popleft()
            voxel = layer.voxel_by_global_index(global_index)
            # Every vertex voxel is also an edge voxel.
            if voxel is None or not voxel.is_edge:
                continue
            connected_id = -1
            if not voxel.is_vertex:
                if voxel.vertex_id == parent_id:
                    continue
                if voxel.vertex_id != -1:
                    connected_id = voxel.vertex_id
                else:
                    voxel.vertex_id = parent_id
                    queue.extend((n, parent_id) for n in global_neighbors(global_index))
            else:
                connected_id = voxel.vertex_id
                if connected_id == parent_id:
                    continue

            if connected_id < 0 or not graph.has_vertex(connected_id):
                continue
            connected = graph.vertex(connected_id)
            if any(
                parent_id in (graph.edge(e).start_vertex, graph.edge(e).end_vertex)
                for e in connected.edge_list
            ):
                continue
            graph.add_edge(
                SkeletonEdge(
                    start_vertex=parent_id,
                    end_vertex=connected_id,
                    start_distance=0.0,
                    end_distance=0.0,
                )
            )

        if self.cleanup_style is CleanupStyle.MATCH_UNDERLYING_DIAGRAM:
            refiner = self._refiner()
            refiner.split_edges()
            refiner.repair_graph()
        elif self.cleanup_style is CleanupStyle.SIMPLIFY:
            self._refiner().simplify_graph()

        logger.info(
            "[Sparse Graph] Vertices: %d Edges: %d", len(graph.vertices), len(graph.edges)
        )

    def load_sparse_graph(self, path: PathType) -> None:
        """Replace the sparse graph by one read from a file."""
        self.graph.clear()
        self.graph = load_sparse_graph(path)

    def save_sparse_graph(self, path: PathType) -> None:
        """Write the sparse graph to a file."""
        save_sparse_graph(path, self.graph)