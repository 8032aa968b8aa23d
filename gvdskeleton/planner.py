"""A* search through the ESDF and along the skeleton diagram."""

from __future__ import annotations

import math
from typing import Callable, Optional, Sequence

from .layer import (
    NEIGHBOR_DISTANCES,
    NEIGHBOR_OFFSETS,
    EsdfVoxel,
    Index,
    Layer,
    Point,
    SkeletonVoxel,
    neighbor_from_direction,
    neighbors,
    offset_between_voxels,
)

VoxelPredicate = Callable[[Index, Index], bool]


def voxel_path_to_coordinate_path(
    start_location: Sequence[float], voxel_size: float, voxel_path: Sequence[Index]
) -> list[Point]:
    """Turn voxel offsets from a start location into metric coordinates."""
    return [
        tuple(s + o * voxel_size for s, o in zip(start_location, offset))
        for offset in voxel_path
    ]


def estimate_cost_to_goal(voxel_offset: Sequence[int], goal_voxel_offset: Sequence[int]) -> float:
    """Straight-line distance, in voxels, between two offsets."""
    return math.dist(goal_voxel_offset, voxel_offset)


def _block_and_voxel_index(layer: Layer, coord) -> tuple[Index, Index, Point]:
    block_index = layer.block_index_from_coordinates(coord)
    block = layer.block(block_index)
    if block is None:
        raise ValueError(f"no block allocated at {tuple(coord)}")
    voxel_index = block.voxel_index_from_coordinates(coord)
    return block_index, voxel_index, block.coordinates_of(voxel_index)


def _solution_path(end, parents: dict) -> list:
    path = [end]
    current = end
    while current in parents:
        current = parents[current]
        path.append(current)
    path.reverse()
    return path


class SkeletonAStar:
    """Voxel-level A* planner over an ESDF layer and a skeleton layer.

    A max_iterations of 0 means the search is unbounded.
    """

    def __init__(
        self,
        skeleton_layer: Optional[Layer[SkeletonVoxel]] = None,
        esdf_layer: Optional[Layer[EsdfVoxel]] = None,
        *,
        min_esdf_distance: float = 0.0,
        max_iterations: int = 0,
    ) -> None:
        self.skeleton_layer = skeleton_layer
        self.esdf_layer = esdf_layer
        self.min_esdf_distance = min_esdf_distance
        self.max_iterations = max_iterations

    def _skeleton(self) -> Layer[SkeletonVoxel]:
        if self.skeleton_layer is None:
            raise RuntimeError("no skeleton layer set")
        return self.skeleton_layer

    def _esdf(self) -> Layer[EsdfVoxel]:
        if self.esdf_layer is None:
            raise RuntimeError("no ESDF layer set")
        return self.esdf_layer

    def _is_diagram_voxel(self, block_index: Index, voxel_index: Index) -> bool:
        block = self._skeleton().block(block_index)
        if block is None:
            return False
        voxel = block.voxel(voxel_index)
        return voxel.is_edge or voxel.is_vertex

    def _is_free_voxel(self, block_index: Index, voxel_index: Index) -> bool:
        block = self._esdf().block(block_index)
        if block is None:
            return False
        voxel = block.voxel(voxel_index)
        return voxel.observed and voxel.distance >= self.min_esdf_distance

    def _search(
        self,
        start_block_index: Index,
        start_voxel_index: Index,
        goal_voxel_offset: Index,
        voxels_per_side: int,
        is_valid: VoxelPredicate,
        is_target: Optional[VoxelPredicate] = None,
    ) -> Optional[list[Index]]:
        """Return voxel offsets from the start to the goal, or to the first target."""
        goal = tuple(goal_voxel_offset)
        start: Index = (0, 0, 0)
        f_score = {start: estimate_cost_to_goal(start, goal)}
        g_score = {start: 0.0}
        parents: dict[Index, Index] = {}
        open_set: dict[Index, None] = {start: None}
        closed: set[Index] = set()

        iterations = 0
        while open_set:
            iterations += 1
            if self.max_iterations > 0 and iterations > self.max_iterations:
                break
            current = min(open_set, key=f_score.__getitem__)
            del open_set[current]

            if current == goal:
                return _solution_path(goal, parents)
            closed.add(current)

            block_index, voxel_index = neighbor_from_direction(
                start_block_index, start_voxel_index, current, voxels_per_side
            )
            if is_target is not None and is_target(block_index, voxel_index):
                return _solution_path(current, parents)

            for offset, step, (nb_block, nb_voxel) in zip(
                NEIGHBOR_OFFSETS,
                NEIGHBOR_DISTANCES,
                neighbors(block_index, voxel_index, voxels_per_side),
            ):
                if not is_valid(nb_block, nb_voxel):
                    continue
                neighbor = tuple(c + o for c, o in zip(current, offset))
                if neighbor in closed:
                    continue
                open_set.setdefault(neighbor, None)
                tentative = g_score[current] + step
                if neighbor not in g_score or g_score[neighbor] < tentative:
                    g_score[neighbor] = tentative
                    f_score[neighbor] = tentative + estimate_cost_to_goal(neighbor, goal)
                    parents[neighbor] = current
        return None

    def _path_in_layer(
        self, layer: Layer, start_position, end_position, is_valid: VoxelPredicate
    ) -> Optional[list[Point]]:
        start_block, start_voxel, start_centre = _block_and_voxel_index(layer, start_position)
        end_block, end_voxel, _ = _block_and_voxel_index(layer, end_position)
        goal = offset_between_voxels(
            start_block, start_voxel, end_block, end_voxel, layer.voxels_per_side
        )
        voxel_path = self._search(
            start_block, start_voxel, goal, layer.voxels_per_side, is_valid
        )
        if voxel_path is None:
            return None
        return voxel_path_to_coordinate_path(start_centre, layer.voxel_size, voxel_path)

    def get_path_in_esdf(self, start_position, end_position) -> Optional[list[Point]]:
        """Path through free ESDF space, or None if there is none."""
        return self._path_in_layer(
            self._esdf(), start_position, end_position, self._is_free_voxel
        )

    def get_path_on_diagram(self, start_position, end_position) -> Optional[list[Point]]:
        """Path along skeleton edge and vertex voxels, or None if there is none."""
        return self._path_in_layer(
            self._skeleton(), start_position, end_position, self._is_diagram_voxel
        )

    def get_path_using_esdf_and_diagram(
        self, start_position, end_position
    ) -> Optional[list[Point]]:
        """Reach the diagram through the ESDF, follow it, and leave it to the goal."""
        skeleton = self._skeleton()
        esdf = self._esdf()
        voxels_per_side = skeleton.voxels_per_side

        start_block, start_voxel, start_centre = _block_and_voxel_index(esdf, start_position)
        end_block, end_voxel, end_centre = _block_and_voxel_index(esdf, end_position)
        goal = offset_between_voxels(
            start_block, start_voxel, end_block, end_voxel, voxels_per_side
        )

        to_start = self._search(
            start_block, start_voxel, goal, voxels_per_side,
            self._is_free_voxel, self._is_diagram_voxel,
        )
        if to_start is None:
            return None
        from_end = self._search(
            end_block, end_voxel, tuple(-c for c in goal), voxels_per_side,
            self._is_free_voxel, self._is_diagram_voxel,
        )
        if from_end is None:
            return None

        diagram_start = neighbor_from_direction(
            start_block, start_voxel, to_start[-1], voxels_per_side
        )
        diagram_end = neighbor_from_direction(
            end_block, end_voxel, from_end[-1], voxels_per_side
        )
        diagram_goal = offset_between_voxels(*diagram_start, *diagram_end, voxels_per_side)
        on_diagram = self._search(
            *diagram_start, diagram_goal, voxels_per_side, self._is_diagram_voxel
        )
        if on_diagram is None:
            return None

        voxel_size = skeleton.voxel_size
        start_coords = voxel_path_to_coordinate_path(start_centre, voxel_size, to_start)
        diagram_coords = voxel_path_to_coordinate_path(start_coords[-1], voxel_size, on_diagram)
        end_coords = voxel_path_to_coordinate_path(end_centre, voxel_size, from_end)
        return start_coords + diagram_coords + end_coords[::-1]