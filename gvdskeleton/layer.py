"""Voxel types, blocks and layers, plus 26-connected neighbourhood lookups."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, fields
from itertools import product
from typing import Callable, Generic, Iterator, Optional, TypeVar

Point = tuple[float, float, float]
Index = tuple[int, int, int]

COORDINATE_EPSILON = 1e-6

# Face neighbours first, then the 12 edge neighbours, then the 8 corners.
NEIGHBOR_OFFSETS: tuple[Index, ...] = (
    (-1, 0, 0), (1, 0, 0), (0, -1, 0), (0, 1, 0), (0, 0, -1), (0, 0, 1),
    (-1, -1, 0), (-1, 1, 0), (1, -1, 0), (1, 1, 0),
    (0, -1, -1), (0, -1, 1), (0, 1, -1), (0, 1, 1),
    (-1, 0, -1), (1, 0, -1), (-1, 0, 1), (1, 0, 1),
    (-1, -1, -1), (-1, -1, 1), (-1, 1, -1), (-1, 1, 1),
    (1, -1, -1), (1, -1, 1), (1, 1, -1), (1, 1, 1),
)

NEIGHBOR_DISTANCES: tuple[float, ...] = tuple(
    math.sqrt(sum(c * c for c in offset)) for offset in NEIGHBOR_OFFSETS
)

_UINT32_MASK = 0xFFFFFFFF
_PACKETS_PER_VOXEL = 3


@dataclass
class EsdfVoxel:
    """A voxel of a Euclidean signed distance field."""

    distance: float = 0.0
    observed: bool = False
    fixed: bool = False
    parent: Index = (0, 0, 0)


@dataclass
class SkeletonVoxel:
    """A voxel of the skeleton (generalized Voronoi diagram) layer."""

    distance: float = 0.0
    num_basis_points: int = 0
    is_face: bool = False
    is_edge: bool = False
    is_vertex: bool = False
    vertex_id: int = -1


V = TypeVar("V")


def _grid_index(point, grid_size: float) -> Index:
    inv = 1.0 / grid_size
    return tuple(math.floor(c * inv + COORDINATE_EPSILON) for c in point)


class Block(Generic[V]):
    """A cube of voxels_per_side**3 voxels."""

    def __init__(
        self,
        voxel_type: Callable[[], V],
        voxels_per_side: int,
        voxel_size: float,
        block_index: Index = (0, 0, 0),
    ) -> None:
        if voxels_per_side <= 0:
            raise ValueError("voxels_per_side must be positive")
        if voxel_size <= 0:
            raise ValueError("voxel_size must be positive")
        self.voxel_type = voxel_type
        self.voxels_per_side = voxels_per_side
        self.voxel_size = voxel_size
        self.block_index: Index = tuple(block_index)
        block_size = voxel_size * voxels_per_side
        self.origin: Point = tuple(i * block_size for i in self.block_index)
        self._voxels: list[V] = [voxel_type() for _ in range(voxels_per_side**3)]

    @property
    def num_voxels(self) -> int:
        return len(self._voxels)

    def _linear_index(self, voxel_index: Index) -> int:
        x, y, z = voxel_index
        n = self.voxels_per_side
        return x + n * (y + z * n)

    def is_valid_voxel_index(self, voxel_index) -> bool:
        return all(0 <= c < self.voxels_per_side for c in voxel_index)

    def voxel(self, voxel_index) -> V:
        if not self.is_valid_voxel_index(voxel_index):
            raise IndexError(f"voxel index {tuple(voxel_index)} outside block")
        return self._voxels[self._linear_index(voxel_index)]

    def coordinates_of(self, voxel_index) -> Point:
        """Centre of the voxel with the given index."""
        return tuple(
            o + (i + 0.5) * self.voxel_size for o, i in zip(self.origin, voxel_index)
        )

    def voxel_index_from_coordinates(self, point) -> Index:
        relative = tuple(p - o for p, o in zip(point, self.origin))
        top = self.voxels_per_side - 1
        return tuple(
            min(max(c, 0), top) for c in _grid_index(relative, self.voxel_size)
        )

    def iter_voxels(self) -> Iterator[tuple[Index, V]]:
        """Yield (voxel_index, voxel) in linear storage order."""
        n = range(self.voxels_per_side)
        for (z, y, x), voxel in zip(product(n, n, n), self._voxels):
            yield (x, y, z), voxel

    def _require_skeleton_voxels(self) -> None:
        if self.voxel_type is not SkeletonVoxel:
            raise TypeError("integer serialization is defined for skeleton voxels only")

    def serialize_to_integers(self) -> list[int]:
        """Pack every voxel into three unsigned 32-bit integers."""
        self._require_skeleton_voxels()
        data: list[int] = []
        for voxel in self._voxels:
            (distance_bits,) = struct.unpack("<I", struct.pack("<f", voxel.distance))
            flags = (
                (voxel.num_basis_points & 0xFF)
                | (int(bool(voxel.is_face)) << 8)
                | (int(bool(voxel.is_edge)) << 16)
                | (int(bool(voxel.is_vertex)) << 24)
            )
            vertex_id = voxel.vertex_id if voxel.vertex_id > 0 else -1
            data.extend((distance_bits, flags, vertex_id & _UINT32_MASK))
        return data

    def deserialize_from_integers(self, data) -> None:
        """Fill the voxels from integers produced by serialize_to_integers."""
        self._require_skeleton_voxels()
        data = list(data)
        if len(data) != self.num_voxels * _PACKETS_PER_VOXEL:
            raise ValueError(
                f"expected {self.num_voxels * _PACKETS_PER_VOXEL} integers, got {len(data)}"
            )
        if any(not 0 <= value <= _UINT32_MASK for value in data):
            raise ValueError("serialized values must be unsigned 32-bit integers")
        packets = iter(data)
        for voxel, (distance_bits, flags, raw_id) in zip(
            self._voxels, zip(packets, packets, packets)
        ):
            (voxel.distance,) = struct.unpack("<f", struct.pack("<I", distance_bits))
            voxel.num_basis_points = flags & 0x000000FF
            voxel.is_face = bool(flags & 0x0000FF00)
            voxel.is_edge = bool(flags & 0x00FF0000)
            voxel.is_vertex = bool(flags & 0xFF000000)
            voxel.vertex_id = raw_id - (1 << 32) if raw_id & 0x80000000 else raw_id


class Layer(Generic[V]):
    """A sparse collection of blocks sharing voxel size and block shape."""

    def __init__(
        self, voxel_size: float, voxels_per_side: int, voxel_type: Callable[[], V]
    ) -> None:
        if voxels_per_side <= 0:
            raise ValueError("voxels_per_side must be positive")
        if voxel_size <= 0:
            raise ValueError("voxel_size must be positive")
        self.voxel_size = voxel_size
        self.voxels_per_side = voxels_per_side
        self.voxel_type = voxel_type
        self.block_size = voxel_size * voxels_per_side
        self._blocks: dict[Index, Block[V]] = {}

    def __len__(self) -> int:
        return len(self._blocks)

    def block(self, block_index) -> Optional[Block[V]]:
        return self._blocks.get(tuple(block_index))

    def allocate_block(self, block_index) -> Block[V]:
        key = tuple(block_index)
        found = self._blocks.get(key)
        if found is None:
            found = Block(self.voxel_type, self.voxels_per_side, self.voxel_size, key)
            self._blocks[key] = found
        return found

    def block_indices(self) -> list[Index]:
        return list(self._blocks)

    def block_index_from_coordinates(self, point) -> Index:
        return _grid_index(point, self.block_size)

    def voxel_by_global_index(self, global_index) -> Optional[V]:
        n = self.voxels_per_side
        block_index = tuple(g // n for g in global_index)
        block = self.block(block_index)
        if block is None:
            return None
        return block.voxel(tuple(g - b * n for g, b in zip(global_index, block_index)))

    def voxel_by_coordinates(self, point) -> Optional[V]:
        block = self.block(self.block_index_from_coordinates(point))
        if block is None:
            return None
        return block.voxel(block.voxel_index_from_coordinates(point))


def neighbor_from_direction(
    block_index, voxel_index, direction, voxels_per_side: int
) -> tuple[Index, Index]:
    """Block and voxel index of the voxel displaced by direction."""
    global_index = [
        b * voxels_per_side + v + d
        for b, v, d in zip(block_index, voxel_index, direction)
    ]
    new_block = tuple(g // voxels_per_side for g in global_index)
    new_voxel = tuple(g - b * voxels_per_side for g, b in zip(global_index, new_block))
    return new_block, new_voxel


def neighbors(block_index, voxel_index, voxels_per_side: int) -> list[tuple[Index, Index]]:
    """The 26 neighbours as (block_index, voxel_index), in NEIGHBOR_OFFSETS order."""
    return [
        neighbor_from_direction(block_index, voxel_index, offset, voxels_per_side)
        for offset in NEIGHBOR_OFFSETS
    ]


def offset_between_voxels(
    start_block_index, start_voxel_index, end_block_index, end_voxel_index, voxels_per_side: int
) -> Index:
    return tuple(
        (eb - sb) * voxels_per_side + ev - sv
        for sb, sv, eb, ev in zip(
            start_block_index, start_voxel_index, end_block_index, end_voxel_index
        )
    )


def global_index_from_point(point, voxel_size: float) -> Index:
    return _grid_index(point, voxel_size)


def global_neighbors(global_index) -> list[Index]:
    return [tuple(g + o for g, o in zip(global_index, offset)) for offset in NEIGHBOR_OFFSETS]


def merge_voxel(voxel_a, voxel_b) -> None:
    """Merge voxel_a into voxel_b; for these voxel types that is a plain copy."""
    if type(voxel_a) is not type(voxel_b):
        raise TypeError("voxels must be of the same type")
    for f in fields(voxel_a):
        setattr(voxel_b, f.name, getattr(voxel_a, f.name))