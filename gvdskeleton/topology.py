"""Topological tests on 3x3x3 voxel neighbourhoods used when thinning the diagram.

A neighbourhood is a 27-bit integer laid out as [0 1 2; 3 4 5; 6 7 8] per
layer, three layers deep; bit 13 is the centre voxel.
"""

from __future__ import annotations

from typing import Optional

from .template_matcher import NEIGHBOR_MASK_6, NEIGHBORHOOD_BITS, VoxelTemplateMatcher

CENTER_BIT = 13
_BITS_MASK = (1 << NEIGHBORHOOD_BITS) - 1

# Neighbour list position -> bit position in the 3x3x3 neighbourhood.
_NEIGHBOR_TO_BIT = {
    24: 0, 12: 1, 20: 2, 15: 3, 4: 4, 14: 5, 22: 6, 10: 7, 18: 8,
    9: 9, 3: 10, 7: 11, 1: 12, 0: 14, 8: 15, 2: 16, 6: 17,
    25: 18, 13: 19, 21: 20, 17: 21, 5: 22, 16: 23, 23: 24, 11: 25, 19: 26,
}

# For each octant: cube cells it holds, each with the octants that share it.
_OCTANTS: dict[int, tuple[tuple[int, tuple[int, ...]], ...]] = {
    1: ((0, ()), (1, (2,)), (3, (3,)), (4, (2, 3, 4)), (9, (5,)),
        (10, (2, 5, 6)), (12, (3, 5, 7))),
    2: ((1, (1,)), (4, (1, 3, 4)), (10, (1, 5, 6)), (2, ()), (5, (4,)),
        (11, (6,)), (13, (4, 6, 8))),
    3: ((3, (1,)), (4, (1, 2, 4)), (12, (1, 5, 7)), (6, ()), (7, (4,)),
        (14, (7,)), (15, (4, 7, 8))),
    4: ((4, (1, 2, 3)), (5, (2,)), (13, (2, 6, 8)), (7, (3,)),
        (15, (3, 7, 8)), (8, ()), (16, (8,))),
    5: ((9, (1,)), (10, (1, 2, 6)), (12, (1, 3, 7)), (17, ()), (18, (6,)),
        (20, (7,)), (21, (6, 7, 8))),
    6: ((10, (1, 2, 5)), (11, (2,)), (13, (2, 4, 8)), (18, (5,)),
        (21, (5, 7, 8)), (19, ()), (22, (8,))),
    7: ((12, (1, 3, 5)), (14, (3,)), (15, (3, 4, 8)), (20, (5,)),
        (21, (5, 6, 8)), (23, ()), (24, (8,))),
    8: ((13, (2, 4, 6)), (15, (3, 4, 7)), (16, (4,)), (21, (5, 6, 7)),
        (22, (6,)), (24, (7,)), (25, ())),
}

# An octant containing each cube cell, to start labelling from.
_START_OCTANT = {
    cell: octant
    for octant, cells in (
        (1, (0, 1, 3, 4, 9, 10, 12)),
        (2, (2, 5, 11, 13)),
        (3, (6, 7, 14, 15)),
        (4, (8, 16)),
        (5, (17, 18, 20, 21)),
        (6, (19, 22)),
        (7, (23, 24)),
        (8, (25,)),
    )
    for cell in cells
}


def map_neighbor_index_to_bitset_index(neighbor_index: int) -> int:
    """Bit position of a neighbour; anything unknown maps to the centre bit."""
    return _NEIGHBOR_TO_BIT.get(neighbor_index, CENTER_BIT)


def _popcount(value: int) -> int:
    return bin(value & _BITS_MASK).count("1")


def _label_octants(start_octant: int, label: int, cube: list[int]) -> None:
    pending = [start_octant]
    while pending:
        octant = pending.pop()
        for cell, adjacent in _OCTANTS[octant]:
            if cube[cell] == 1:
                cube[cell] = label
                pending.extend(adjacent)


def is_simple_point(neighbors: int) -> bool:
    """True if removing the centre voxel leaves its neighbours in one component."""
    bits = neighbors & _BITS_MASK
    cube = [(bits >> i) & 1 for i in range(NEIGHBORHOOD_BITS) if i != CENTER_BIT]
    label = 2
    for cell, value in enumerate(cube):
        if value != 1:
            continue
        _label_octants(_START_OCTANT[cell], label, cube)
        label += 1
        if label - 2 >= 2:
            return False
    return True


_DEFAULT_CORNER_MATCHER: Optional[VoxelTemplateMatcher] = None


def _default_corner_matcher() -> VoxelTemplateMatcher:
    global _DEFAULT_CORNER_MATCHER
    if _DEFAULT_CORNER_MATCHER is None:
        matcher = VoxelTemplateMatcher()
        matcher.set_corner_templates()
        _DEFAULT_CORNER_MATCHER = matcher
    return _DEFAULT_CORNER_MATCHER


def is_end_point(neighbors: int, corner_matcher: Optional[VoxelTemplateMatcher] = None) -> bool:
    """True if the centre voxel ends a line of the diagram.

    Without a matcher, the standard corner templates are used.
    """
    if _popcount(neighbors) == 1:
        return True
    if _popcount(NEIGHBOR_MASK_6 & neighbors) > 1:
        return False
    matcher = corner_matcher if corner_matcher is not None else _default_corner_matcher()
    return matcher.fits_templates(neighbors)