import pytest

from gvdskeleton.template_matcher import VoxelTemplateMatcher
from gvdskeleton.topology import (
    is_end_point,
    is_simple_point,
    map_neighbor_index_to_bitset_index,
)


def bits(*positions):
    value = 0
    for p in positions:
        value |= 1 << p
    return value


def match_all():
    matcher = VoxelTemplateMatcher()
    matcher.add_integer_template(0, 0)
    return matcher


@pytest.mark.parametrize(
    "neighbor_index, expected",
    [(24, 0), (4, 4), (1, 12), (0, 14), (13, 19), (19, 26), (11, 25)],
)
def test_mapping_values_from_table(neighbor_index, expected):
    assert map_neighbor_index_to_bitset_index(neighbor_index) == expected


@pytest.mark.parametrize("neighbor_index", [26, 27, -1, 100])
def test_unknown_index_maps_to_centre(neighbor_index):
    assert map_neighbor_index_to_bitset_index(neighbor_index) == 13


def test_mapping_is_bijection_onto_non_centre_bits():
    mapped = [map_neighbor_index_to_bitset_index(i) for i in range(26)]
    assert sorted(mapped) == [b for b in range(27) if b != 13]


def test_empty_neighbourhood_is_simple():
    assert is_simple_point(0) is True


@pytest.mark.parametrize("position", [p for p in range(27) if p != 13])
def test_single_neighbour_is_simple(position):
    assert is_simple_point(bits(position)) is True


@pytest.mark.parametrize("pair", [(4, 22), (12, 14), (10, 16), (0, 26), (2, 24)])
def test_opposite_neighbours_are_not_simple(pair):
    assert is_simple_point(bits(*pair)) is False


@pytest.mark.parametrize("pair", [(4, 1), (4, 0), (12, 9), (22, 25)])
def test_touching_neighbours_are_simple(pair):
    assert is_simple_point(bits(*pair)) is True


def test_full_neighbourhood_is_simple():
    assert is_simple_point(bits(*[p for p in range(27) if p != 13])) is True


@pytest.mark.parametrize("pair", [(4, 22), (4, 1), (0, 26)])
def test_centre_bit_does_not_change_simplicity(pair):
    assert is_simple_point(bits(*pair)) == is_simple_point(bits(*pair, 13))


def test_single_neighbour_is_end_point_even_without_templates():
    assert is_end_point(bits(4), VoxelTemplateMatcher()) is True


def test_two_face_neighbours_are_never_end_point():
    assert is_end_point(bits(4, 22), match_all()) is False
    assert is_end_point(bits(4, 22)) is False


def test_end_point_defers_to_matcher():
    neighbourhood = bits(0, 26)
    assert is_end_point(neighbourhood, match_all()) is True
    assert is_end_point(neighbourhood, VoxelTemplateMatcher()) is False


def test_one_face_neighbour_plus_corner_uses_matcher():
    neighbourhood = bits(4, 0)
    assert is_end_point(neighbourhood, match_all()) is True
    assert is_end_point(neighbourhood, VoxelTemplateMatcher()) is False


def test_default_matcher_is_corner_templates():
    corner = VoxelTemplateMatcher()
    corner.set_corner_templates()
    for neighbourhood in (bits(4, 0), bits(14, 17), bits(0, 26), bits(10, 1, 0)):
        assert is_end_point(neighbourhood) == is_end_point(neighbourhood, corner)