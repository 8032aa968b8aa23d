import pytest

from gvdskeleton.layer import (
    NEIGHBOR_DISTANCES,
    NEIGHBOR_OFFSETS,
    Block,
    EsdfVoxel,
    Layer,
    SkeletonVoxel,
    global_index_from_point,
    global_neighbors,
    merge_voxel,
    neighbor_from_direction,
    neighbors,
    offset_between_voxels,
)


def test_neighbors_are_26_distinct_and_exclude_center():
    result = neighbors((0, 0, 0), (2, 2, 2), 4)
    assert len(result) == 26
    assert len(set(result)) == 26
    assert ((0, 0, 0), (2, 2, 2)) not in result


def test_neighbor_distances_follow_connectivity():
    center_block, center_voxel = (0, 0, 0), (1, 1, 1)
    keys = neighbors(center_block, center_voxel, 4)
    assert len(keys) == len(NEIGHBOR_DISTANCES)
    nonzero_counts = []
    for distance, (block_index, voxel_index) in zip(NEIGHBOR_DISTANCES, keys):
        offset = offset_between_voxels(
            center_block, center_voxel, block_index, voxel_index, 4
        )
        nonzero = sum(1 for component in offset if component != 0)
        nonzero_counts.append(nonzero)
        assert abs(distance * distance - nonzero) < 1e-9
    assert nonzero_counts[:6] == [1] * 6
    assert nonzero_counts[6:18] == [2] * 12
    assert nonzero_counts[18:] == [3] * 8


def test_neighbor_crosses_block_boundary():
    block, voxel = neighbor_from_direction((0, 0, 0), (0, 3, 1), (-1, 1, 0), 4)
    assert block == (-1, 1, 0)
    assert voxel == (3, 0, 1)


def test_offset_between_voxels_inverts_direction():
    start_block, start_voxel = (1, -2, 0), (3, 0, 2)
    direction = (5, -7, 2)
    end_block, end_voxel = neighbor_from_direction(start_block, start_voxel, direction, 4)
    assert offset_between_voxels(start_block, start_voxel, end_block, end_voxel, 4) == direction


def test_global_neighbors_and_index():
    assert global_index_from_point((0.25, -0.05, 1.0), 0.1) == (2, -1, 10)
    around = global_neighbors((0, 0, 0))
    assert set(around) == set(NEIGHBOR_OFFSETS)


def test_block_coordinates_round_trip():
    block = Block(EsdfVoxel, 4, 0.5, (1, 0, -1))
    for index, _ in block.iter_voxels():
        point = block.coordinates_of(index)
        assert block.voxel_index_from_coordinates(point) == index


def test_block_iteration_covers_all_voxels():
    block = Block(SkeletonVoxel, 3, 1.0)
    indices = [index for index, _ in block.iter_voxels()]
    assert len(indices) == block.num_voxels == 27
    assert indices[0] == (0, 0, 0)
    assert indices[1] == (1, 0, 0)


def test_block_invalid_index_raises():
    block = Block(SkeletonVoxel, 2, 1.0)
    assert not block.is_valid_voxel_index((2, 0, 0))
    with pytest.raises(IndexError):
        block.voxel((0, -1, 0))


def test_default_voxel_serialization_is_fixed():
    block = Block(SkeletonVoxel, 1, 1.0)
    assert block.serialize_to_integers() == [0, 0, 0xFFFFFFFF]


def test_serialization_round_trip():
    block = Block(SkeletonVoxel, 2, 0.1)
    voxel = block.voxel((1, 0, 1))
    voxel.distance = 1.5
    voxel.num_basis_points = 9
    voxel.is_face = True
    voxel.is_vertex = True
    voxel.vertex_id = 42
    data = block.serialize_to_integers()
    copy = Block(SkeletonVoxel, 2, 0.1)
    copy.deserialize_from_integers(data)
    assert copy.voxel((1, 0, 1)) == voxel
    assert copy.voxel((0, 0, 0)) == SkeletonVoxel()


def test_vertex_id_zero_is_not_kept():
    block = Block(SkeletonVoxel, 1, 1.0)
    block.voxel((0, 0, 0)).vertex_id = 0
    copy = Block(SkeletonVoxel, 1, 1.0)
    copy.deserialize_from_integers(block.serialize_to_integers())
    assert copy.voxel((0, 0, 0)).vertex_id == -1


def test_deserialize_wrong_length_raises():
    block = Block(SkeletonVoxel, 1, 1.0)
    with pytest.raises(ValueError):
        block.deserialize_from_integers([0, 0])


def test_serialize_esdf_block_raises():
    with pytest.raises(TypeError):
        Block(EsdfVoxel, 1, 1.0).serialize_to_integers()


def test_layer_lookup_by_coordinates_and_global_index():
    layer = Layer(0.5, 4, SkeletonVoxel)
    point = (-0.3, 1.2, 2.1)
    block_index = layer.block_index_from_coordinates(point)
    assert layer.voxel_by_coordinates(point) is None
    block = layer.allocate_block(block_index)
    assert layer.allocate_block(block_index) is block
    voxel = layer.voxel_by_coordinates(point)
    assert voxel is block.voxel(block.voxel_index_from_coordinates(point))
    assert layer.voxel_by_global_index(global_index_from_point(point, 0.5)) is voxel
    assert layer.block_indices() == [block_index]


def test_merge_voxel_copies_fields():
    a = SkeletonVoxel(distance=2.0, num_basis_points=3, is_edge=True, vertex_id=7)
    b = SkeletonVoxel()
    merge_voxel(a, b)
    assert b == a
    with pytest.raises(TypeError):
        merge_voxel(a, EsdfVoxel())