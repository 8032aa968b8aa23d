import math

import pytest

from gvdskeleton.layer import EsdfVoxel, Layer, SkeletonVoxel
from gvdskeleton.planner import SkeletonAStar
from gvdskeleton.refinement import GraphRefiner, max_edge_distance_on_path, merge_subgraphs
from gvdskeleton.skeleton import SkeletonEdge, SkeletonVertex, SparseSkeletonGraph


def center(i, j, k=0):
    return (i + 0.5, j + 0.5, k + 0.5)


def make_world(diagram_cells=(), vertex_cells=None, free_cells=()):
    vertex_cells = vertex_cells or {}
    skeleton = Layer(1.0, 8, SkeletonVoxel)
    skeleton.allocate_block((0, 0, 0))
    esdf = Layer(1.0, 8, EsdfVoxel)
    esdf.allocate_block((0, 0, 0))
    for cell in diagram_cells:
        skeleton.voxel_by_global_index((cell[0], cell[1], 0)).is_edge = True
    for cell, vertex_id in vertex_cells.items():
        voxel = skeleton.voxel_by_global_index((cell[0], cell[1], 0))
        voxel.is_edge = True
        voxel.is_vertex = True
        voxel.vertex_id = vertex_id
    for cell in free_cells:
        voxel = esdf.voxel_by_global_index((cell[0], cell[1], 0))
        voxel.observed = True
        voxel.distance = 5.0
    planner = SkeletonAStar(skeleton, esdf)
    return skeleton, esdf, planner


def make_graph(cells, edges):
    graph = SparseSkeletonGraph()
    ids = [graph.add_vertex(SkeletonVertex(point=center(*cell))) for cell in cells]
    for a, b in edges:
        graph.add_edge(SkeletonEdge(start_vertex=ids[a], end_vertex=ids[b]))
    return graph, ids


def test_max_edge_distance_on_path_finds_peak():
    path = [(0.0, 0.0, 0.0), (1.0, 1.0, 0.0), (2.0, 0.0, 0.0)]
    assert max_edge_distance_on_path((0.0, 0.0, 0.0), (2.0, 0.0, 0.0), path) == (1.0, 1)


def test_max_edge_distance_on_straight_path_is_zero():
    path = [(float(x), 0.0, 0.0) for x in range(4)]
    assert max_edge_distance_on_path((0.0, 0.0, 0.0), (3.0, 0.0, 0.0), path) == (0.0, 0)


def test_max_edge_distance_on_empty_path():
    assert max_edge_distance_on_path((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), []) == (0.0, 0)


def test_merge_subgraphs_maps_to_lowest():
    subgraph_map = {1: 1, 2: 2, 3: 3}
    merge_subgraphs(2, 3, subgraph_map)
    assert subgraph_map == {1: 1, 2: 2, 3: 2}
    merge_subgraphs(3, 1, subgraph_map)
    assert set(subgraph_map.values()) == {1}


def test_recursively_label_counts_component():
    graph, ids = make_graph([(0, 0), (1, 0), (2, 0), (5, 5)], [(0, 1), (1, 2)])
    skeleton, _, planner = make_world()
    refiner = GraphRefiner(graph, skeleton, planner)
    assert refiner.recursively_label(ids[0], 1) == 3
    assert refiner.recursively_label(ids[2], 1) == 0
    assert [graph.vertex(i).subgraph_id for i in ids] == [1, 1, 1, 0]


def test_try_to_find_edges_links_subgraphs():
    cells = [(0, 0), (2, 0), (5, 0), (7, 0)]
    graph, ids = make_graph(cells, [(0, 1), (2, 3)])
    skeleton, _, planner = make_world(
        diagram_cells=[(x, 0) for x in range(8)],
        vertex_cells={cell: vid for cell, vid in zip(cells, ids)},
    )
    refiner = GraphRefiner(graph, skeleton, planner)
    refiner.recursively_label(ids[0], 1)
    refiner.recursively_label(ids[2], 2)
    path = [center(x, 0) for x in range(6)]
    new_edges = refiner.try_to_find_edges_in_coordinate_path(path, 1, 2)
    assert len(new_edges) == 1
    edge = graph.edge(new_edges[0])
    assert (edge.start_vertex, edge.end_vertex) == (ids[1], ids[2])
    assert graph.vertex(ids[3]).subgraph_id == 1


L_CELLS = [(x, 0) for x in range(6)] + [(6, y) for y in range(1, 7)]


def test_max_edge_distance_from_straight_line_follows_diagram():
    graph, ids = make_graph([(0, 0), (6, 6)], [(0, 1)])
    skeleton, _, planner = make_world(
        diagram_cells=L_CELLS, vertex_cells={(0, 0): ids[0], (6, 6): ids[1]}
    )
    refiner = GraphRefiner(graph, skeleton, planner)
    max_d, path, index = refiner.max_edge_distance_from_straight_line(center(0, 0), center(6, 6))
    assert path[0] == center(0, 0)
    assert path[-1] == center(6, 6)
    assert max_d > 2.0
    assert max_edge_distance_on_path(center(0, 0), center(6, 6), path) == (max_d, index)


def test_max_edge_distance_from_straight_line_without_path():
    graph, ids = make_graph([(0, 0), (6, 0)], [(0, 1)])
    skeleton, _, planner = make_world(diagram_cells=[(0, 0), (6, 0)])
    refiner = GraphRefiner(graph, skeleton, planner)
    assert refiner.max_edge_distance_from_straight_line(center(0, 0), center(6, 0)) == (
        -1.0, [], 0,
    )


def test_split_edges_inserts_vertex_at_corner():
    graph, ids = make_graph([(0, 0), (6, 6)], [(0, 1)])
    skeleton, _, planner = make_world(
        diagram_cells=L_CELLS, vertex_cells={(0, 0): ids[0], (6, 6): ids[1]}
    )
    refiner = GraphRefiner(graph, skeleton, planner)
    refiner.split_edges()
    assert graph.vertex_ids() == [0, 1, 2]
    assert graph.are_vertices_directly_connected(0, 2)
    assert graph.are_vertices_directly_connected(2, 1)
    assert not graph.are_vertices_directly_connected(0, 1)
    new_point = graph.vertex(2).point
    assert new_point in [center(*cell) for cell in L_CELLS]
    voxel = skeleton.voxel_by_coordinates(new_point)
    assert voxel.is_vertex and voxel.vertex_id == 2
    assert planner.max_iterations == 0


def test_split_edges_removes_edge_off_diagram():
    graph, ids = make_graph([(0, 0), (6, 0)], [(0, 1)])
    skeleton, _, planner = make_world(diagram_cells=[(0, 0), (1, 0), (5, 0), (6, 0)])
    refiner = GraphRefiner(graph, skeleton, planner)
    refiner.split_edges()
    assert graph.edge_ids() == []
    assert graph.vertex_ids() == ids


def test_repair_graph_connects_subgraphs_and_drops_lone_vertex():
    cells = [(0, 0), (2, 0), (5, 0), (7, 0), (3, 5)]
    graph, ids = make_graph(cells, [(0, 1), (2, 3)])
    skeleton, _, planner = make_world(
        diagram_cells=[(x, 0) for x in range(8)],
        vertex_cells={cell: vid for cell, vid in zip(cells[:4], ids[:4])},
    )
    refiner = GraphRefiner(graph, skeleton, planner)
    refiner.repair_graph()
    assert not graph.has_vertex(ids[4])
    assert graph.are_vertices_directly_connected(ids[1], ids[2])
    assert {graph.vertex(i).subgraph_id for i in ids[:4]} == {1}


def test_simplify_vertices_skips_middle_vertex():
    cells = [(0, 0), (3, 0), (6, 0)]
    graph, ids = make_graph(cells, [(0, 1), (1, 2)])
    skeleton, _, planner = make_world(
        diagram_cells=[(x, 0) for x in range(7)],
        vertex_cells={cell: vid for cell, vid in zip(cells, ids)},
        free_cells=[(x, 0) for x in range(8)],
    )
    refiner = GraphRefiner(graph, skeleton, planner)
    refiner.simplify_vertices()
    assert graph.vertex_ids() == [ids[0], ids[2]]
    assert len(graph.edges) == 1
    assert graph.are_vertices_directly_connected(ids[0], ids[2])


def test_reconnect_subgraphs_along_esdf():
    cells = [(0, 0), (1, 0), (4, 0), (5, 0), (7, 3)]
    graph, ids = make_graph(cells, [(0, 1), (2, 3)])
    skeleton, _, planner = make_world(free_cells=[(x, 0) for x in range(8)])
    refiner = GraphRefiner(graph, skeleton, planner)
    refiner.reconnect_subgraphs_along_esdf()
    assert not graph.has_vertex(ids[4])
    assert {graph.vertex(i).subgraph_id for i in ids[:4]} == {1}
    assert len(graph.edges) == 3
    assert graph.are_vertices_directly_connected(ids[0], ids[2])


def test_simplify_graph_sets_iteration_limit():
    graph, ids = make_graph([(0, 0), (1, 0)], [(0, 1)])
    skeleton, _, planner = make_world(
        diagram_cells=[(0, 0), (1, 0)],
        vertex_cells={(0, 0): ids[0], (1, 0): ids[1]},
        free_cells=[(0, 0), (1, 0)],
    )
    refiner = GraphRefiner(graph, skeleton, planner)
    refiner.simplify_graph()
    assert planner.max_iterations == 100
    assert graph.vertex_ids() == ids
    assert math.isclose(refiner.voxel_size, 1.0)


def test_recursively_label_unknown_vertex_raises():
    graph, _ = make_graph([(0, 0)], [])
    skeleton, _, planner = make_world()
    refiner = GraphRefiner(graph, skeleton, planner)
    with pytest.raises(KeyError):
        refiner.recursively_label(42, 1)