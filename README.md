# gvdskeleton

`gvdskeleton` extracts a skeleton from a voxel map that stores the Euclidean
signed distance to obstacles (an ESDF). The skeleton approximates the
generalized Voronoi diagram (GVD) of free space. From it the package builds a
sparse graph of vertices and edges that can be used for global path planning.

It is plain Python and depends only on the standard library.

## Installation

```
pip install gvdskeleton
```

To run the tests:

```
pip install "gvdskeleton[test]"
pytest
```

## Modules

- `gvdskeleton.layer`: voxel storage. `EsdfVoxel` (`distance`, `observed`,
  `fixed`, `parent`) and `SkeletonVoxel` (`distance`, `num_basis_points`,
  `is_face`, `is_edge`, `is_vertex`, `vertex_id`) are dataclasses. A `Layer`
  holds `Block`s of `voxels_per_side ** 3` voxels, created on demand with
  `Layer.allocate_block`. Points are `(x, y, z)` tuples and indices are
  `(i, j, k)` tuples. Helpers `neighbors`, `neighbor_from_direction`,
  `offset_between_voxels`, `global_index_from_point` and `global_neighbors`
  handle 26-connected neighbourhoods across block boundaries. Blocks of
  skeleton voxels can be packed into unsigned 32-bit integers with
  `Block.serialize_to_integers` and read back with
  `Block.deserialize_from_integers`; other voxel types raise `TypeError`.
- `gvdskeleton.skeleton`: `Skeleton` holds the diagram as lists of
  `SkeletonPoint` (`points`, `edges`, `vertices`) and returns point clouds with
  distances. `SparseSkeletonGraph` holds `SkeletonVertex` and `SkeletonEdge`
  objects under increasing integer ids; `vertex()` and `edge()` raise
  `KeyError` for unknown ids, while `remove_vertex()` and `remove_edge()`
  ignore them.
- `gvdskeleton.template_matcher`: `VoxelTemplateMatcher` matches a 3x3x3
  neighbourhood, given as a 27-bit integer with bit 13 as the centre, against
  masked `VoxelTemplate`s. It ships deletion, connectivity and corner template
  sets.
- `gvdskeleton.topology`: `is_simple_point`, `is_end_point` and
  `map_neighbor_index_to_bitset_index`, used when thinning diagram edges.
- `gvdskeleton.skeleton_io`: `save_sparse_graph` and `load_sparse_graph`
  write a sparse graph to a JSON file and read it back. A file that is not
  valid JSON or lacks fields raises `ValueError`.
- `gvdskeleton.planner`: `SkeletonAStar` runs A* through free ESDF voxels
  (`get_path_in_esdf`), along diagram voxels (`get_path_on_diagram`), or
  reaches the diagram through the ESDF, follows it and leaves it again
  (`get_path_using_esdf_and_diagram`). Each returns a list of points, or
  `None` when no path is found. `max_iterations = 0` means unbounded;
  `min_esdf_distance` sets the clearance required in the ESDF.
- `gvdskeleton.sparse_graph_planner`: `SparseGraphPlanner` runs A* over a
  sparse graph between the vertices nearest to a start and a goal point.
  `setup()` takes a snapshot of the vertex positions and must be called before
  planning, and again after the graph changes.
- `gvdskeleton.refinement`: `GraphRefiner` splits edges that stray from the
  diagram, repairs and reconnects disconnected subgraphs, and removes
  redundant vertices.
- `gvdskeleton.generator`: `SkeletonGenerator` ties everything together.
  Its keyword options are `min_separation_angle` (0.785),
  `generate_by_layer_neighbors` (False), `num_neighbors_for_edge` (18),
  `vertex_pruning_radius` (0.35), `min_gvd_distance` (0.4) and
  `cleanup_style` (`CleanupStyle.SIMPLIFY`; also
  `MATCH_UNDERLYING_DIAGRAM` and `NONE`).

## Example

```python
from gvdskeleton.generator import SkeletonGenerator
from gvdskeleton.layer import EsdfVoxel, Layer
from gvdskeleton.sparse_graph_planner import SparseGraphPlanner

esdf = Layer(voxel_size=0.1, voxels_per_side=16, voxel_type=EsdfVoxel)
block = esdf.allocate_block((0, 0, 0))
# Fill the voxels: mark them observed, set the distance to the nearest
# obstacle and `parent`, the voxel offset towards that obstacle.
for index, voxel in block.iter_voxels():
    ...

generator = SkeletonGenerator(esdf)
generator.generate_skeleton()
generator.generate_sparse_graph()

points, distances = generator.skeleton.edge_pointcloud_with_distances()

planner = SparseGraphPlanner(generator.graph)
planner.setup()
path = planner.get_path((0.5, 0.5, 0.5), (1.2, 1.0, 0.5))  # None if unreachable

generator.save_sparse_graph("graph.json")
```

`SparseGraphPlanner.get_path` raises `ValueError` when the graph has no
vertices. Progress is reported through the `logging` module.

## What this package does not do

- It does not build the ESDF. The caller fills an `EsdfVoxel` layer, including
  the parent direction of every voxel, from whatever map they have.
- It has no file format for whole layers; only sparse graphs are stored (as
  JSON), and skeleton blocks can be packed into integers for the caller to
  store.
- It has no command-line tool, no service interface and no visualisation.