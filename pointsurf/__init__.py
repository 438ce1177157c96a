"""
pointsurf: oriented normals and triangle meshes from unorganised point clouds.

Pipeline:

1. ``PointCloudManager`` indexes the points and estimates per-point normals
   (tangent plane fit on k-neighbourhoods, then neighbour interpolation)
2. ``sample_distance_grid`` evaluates the signed distance to the local
   tangent planes on a voxel grid
3. ``extract_surface`` triangulates the zero level by marching tetrahedra,
   sharing vertices between neighbouring cells

Example::

    from pointsurf import PointCloudManager, reconstruct, save_mesh

    manager = PointCloudManager.from_file("scan.xyz", kn=10, ki=10, kd=10)
    mesh, report = reconstruct(manager, voxel_size=0.01)
    save_mesh(mesh, "scan.ply")
"""

from .errors import (
    DegenerateNeighborhoodError,
    EmptyIndexError,
    MalformedInputError,
    PointSurfError,
    UnsupportedQueryError,
)
from .io import read_point_cloud, write_point_cloud
from .logging_config import setup_logging
from .marching_tetrahedra import (
    EdgeVertexCache,
    ExtractionReport,
    extract_surface,
    global_edge_key,
    tetra_config,
    triangulate_cell,
    triangulate_tetrahedron,
)
from .mesh import TriangleMesh, mesh_stats, save_mesh
from .plane import Plane, bounding_box_ok, fit_plane, mean_distance, point_plane_distance
from .point_cloud import NormalEstimationReport, PointCloudManager
from .reconstruct import reconstruct
from .spatial_index import BruteForceIndex, KDTreeIndex, SpatialIndex, make_index
from .volume import DistanceGrid, estimate_voxel_size, sample_distance_grid

__version__ = "0.1.0"

__all__ = [
    "BruteForceIndex",
    "DegenerateNeighborhoodError",
    "DistanceGrid",
    "EdgeVertexCache",
    "EmptyIndexError",
    "ExtractionReport",
    "KDTreeIndex",
    "MalformedInputError",
    "NormalEstimationReport",
    "Plane",
    "PointCloudManager",
    "PointSurfError",
    "SpatialIndex",
    "TriangleMesh",
    "UnsupportedQueryError",
    "bounding_box_ok",
    "estimate_voxel_size",
    "extract_surface",
    "fit_plane",
    "global_edge_key",
    "make_index",
    "mean_distance",
    "mesh_stats",
    "point_plane_distance",
    "read_point_cloud",
    "reconstruct",
    "sample_distance_grid",
    "save_mesh",
    "setup_logging",
    "tetra_config",
    "triangulate_cell",
    "triangulate_tetrahedron",
    "write_point_cloud",
]
