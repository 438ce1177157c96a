"""
Triangle mesh container, mesh utilities and statistics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import trimesh

from .errors import MalformedInputError

logger = logging.getLogger(__name__)


@dataclass
class TriangleMesh:
    """Result of surface extraction.

    Attributes:
        vertices: (N, 3) array of vertex positions.
        faces: (M, 3) array of vertex indices, counter-clockwise seen from outside.
    """

    vertices: np.ndarray
    faces: np.ndarray

    @classmethod
    def empty(cls) -> "TriangleMesh":
        return cls(np.zeros((0, 3), np.float64), np.zeros((0, 3), np.int64))

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    @property
    def num_faces(self) -> int:
        return len(self.faces)

    def is_empty(self) -> bool:
        return self.num_faces == 0


def edges_from_faces(F: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Extract unique edges from faces with occurrence counts.

    Args:
        F: Faces (Mx3)

    Returns:
        Unique edges (Kx2) and their counts (K,)
    """
    if len(F) == 0:
        return np.zeros((0, 2), dtype=np.int64), np.zeros((0,), dtype=np.int64)

    E = np.vstack([
        np.stack([F[:, 0], F[:, 1]], 1),
        np.stack([F[:, 1], F[:, 2]], 1),
        np.stack([F[:, 2], F[:, 0]], 1),
    ])

    #sort edge endpoints for consistency
    E = np.sort(E, axis=1)
    edges, counts = np.unique(E, axis=0, return_counts=True)
    return edges, counts


def boundary_vertices(F: np.ndarray, nV: int) -> np.ndarray:
    """
    Identify boundary (border) vertices.

    Boundary edges appear in only one face (count == 1).

    Args:
        F: Faces (Mx3)
        nV: Number of vertices

    Returns:
        Boolean array (nV,) marking boundary vertices
    """
    edges, counts = edges_from_faces(F)
    boundary_edges = edges[counts == 1]

    is_boundary = np.zeros(nV, dtype=bool)
    if len(boundary_edges):
        is_boundary[boundary_edges[:, 0]] = True
        is_boundary[boundary_edges[:, 1]] = True

    return is_boundary


def to_trimesh(mesh: TriangleMesh) -> trimesh.Trimesh | None:
    """
    Build a trimesh object without merging or reordering vertices.

    Returns:
        Trimesh object or None if the mesh is empty
    """
    if mesh.num_vertices == 0 or mesh.num_faces == 0:
        return None
    return trimesh.Trimesh(vertices=mesh.vertices, faces=mesh.faces, process=False)


def mesh_stats(mesh: TriangleMesh, name: str = "mesh") -> dict:
    """
    Compute mesh statistics.

    Args:
        mesh: Mesh to describe
        name: Mesh identifier

    Returns:
        Dictionary with stats: verts, faces, area, volume, watertight,
        boundary_vertices, components
    """
    if mesh.is_empty():
        return {
            "name": name,
            "verts": mesh.num_vertices,
            "faces": 0,
            "area": 0.0,
            "volume": 0.0,
            "watertight": False,
            "boundary_vertices": 0,
            "components": 0
        }

    tm = to_trimesh(mesh)
    components = tm.split(only_watertight=False)

    return {
        "name": name,
        "verts": mesh.num_vertices,
        "faces": mesh.num_faces,
        "area": float(tm.area),
        "volume": float(tm.volume) if tm.is_watertight else 0.0,
        "watertight": bool(tm.is_watertight),
        "boundary_vertices": int(boundary_vertices(mesh.faces, mesh.num_vertices).sum()),
        "components": len(components)
    }


def pretty(n: int) -> str:
    """Format integer with spaces as thousand separators."""
    return f"{n:,}".replace(",", " ")


def save_mesh(mesh: TriangleMesh, filename: str | Path) -> None:
    """
    Export a mesh; the format (ply, stl, obj, off, ...) follows the extension.

    Raises:
        ValueError: the mesh has no faces
        MalformedInputError: trimesh has no exporter for the extension
    """
    tm = to_trimesh(mesh)
    if tm is None:
        raise ValueError("Cannot save an empty mesh")
    try:
        tm.export(str(filename))
    except ValueError as e:
        raise MalformedInputError(f"Cannot export mesh to {Path(filename).name}: {e}") from e
    logger.info(f"Saved mesh with {pretty(mesh.num_vertices)} vertices and "
                f"{pretty(mesh.num_faces)} faces to {Path(filename).name}")
