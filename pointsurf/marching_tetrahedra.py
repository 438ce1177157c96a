"""
Marching tetrahedra surface extraction over a regular scalar grid.

Each cube cell is split into six tetrahedra (``TETRAEDER_DEFINITION_TABLE``).
For every tetrahedron the 4-bit configuration of its inside corners selects
up to two triangles from ``TETRAEDER_TABLE``; their vertices are linearly
interpolated on the crossing edges.

Inside convention
-----------------
A corner is inside iff its value is ``<= iso_value``. A value exactly at the
threshold therefore counts as inside. The rule is applied uniformly, so the
convention never makes neighbouring cells disagree; such corners are counted
in the ``ExtractionReport``.

Vertex sharing
--------------
Every intersection vertex lives on a cube edge. ``global_edge_key`` maps a
(cell, edge) pair to one canonical representative among all cells that share
the edge (via ``TETRAEDER_NEIGHBOR_TABLE`` / ``TETRAEDER_VERTEX_NB_TABLE``),
and ``EdgeVertexCache`` creates at most one vertex per key. Vertex positions
are interpolated along the edge in a canonical direction, so they do not
depend on which cell visits the edge first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .config import DEFAULT_ISO_VALUE
from .mesh import TriangleMesh
from .tetra_tables import (
    CUBE_CORNERS,
    CUBE_EDGES,
    TETRAEDER_DEFINITION_TABLE,
    TETRAEDER_EDGES,
    TETRAEDER_INTERSECTION_TABLE,
    TETRAEDER_NEIGHBOR_TABLE,
    TETRAEDER_TABLE,
    TETRAEDER_VERTEX_NB_TABLE,
    neighbor_offset,
)

logger = logging.getLogger(__name__)

Cell = tuple[int, int, int]
EdgeKey = tuple[Cell, int]


def is_inside(values, iso_value: float = DEFAULT_ISO_VALUE):
    """Inside test used everywhere: on-threshold values count as inside."""
    return np.asarray(values) <= iso_value


def tetra_config(values, iso_value: float = DEFAULT_ISO_VALUE) -> int:
    """
    Compute the tetrahedron configuration index (0-15).

    Args:
        values: Scalar values at the 4 tetrahedron corners
        iso_value: Iso surface threshold

    Returns:
        Configuration index, bit i set when corner i is inside
    """
    c = 0
    for i, inside in enumerate(is_inside(values, iso_value)):
        if inside:
            c |= (1 << i)
    return c


def interpolate_edge(p0, p1, v0: float, v1: float,
                     iso_value: float = DEFAULT_ISO_VALUE) -> np.ndarray:
    """
    Linearly interpolate the iso crossing on the edge p0-p1.

    Args:
        p0, p1: Edge end points (3,)
        v0, v1: Scalar values at the end points
        iso_value: Iso surface threshold

    Returns:
        Crossing position (3,); the midpoint if both values are equal
    """
    p0 = np.asarray(p0, dtype=np.float64)
    p1 = np.asarray(p1, dtype=np.float64)
    if v1 == v0:
        return 0.5 * (p0 + p1)
    t = min(max((iso_value - v0) / (v1 - v0), 0.0), 1.0)
    return p0 + t * (p1 - p0)


def _triangle_rows(config: int):
    row = TETRAEDER_TABLE[config]
    for i in range(0, 6, 3):
        if row[i] < 0:
            break
        yield int(row[i]), int(row[i + 1]), int(row[i + 2])


def triangulate_tetrahedron(positions, values,
                            iso_value: float = DEFAULT_ISO_VALUE) -> np.ndarray:
    """
    Triangulate the iso surface inside a single tetrahedron.

    Positive tetrahedra (det[v1-v0, v2-v0, v3-v0] > 0) yield triangles wound
    counter-clockwise seen from the outside.

    Args:
        positions: Corner positions (4x3)
        values: Corner values (4,)
        iso_value: Iso surface threshold

    Returns:
        Triangle corner coordinates (T x 3 x 3), T in {0, 1, 2}
    """
    positions = np.asarray(positions, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)

    triangles = []
    for tri in _triangle_rows(tetra_config(values, iso_value)):
        corners = []
        for local_edge in tri:
            a, b = TETRAEDER_EDGES[local_edge]
            corners.append(interpolate_edge(positions[a], positions[b], values[a], values[b], iso_value))
        triangles.append(corners)

    if not triangles:
        return np.zeros((0, 3, 3), dtype=np.float64)
    return np.asarray(triangles, dtype=np.float64)


def edge_aliases(cell: Cell, edge: int) -> list[EdgeKey]:
    """All (cell, edge) pairs naming the same cube edge, the given one first."""
    aliases = [(tuple(int(c) for c in cell), int(edge))]
    for code, nb_edge in zip(TETRAEDER_NEIGHBOR_TABLE[edge], TETRAEDER_VERTEX_NB_TABLE[edge]):
        if code < 0:
            break
        dx, dy, dz = neighbor_offset(int(code))
        aliases.append(((cell[0] + dx, cell[1] + dy, cell[2] + dz), int(nb_edge)))
    return aliases


def global_edge_key(cell: Cell, edge: int) -> EdgeKey:
    """
    Canonical key of a cube edge.

    Every cell sharing the edge computes the same key: the smallest
    (cell, edge) pair among the edge's aliases.
    """
    return min(edge_aliases(cell, edge))


def edge_corners(cell: Cell, edge: int) -> tuple[Cell, Cell]:
    """Global grid corners of a cube edge, in canonical (sorted) order."""
    a, b = CUBE_EDGES[edge]
    p0 = tuple(int(cell[i] + CUBE_CORNERS[a, i]) for i in range(3))
    p1 = tuple(int(cell[i] + CUBE_CORNERS[b, i]) for i in range(3))
    return (p0, p1) if p0 <= p1 else (p1, p0)


class EdgeVertexCache:
    """Creates at most one mesh vertex per edge key.

    Attributes:
        vertices: Created vertex positions, in creation order.
        hits: Number of lookups answered from the cache.
    """

    def __init__(self):
        self._index: dict[EdgeKey, int] = {}
        self.vertices: list[np.ndarray] = []
        self.hits = 0

    def __len__(self) -> int:
        return len(self.vertices)

    def __contains__(self, key: EdgeKey) -> bool:
        return key in self._index

    def get_or_create(self, key: EdgeKey, make_position: Callable[[], np.ndarray]) -> int:
        """
        Return the vertex index for ``key``, creating the vertex if needed.

        Args:
            key: Edge key from ``global_edge_key``
            make_position: Called once, when the vertex is created

        Returns:
            Vertex index
        """
        idx = self._index.get(key)
        if idx is not None:
            self.hits += 1
            return idx
        idx = len(self.vertices)
        self.vertices.append(np.asarray(make_position(), dtype=np.float64))
        self._index[key] = idx
        return idx

    def as_array(self) -> np.ndarray:
        if not self.vertices:
            return np.zeros((0, 3), dtype=np.float64)
        return np.vstack(self.vertices)


def triangulate_cell(cell: Cell,
                     corner_values,
                     corner_positions,
                     iso_value: float,
                     cache: EdgeVertexCache) -> list[tuple[int, int, int]]:
    """
    Triangulate one cube cell through its six tetrahedra.

    Args:
        cell: Grid index of the cell's corner 0
        corner_values: Scalar values at the 8 cube corners (8,)
        corner_positions: Positions of the 8 cube corners (8x3)
        iso_value: Iso surface threshold
        cache: Shared vertex cache

    Returns:
        Faces as vertex index triples
    """
    corner_values = np.asarray(corner_values, dtype=np.float64)
    corner_positions = np.asarray(corner_positions, dtype=np.float64)
    cell = tuple(int(c) for c in cell)

    def vertex_on(edge: int) -> int:
        a, b = CUBE_EDGES[edge]
        #walk the edge from its lower global corner so both sides agree
        if edge_corners(cell, edge)[0] != tuple(cell[i] + int(CUBE_CORNERS[a, i]) for i in range(3)):
            a, b = b, a
        return cache.get_or_create(
            global_edge_key(cell, edge),
            lambda: interpolate_edge(corner_positions[a], corner_positions[b],
                                     corner_values[a], corner_values[b], iso_value),
        )

    faces = []
    for t, corners in enumerate(TETRAEDER_DEFINITION_TABLE):
        config = tetra_config(corner_values[corners], iso_value)
        for tri in _triangle_rows(config):
            faces.append(tuple(vertex_on(int(TETRAEDER_INTERSECTION_TABLE[t, e])) for e in tri))
    return faces


@dataclass
class ExtractionReport:
    """Summary of one ``extract_surface`` run.

    Attributes:
        cells_visited: Cells whose 8 corners are all valid.
        cells_with_triangles: Cells that emitted at least one triangle.
        corners_on_iso: Valid corners whose value equals the iso value
            (resolved as inside).
        vertices_reused: Vertex lookups served by the edge cache.
        skipped_cells: Cells skipped because a corner was invalid.

    A corner exactly on the iso value is resolved as inside, so every edge
    from it to an outside corner gets a vertex at the corner position. Those
    vertices have distinct edge keys and are not merged: the mesh then holds
    coincident vertices and zero-area faces around the corner. Callers that
    need a clean mesh can weld them (e.g. ``trimesh.Trimesh.merge_vertices``)
    when ``corners_on_iso`` is non-zero.
    """

    cells_visited: int = 0
    cells_with_triangles: int = 0
    corners_on_iso: int = 0
    vertices_reused: int = 0
    skipped_cells: int = 0

    def summary(self) -> str:
        return (f"{self.cells_with_triangles} of {self.cells_visited} cells triangulated, "
                f"{self.skipped_cells} skipped, {self.corners_on_iso} corners on iso value, "
                f"{self.vertices_reused} shared vertices reused")


def _cell_corner_stack(grid: np.ndarray) -> np.ndarray:
    """Stack the 8 corner views of every cell: shape (8, nx-1, ny-1, nz-1)."""
    nx, ny, nz = grid.shape
    return np.stack([
        grid[dx:nx - 1 + dx, dy:ny - 1 + dy, dz:nz - 1 + dz]
        for dx, dy, dz in CUBE_CORNERS
    ])


def extract_surface(values: np.ndarray,
                    origin=(0.0, 0.0, 0.0),
                    spacing=1.0,
                    iso_value: float = DEFAULT_ISO_VALUE,
                    valid: np.ndarray | None = None) -> tuple[TriangleMesh, ExtractionReport]:
    """
    Extract the iso surface of a regular scalar grid by marching tetrahedra.

    Args:
        values: Scalar values at grid corners (nx x ny x nz)
        origin: World position of grid corner (0, 0, 0)
        spacing: Grid spacing, scalar or per axis (x, y, z)
        iso_value: Iso surface threshold
        valid: Optional boolean mask (nx x ny x nz); cells touching an
            invalid corner are skipped

    Returns:
        Triangle mesh (vertices shared between cells) and extraction report
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim != 3 or min(values.shape) < 2:
        raise ValueError(f"values must be a 3-D grid with at least 2 samples per axis, got {values.shape}")
    if valid is None:
        valid = np.isfinite(values)
    else:
        valid = np.asarray(valid, dtype=bool)
        if valid.shape != values.shape:
            raise ValueError(f"valid mask shape {valid.shape} does not match values {values.shape}")
        valid = valid & np.isfinite(values)

    origin = np.asarray(origin, dtype=np.float64).reshape(3)
    spacing = np.broadcast_to(np.asarray(spacing, dtype=np.float64), (3,))
    report = ExtractionReport()

    #classify all cells at once, then only loop over mixed ones
    inside_count = _cell_corner_stack(is_inside(np.where(valid, values, np.inf), iso_value)).sum(axis=0)
    cell_valid = _cell_corner_stack(valid).all(axis=0)
    mixed = cell_valid & (inside_count > 0) & (inside_count < 8)

    report.cells_visited = int(cell_valid.sum())
    report.skipped_cells = int(cell_valid.size - report.cells_visited)
    report.corners_on_iso = int(np.count_nonzero(valid & (values == iso_value)))

    cache = EdgeVertexCache()
    F = []
    for x, y, z in np.argwhere(mixed):
        cell = (int(x), int(y), int(z))
        corner_idx = CUBE_CORNERS + np.array(cell)
        corner_values = values[corner_idx[:, 0], corner_idx[:, 1], corner_idx[:, 2]]
        corner_positions = origin + corner_idx * spacing

        faces = triangulate_cell(cell, corner_values, corner_positions, iso_value, cache)
        if faces:
            report.cells_with_triangles += 1
            F.extend(faces)

    report.vertices_reused = cache.hits
    V = cache.as_array()
    F = np.asarray(F, dtype=np.int64) if F else np.zeros((0, 3), np.int64)

    logger.info(report.summary())
    return TriangleMesh(V, F), report
