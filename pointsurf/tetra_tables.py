"""
Lookup tables for marching tetrahedra.

Each cube cell is split into six tetrahedra. A tetrahedron is classified by
the 4-bit pattern of its inside corners (bit i = corner i inside) and the
configuration selects up to two triangles whose vertices lie on tetrahedron
edges. Adjacency tables map every cube edge to the neighbouring cubes that
share it, so a vertex generated on a shared edge is generated only once.

Cube corner and edge numbering
------------------------------
Corners follow the usual marching cubes order::

    0 (0,0,0)  1 (1,0,0)  2 (1,1,0)  3 (0,1,0)
    4 (0,0,1)  5 (1,0,1)  6 (1,1,1)  7 (0,1,1)

Cube edges 0-9 are the usual ones. The vertical edges at y=1 are numbered
10 = (3,7) and 11 = (2,6). The tetrahedra add six face diagonals and the
body diagonal:

    12 = (1,4) y=0    13 = (2,7) y=1
    14 = (3,4) x=0    15 = (2,5) x=1
    16 = (1,3) z=0    17 = (5,7) z=1
    18 = (2,4) body

Opposite faces carry the same diagonal, so the split is conforming across
neighbouring cubes.

Tetrahedron local edges, as pairs of local vertices::

    e0 v0-v1   e1 v1-v3   e2 v0-v3   e3 v0-v2   e4 v1-v2   e5 v2-v3

All tables are read-only numpy arrays.
"""

import numpy as np


def _frozen(rows, dtype=np.int32) -> np.ndarray:
    arr = np.asarray(rows, dtype=dtype)
    arr.setflags(write=False)
    return arr


#cube corner offsets (8 vertices)
CUBE_CORNERS = _frozen([
    [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],  #bottom face (z=0)
    [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],  #top face (z=1)
])

#cube edges (19 edges, each defined by 2 corner indices)
CUBE_EDGES = _frozen([
    [0, 1], [1, 2], [2, 3], [3, 0],  #bottom face edges
    [4, 5], [5, 6], [6, 7], [7, 4],  #top face edges
    [0, 4], [1, 5], [3, 7], [2, 6],  #vertical edges
    [1, 4], [2, 7],                  #diagonals y=0, y=1
    [3, 4], [2, 5],                  #diagonals x=0, x=1
    [1, 3], [5, 7],                  #diagonals z=0, z=1
    [2, 4],                          #body diagonal
])

#local tetrahedron edges as pairs of local vertices
TETRAEDER_EDGES = _frozen([
    [0, 1], [1, 3], [0, 3], [0, 2], [1, 2], [2, 3],
])

#configuration (bit i = local vertex i inside) -> triangles as local edges
TETRAEDER_TABLE = _frozen([
    [-1, -1, -1, -1, -1, -1, -1],   #0
    [ 0,  3,  2, -1, -1, -1, -1],   #1
    [ 0,  1,  4, -1, -1, -1, -1],   #2
    [ 2,  1,  3,  3,  1,  4, -1],   #3
    [ 3,  4,  5, -1, -1, -1, -1],   #4
    [ 2,  0,  5,  5,  0,  4, -1],   #5
    [ 3,  0,  1,  3,  1,  5, -1],   #6
    [ 2,  1,  5, -1, -1, -1, -1],   #7
    [ 2,  5,  1, -1, -1, -1, -1],   #8
    [ 3,  1,  0,  3,  5,  1, -1],   #9
    [ 2,  5,  0,  5,  4,  0, -1],   #10
    [ 3,  5,  4, -1, -1, -1, -1],   #11
    [ 2,  3,  1,  3,  4,  1, -1],   #12
    [ 0,  4,  1, -1, -1, -1, -1],   #13
    [ 0,  2,  3, -1, -1, -1, -1],   #14
    [-1, -1, -1, -1, -1, -1, -1],   #15
])

#tetrahedron -> cube corners spanned
TETRAEDER_DEFINITION_TABLE = _frozen([
    [0, 1, 3, 4],   #0
    [3, 1, 2, 4],   #1
    [4, 2, 3, 7],   #2
    [1, 5, 2, 4],   #3
    [4, 5, 2, 7],   #4
    [2, 5, 6, 7],   #5
])

#(tetrahedron, local edge) -> cube edge
TETRAEDER_INTERSECTION_TABLE = _frozen([
    [ 0, 12,  8,  3, 16, 14],   #0
    [16, 12, 14,  2,  1, 18],   #1
    [18, 13,  7, 14,  2, 10],   #2
    [ 9,  4, 12,  1, 15, 18],   #3
    [ 4, 17,  7, 18, 15, 13],   #4
    [15, 17, 13, 11,  5,  6],   #5
])

#cube edge -> neighbouring cubes sharing it, coded 9*(dx+1) + 3*(dy+1) + (dz+1)
TETRAEDER_NEIGHBOR_TABLE = _frozen([
    [12, 10,  9],   #0
    [22, 12, 21],   #1
    [16, 12, 15],   #2
    [ 4,  3, 12],   #3
    [14, 10, 11],   #4
    [23, 22, 14],   #5
    [14, 16, 17],   #6
    [ 4,  5, 14],   #7
    [ 4,  1, 10],   #8
    [22, 19, 10],   #9
    [ 4,  7, 16],   #10
    [22, 25, 16],   #11
    [10, -1, -1],   #12
    [16, -1, -1],   #13
    [ 4, -1, -1],   #14
    [22, -1, -1],   #15
    [12, -1, -1],   #16
    [14, -1, -1],   #17
    [-1, -1, -1],   #18
])

#cube edge -> the same edge's id in each neighbour of TETRAEDER_NEIGHBOR_TABLE
TETRAEDER_VERTEX_NB_TABLE = _frozen([
    [ 4,  2,  6],   #0
    [ 3,  5,  7],   #1
    [ 0,  6,  4],   #2
    [ 1,  5,  7],   #3
    [ 0,  6,  2],   #4
    [ 3,  7,  1],   #5
    [ 2,  4,  0],   #6
    [ 5,  1,  3],   #7
    [ 9, 11, 10],   #8
    [ 8, 10, 11],   #9
    [11,  9,  8],   #10
    [10,  8,  9],   #11
    [13, -1, -1],   #12
    [12, -1, -1],   #13
    [15, -1, -1],   #14
    [14, -1, -1],   #15
    [17, -1, -1],   #16
    [16, -1, -1],   #17
    [-1, -1, -1],   #18
])

assert CUBE_CORNERS.shape == (8, 3), "Cube must have 8 corners"
assert CUBE_EDGES.shape == (19, 2), "Cube must have 19 edges (12 + 6 diagonals + body)"
assert TETRAEDER_TABLE.shape == (16, 7), "Tetraeder table must be 16x7"
assert TETRAEDER_DEFINITION_TABLE.shape == (6, 4), "Cube splits into 6 tetrahedra"
assert TETRAEDER_INTERSECTION_TABLE.shape == (6, 6), "Each tetrahedron has 6 edges"
assert TETRAEDER_NEIGHBOR_TABLE.shape == (19, 3)
assert TETRAEDER_VERTEX_NB_TABLE.shape == (19, 3)


def neighbor_offset(code: int) -> tuple[int, int, int]:
    """Decode a TETRAEDER_NEIGHBOR_TABLE entry into a cube offset (dx, dy, dz)."""
    if not 0 <= code < 27:
        raise ValueError(f"neighbour code must be in [0, 27), got {code}")
    return code // 9 - 1, (code // 3) % 3 - 1, code % 3 - 1


def triangle_count(config: int) -> int:
    """Number of triangles emitted for a tetrahedron configuration."""
    row = TETRAEDER_TABLE[config]
    return int(np.count_nonzero(row >= 0)) // 3
