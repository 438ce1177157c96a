"""
Consistency tests for the marching tetrahedra lookup tables.

This suite validates:
1. The six tetrahedra are positively oriented and fill the unit cube
2. Triangle rows only use edges crossed by the configuration
3. The intersection table agrees with the cube edge definitions
4. Neighbour tables name the same geometric edge in the neighbouring cube
"""

import unittest

import numpy as np

from pointsurf.tetra_tables import (
    CUBE_CORNERS,
    CUBE_EDGES,
    TETRAEDER_DEFINITION_TABLE,
    TETRAEDER_EDGES,
    TETRAEDER_INTERSECTION_TABLE,
    TETRAEDER_NEIGHBOR_TABLE,
    TETRAEDER_TABLE,
    TETRAEDER_VERTEX_NB_TABLE,
    neighbor_offset,
    triangle_count,
)


def edge_endpoints(edge: int, offset=(0, 0, 0)) -> frozenset:
    """Grid corners of a cube edge in the cube at ``offset``."""
    a, b = CUBE_EDGES[edge]
    off = np.asarray(offset)
    return frozenset({tuple(CUBE_CORNERS[a] + off), tuple(CUBE_CORNERS[b] + off)})


class TestTetrahedra(unittest.TestCase):
    def test_positive_orientation_and_volume(self):
        volumes = []
        for corners in TETRAEDER_DEFINITION_TABLE:
            p = CUBE_CORNERS[corners].astype(np.float64)
            det = np.linalg.det(np.stack([p[1] - p[0], p[2] - p[0], p[3] - p[0]]))
            self.assertGreater(det, 0.0, f"tetrahedron {corners.tolist()} is not positively oriented")
            volumes.append(det / 6.0)
        self.assertAlmostEqual(sum(volumes), 1.0)

    def test_intersection_table_matches_cube_edges(self):
        for t, corners in enumerate(TETRAEDER_DEFINITION_TABLE):
            for e, (a, b) in enumerate(TETRAEDER_EDGES):
                cube_edge = TETRAEDER_INTERSECTION_TABLE[t, e]
                self.assertEqual(
                    set(CUBE_EDGES[cube_edge].tolist()), {int(corners[a]), int(corners[b])},
                    f"tetrahedron {t}, local edge {e}",
                )

    def test_every_cube_edge_is_used(self):
        used = set(TETRAEDER_INTERSECTION_TABLE.ravel().tolist())
        self.assertEqual(used, set(range(19)))


class TestTriangleTable(unittest.TestCase):
    def test_triangle_counts(self):
        for config in range(16):
            bits = bin(config).count("1")
            expected = {0: 0, 1: 1, 2: 2, 3: 1, 4: 0}[bits]
            self.assertEqual(triangle_count(config), expected, f"config {config}")

    def test_rows_use_crossed_edges_only(self):
        for config in range(16):
            inside = [(config >> i) & 1 for i in range(4)]
            row = TETRAEDER_TABLE[config]
            used = {int(e) for e in row if e >= 0}
            crossed = {e for e, (a, b) in enumerate(TETRAEDER_EDGES) if inside[a] != inside[b]}
            self.assertEqual(used, crossed, f"config {config}")

    def test_rows_are_terminated(self):
        for row in TETRAEDER_TABLE:
            self.assertEqual(row[-1], -1)

    def test_tables_are_read_only(self):
        with self.assertRaises(ValueError):
            TETRAEDER_TABLE[1, 0] = 5
        with self.assertRaises(ValueError):
            CUBE_EDGES[0, 0] = 3


class TestNeighborTables(unittest.TestCase):
    def test_neighbor_offset_decoding(self):
        self.assertEqual(neighbor_offset(13), (0, 0, 0))
        self.assertEqual(neighbor_offset(22), (1, 0, 0))
        self.assertEqual(neighbor_offset(0), (-1, -1, -1))
        self.assertEqual(neighbor_offset(26), (1, 1, 1))
        with self.assertRaises(ValueError):
            neighbor_offset(27)
        with self.assertRaises(ValueError):
            neighbor_offset(-1)

    def test_aliases_name_the_same_edge(self):
        for edge in range(19):
            own = edge_endpoints(edge)
            for code, nb_edge in zip(TETRAEDER_NEIGHBOR_TABLE[edge], TETRAEDER_VERTEX_NB_TABLE[edge]):
                self.assertEqual(code < 0, nb_edge < 0)
                if code < 0:
                    continue
                self.assertEqual(edge_endpoints(int(nb_edge), neighbor_offset(int(code))), own,
                                 f"edge {edge} via neighbour code {code}")

    def test_alias_counts(self):
        counts = [int(np.count_nonzero(row >= 0)) for row in TETRAEDER_NEIGHBOR_TABLE]
        #axis edges touch 4 cubes, face diagonals 2, the body diagonal 1
        self.assertEqual(counts, [3] * 12 + [1] * 6 + [0])


if __name__ == "__main__":
    unittest.main(verbosity=2)
