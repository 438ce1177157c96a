"""
Tests for tangent plane fitting and the bounding box shape check.
"""

import unittest

import numpy as np

from pointsurf.errors import DegenerateNeighborhoodError, PointSurfError
from pointsurf.plane import (
    Plane,
    bounding_box_ok,
    bounding_boxes_ok,
    fit_plane,
    fit_planes,
    mean_distance,
    point_plane_distance,
)
from pointsurf.tests.shapes import plane_grid, square_with_center


class TestBoundingBox(unittest.TestCase):
    def test_flat_box_is_ill_formed(self):
        self.assertFalse(bounding_box_ok(1.0, 1.0, 0.0))

    def test_cube_is_well_formed(self):
        self.assertTrue(bounding_box_ok(1.0, 1.0, 1.0))
        self.assertTrue(bounding_box_ok(1.0, 0.5, 0.1))

    def test_ratio_threshold(self):
        self.assertFalse(bounding_box_ok(1.0, 1.0, 0.01))
        self.assertTrue(bounding_box_ok(1.0, 1.0, 0.01, ratio=200.0))

    def test_collapsed_box(self):
        self.assertFalse(bounding_box_ok(0.0, 0.0, 0.0))

    def test_vectorised_matches_scalar(self):
        extents = np.array([[1.0, 1.0, 0.0], [1.0, 1.0, 1.0], [0.0, 0.0, 0.0], [2.0, 0.3, 0.5], [1.0, 1.0, 0.01]])
        expected = [bounding_box_ok(*e) for e in extents]
        np.testing.assert_array_equal(bounding_boxes_ok(extents), expected)


class TestFitPlane(unittest.TestCase):
    def test_square_with_center(self):
        plane = fit_plane(square_with_center())

        self.assertIsInstance(plane, Plane)
        self.assertAlmostEqual(abs(plane.normal[2]), 1.0, places=9)
        self.assertAlmostEqual(plane.a, 0.0, places=12)
        self.assertAlmostEqual(plane.curvature, 0.0, places=12)
        np.testing.assert_allclose(plane.point, [0.5, 0.5, 0.0])

    def test_eigenvalues_ascending(self):
        rng = np.random.default_rng(3)
        plane = fit_plane(rng.normal(size=(50, 3)) * [3.0, 2.0, 0.5])
        self.assertLessEqual(plane.a, plane.b)
        self.assertLessEqual(plane.b, plane.c)
        self.assertGreater(plane.curvature, 0.0)

    def test_tilted_plane(self):
        points = plane_grid(6, 6, slope=(0.3, -0.2))
        plane = fit_plane(points)

        expected = np.array([-0.3, 0.2, 1.0])
        expected /= np.linalg.norm(expected)
        self.assertAlmostEqual(abs(np.dot(plane.normal, expected)), 1.0, places=9)
        self.assertAlmostEqual(np.linalg.norm(plane.normal), 1.0, places=12)

    def test_too_few_points(self):
        with self.assertRaises(DegenerateNeighborhoodError):
            fit_plane(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]]))

    def test_collinear_points(self):
        line = np.column_stack([np.linspace(0.0, 1.0, 8), np.zeros(8), np.zeros(8)])
        with self.assertRaises(DegenerateNeighborhoodError) as ctx:
            fit_plane(line)
        self.assertIsInstance(ctx.exception, PointSurfError)

    def test_coincident_points(self):
        with self.assertRaises(DegenerateNeighborhoodError):
            fit_plane(np.ones((5, 3)))

    def test_bad_shape(self):
        with self.assertRaises(ValueError):
            fit_plane(np.zeros((5, 2)))

    def test_batched_fit_flags_degenerate_rows(self):
        good = square_with_center()
        line = np.column_stack([np.linspace(0.0, 1.0, 5), np.zeros(5), np.zeros(5)])
        normals, centroids, eigvals, valid = fit_planes(np.stack([good, line]))

        np.testing.assert_array_equal(valid, [True, False])
        self.assertEqual(normals.shape, (2, 3))
        np.testing.assert_allclose(centroids[1], [0.5, 0.0, 0.0])
        self.assertTrue(np.all(eigvals >= 0.0))


class TestDistances(unittest.TestCase):
    def setUp(self):
        self.plane = Plane(a=0.0, b=1.0, c=1.0, normal=np.array([0.0, 0.0, 1.0]), point=np.zeros(3))

    def test_signed_point_distance(self):
        self.assertAlmostEqual(point_plane_distance([0.3, -2.0, 1.5], self.plane), 1.5)
        self.assertAlmostEqual(point_plane_distance([5.0, 5.0, -0.25], self.plane), -0.25)

    def test_mean_distance(self):
        points = np.array([[0.0, 0.0, 1.0], [1.0, 0.0, -1.0], [0.0, 1.0, 2.0], [3.0, 3.0, 10.0]])
        self.assertAlmostEqual(mean_distance(self.plane, points, [0, 1, 2]), 4.0 / 3.0)
        self.assertAlmostEqual(mean_distance(self.plane, points, [0, 1, 2, 3], k=2), 1.0)

    def test_mean_distance_without_ids(self):
        with self.assertRaises(ValueError):
            mean_distance(self.plane, np.zeros((3, 3)), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
