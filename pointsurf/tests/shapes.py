"""Synthetic point sets and scalar grids shared by the tests."""

import numpy as np


def fibonacci_sphere(n: int, radius: float = 1.0, center=(0.0, 0.0, 0.0)) -> np.ndarray:
    """Nearly uniform points on a sphere (golden angle spiral)."""
    i = np.arange(n) + 0.5
    phi = np.arccos(1.0 - 2.0 * i / n)
    theta = np.pi * (1.0 + 5.0 ** 0.5) * i
    points = np.column_stack([
        np.cos(theta) * np.sin(phi),
        np.sin(theta) * np.sin(phi),
        np.cos(phi),
    ])
    return radius * points + np.asarray(center, dtype=np.float64)


def plane_grid(nx: int, ny: int, step: float = 0.1, slope=(0.0, 0.0)) -> np.ndarray:
    """Regular grid on the plane z = slope[0] * x + slope[1] * y."""
    x, y = np.meshgrid(np.arange(nx) * step, np.arange(ny) * step, indexing="ij")
    x, y = x.ravel(), y.ravel()
    return np.column_stack([x, y, slope[0] * x + slope[1] * y])


def square_with_center() -> np.ndarray:
    """Unit square corners plus its center, all at z = 0."""
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.5, 0.5, 0.0],
    ])


def sphere_sdf_grid(radius: float, lo: float = -5.0, hi: float = 5.0, step: float = 1.0):
    """Signed distance to a sphere at the origin sampled on a cubic grid.

    Returns:
        values (n x n x n), origin (3,), spacing
    """
    axis = np.arange(lo, hi + 0.5 * step, step)
    X, Y, Z = np.meshgrid(axis, axis, axis, indexing="ij")
    values = np.sqrt(X ** 2 + Y ** 2 + Z ** 2) - radius
    return values, np.array([lo, lo, lo]), step
