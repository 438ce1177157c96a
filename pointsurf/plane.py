"""
Tangent plane fitting for point neighbourhoods.

Planes are fitted by total least squares: the normal is the eigenvector of
the neighbourhood covariance with the smallest eigenvalue, which minimises the
sum of squared perpendicular distances. The three covariance eigenvalues are
kept on the plane as a coordinate-free description of the fit.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .config import BOUNDING_BOX_RATIO, COLLINEAR_TOLERANCE
from .errors import DegenerateNeighborhoodError


@dataclass(frozen=True)
class Plane:
    """Tangent plane of a neighbourhood.

    Attributes:
        a, b, c: Covariance eigenvalues in ascending order. ``a`` is the mean
            squared distance of the neighbourhood from the plane.
        normal: Unit normal (3,).
        point: Anchor point on the plane, the neighbourhood centroid (3,).
    """

    a: float
    b: float
    c: float
    normal: np.ndarray
    point: np.ndarray

    @property
    def curvature(self) -> float:
        """Surface variation a / (a + b + c); 0 for a perfectly planar fit."""
        total = self.a + self.b + self.c
        return float(self.a / total) if total > 0 else 0.0


def bounding_box_ok(dx: float, dy: float, dz: float,
                    ratio: float = BOUNDING_BOX_RATIO) -> bool:
    """
    Check that a bounding box is "well formed".

    No side may be more than ``ratio`` times smaller than another side. A
    side of zero extent next to a non-zero side therefore fails, and so does
    a box collapsed to a point. Flat neighbourhoods aligned with a coordinate
    plane (dz == 0) are ill-formed by this rule even though a plane can still
    be fitted to them.

    Args:
        dx, dy, dz: Side lengths of the bounding box
        ratio: Largest allowed ratio between two sides

    Returns:
        True if the box has valid dimensions
    """
    sides = np.array([dx, dy, dz], dtype=np.float64)
    longest = sides.max()
    if longest <= 0.0:
        return False
    return bool(sides.min() * ratio >= longest)


def bounding_boxes_ok(extents: np.ndarray, ratio: float = BOUNDING_BOX_RATIO) -> np.ndarray:
    """Vectorised ``bounding_box_ok`` over box extents (Nx3)."""
    longest = extents.max(axis=1)
    return (longest > 0.0) & (extents.min(axis=1) * ratio >= longest)


def fit_planes(neighborhoods: np.ndarray,
               tolerance: float = COLLINEAR_TOLERANCE) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Fit one tangent plane per neighbourhood.

    Args:
        neighborhoods: Neighbour coordinates (N x k x 3)
        tolerance: Middle/largest eigenvalue ratio under which a
            neighbourhood counts as collinear

    Returns:
        Unit normals (Nx3), centroids (Nx3), ascending eigenvalues (Nx3) and a
        boolean mask (N,) marking neighbourhoods that support a plane
    """
    nb = np.asarray(neighborhoods, dtype=np.float64)
    n, k = nb.shape[0], nb.shape[1]

    centroids = nb.mean(axis=1)
    centered = nb - centroids[:, None, :]
    cov = np.einsum("nki,nkj->nij", centered, centered) / max(k, 1)

    #eigh returns ascending eigenvalues; column 0 is the plane normal
    eigvals, eigvecs = np.linalg.eigh(cov)
    normals = eigvecs[:, :, 0]

    largest = eigvals[:, 2]
    valid = (largest > 0.0) & (eigvals[:, 1] > tolerance * largest)
    if k < 3:
        valid = np.zeros(n, dtype=bool)

    return normals, centroids, np.clip(eigvals, 0.0, None), valid


def fit_plane(points: np.ndarray, tolerance: float = COLLINEAR_TOLERANCE) -> Plane:
    """
    Fit a tangent plane to a single neighbourhood.

    Args:
        points: Neighbourhood coordinates (kx3)
        tolerance: Collinearity tolerance, see ``fit_planes``

    Returns:
        The fitted Plane

    Raises:
        DegenerateNeighborhoodError: fewer than 3 points, or the points are
            (nearly) collinear or coincident
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"points must have shape (k, 3), got {pts.shape}")
    if len(pts) < 3:
        raise DegenerateNeighborhoodError(f"Need at least 3 points to fit a plane, got {len(pts)}")

    normals, centroids, eigvals, valid = fit_planes(pts[None, :, :], tolerance)
    if not valid[0]:
        raise DegenerateNeighborhoodError("Neighbourhood points are collinear")

    a, b, c = (float(v) for v in eigvals[0])
    return Plane(a=a, b=b, c=c, normal=normals[0], point=centroids[0])


def point_plane_distance(point: np.ndarray, plane: Plane) -> float:
    """Signed perpendicular distance of a point from a plane."""
    return float(np.dot(np.asarray(point, dtype=np.float64) - plane.point, plane.normal))


def mean_distance(plane: Plane, points: np.ndarray, ids, k: int | None = None) -> float:
    """
    Mean perpendicular distance of a set of points from a plane.

    Used to score how well a plane fits a neighbourhood (lower is better).

    Args:
        plane: The query plane
        points: Point array the ids refer to (Nx3)
        ids: Point ids
        k: Number of ids to use (all if None)

    Returns:
        Mean absolute distance of the selected points
    """
    ids = np.asarray(ids, dtype=np.int64)
    if k is not None:
        ids = ids[:k]
    if len(ids) == 0:
        raise ValueError("mean_distance needs at least one point id")

    offsets = np.asarray(points, dtype=np.float64)[ids] - plane.point
    return float(np.abs(offsets @ plane.normal).mean())
