"""
Nearest-neighbour search over 3-D points.

Two interchangeable backends implement the ``SpatialIndex`` protocol:

- ``KDTreeIndex``: scipy's cKDTree, batched over all cores
- ``BruteForceIndex``: exhaustive distance matrix, for small clouds

Both return neighbours sorted by non-decreasing Euclidean distance and never
more than the number of indexed points.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np
from scipy.spatial import cKDTree

from .config import BRUTE_FORCE_THRESHOLD
from .errors import EmptyIndexError


class SpatialIndex(Protocol):
    """Anything that answers k-nearest-neighbour queries over a fixed point set."""

    num_points: int

    def query(self, points: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
        ...


def _prepare_query(points: np.ndarray, k: int, n: int) -> tuple[np.ndarray, int, bool]:
    """Validate a query and bring it to (M, 3) form.

    Returns:
        Query array (Mx3), effective k = min(k, n), and whether the input was
        a single point.
    """
    if k <= 0:
        raise ValueError(f"k must be > 0, got {k}")
    if n == 0:
        raise EmptyIndexError("Cannot query an index without points")

    q = np.asarray(points, dtype=np.float64)
    single = q.ndim == 1
    q = np.atleast_2d(q)
    if q.shape[-1] != 3:
        raise ValueError(f"query points must have 3 coordinates, got shape {q.shape}")
    return q, min(int(k), n), single


class KDTreeIndex:
    """k-NN queries backed by ``scipy.spatial.cKDTree``.

    Args:
        points: Indexed points (Nx3). The array is referenced, not copied;
            callers must not mutate it while the index is alive.
        workers: Number of worker threads for batched queries (-1 = all cores).
    """

    def __init__(self, points: np.ndarray, workers: int = -1):
        self.points = np.asarray(points, dtype=np.float64)
        self.num_points = len(self.points)
        self.workers = workers
        self._tree = cKDTree(self.points) if self.num_points else None

    def query(self, points: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
        """
        Find the k nearest indexed points of every query point.

        Args:
            points: Query point (3,) or query points (Mx3)
            k: Number of neighbours; clamped to the number of indexed points

        Returns:
            Distances and indices, shape (k,) for a single query point and
            (M, k) otherwise, sorted by non-decreasing distance.
        """
        q, k, single = _prepare_query(points, k, self.num_points)
        dist, idx = self._tree.query(q, k=k, workers=self.workers)

        #cKDTree drops the neighbour axis for k == 1
        dist = np.asarray(dist, dtype=np.float64).reshape(len(q), k)
        idx = np.asarray(idx, dtype=np.int64).reshape(len(q), k)
        if single:
            return dist[0], idx[0]
        return dist, idx


class BruteForceIndex:
    """Exhaustive k-NN search. Ties are broken by point index."""

    def __init__(self, points: np.ndarray):
        self.points = np.asarray(points, dtype=np.float64)
        self.num_points = len(self.points)

    def query(self, points: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
        q, k, single = _prepare_query(points, k, self.num_points)

        d2 = ((q[:, None, :] - self.points[None, :, :]) ** 2).sum(axis=-1)
        idx = np.argsort(d2, axis=1, kind="stable")[:, :k].astype(np.int64)
        dist = np.sqrt(np.take_along_axis(d2, idx, axis=1))
        if single:
            return dist[0], idx[0]
        return dist, idx


def make_index(points: np.ndarray,
               brute_force_threshold: int = BRUTE_FORCE_THRESHOLD) -> SpatialIndex:
    """
    Pick a spatial index backend for the given point set.

    Args:
        points: Points to index (Nx3)
        brute_force_threshold: Clouds with at most this many points use
            exhaustive search

    Returns:
        BruteForceIndex for small clouds, KDTreeIndex otherwise
    """
    if len(points) <= brute_force_threshold:
        return BruteForceIndex(points)
    return KDTreeIndex(points)
