"""
Point cloud manager: neighbour queries and robust surface normals.

The manager owns a point array and its per-point normals. When no normals are
supplied they are computed at construction in two strictly separated passes:

1. Initial estimation: for every point, fit a tangent plane to its ``kn``
   nearest neighbours. Neighbourhoods whose bounding box is badly shaped are
   enlarged (doubling k) a few times first. The normal is flipped to point
   away from the cloud centroid.
2. Interpolation: every normal is replaced by the re-normalised mean of the
   initial normals of its ``ki`` nearest neighbours.

The second pass only starts once the first one has written every normal.
Distance queries (``distance``) average the ``kd`` nearest points and normals
into a local tangent plane and return the signed offset from it, which is the
scalar field that the tetrahedral surface extraction consumes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from .config import (
    BOUNDING_BOX_RATIO,
    DEFAULT_KD,
    DEFAULT_KI,
    DEFAULT_KN,
    MAX_NEIGHBORHOOD_GROWTH,
    ORIENTATION_TOLERANCE,
    QUERY_BLOCK_SIZE,
)
from .errors import DegenerateNeighborhoodError, MalformedInputError, UnsupportedQueryError
from .plane import bounding_boxes_ok, fit_planes
from .spatial_index import SpatialIndex, make_index

logger = logging.getLogger(__name__)


@dataclass
class NormalEstimationReport:
    """Degeneracy summary of one ``calc_normals`` run.

    Attributes:
        num_points: Number of processed points.
        grown: Number of points whose neighbourhood had to be enlarged.
        ill_shaped: Points whose neighbourhood was still badly shaped after
            growing; their plane was fitted anyway.
        fallback: Points without a usable plane fit; they received the unit
            vector from the centroid as normal.
        interpolation_skipped: Points whose interpolated normal vanished;
            they kept their initial normal.
    """

    num_points: int = 0
    grown: int = 0
    ill_shaped: list[int] = field(default_factory=list)
    fallback: list[int] = field(default_factory=list)
    interpolation_skipped: list[int] = field(default_factory=list)

    @property
    def has_degeneracies(self) -> bool:
        return bool(self.ill_shaped or self.fallback or self.interpolation_skipped)

    def summary(self) -> str:
        return (f"{self.num_points} normals: {self.grown} neighbourhoods grown, "
                f"{len(self.ill_shaped)} ill-shaped, {len(self.fallback)} fallbacks, "
                f"{len(self.interpolation_skipped)} interpolation skips")


def _check_k(name: str, value: int) -> int:
    if isinstance(value, bool) or int(value) != value or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def _as_point_array(name: str, values, n: int | None = None) -> np.ndarray:
    arr = np.array(values, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise MalformedInputError(f"{name} must have shape (N, 3), got {arr.shape}")
    if n is not None and len(arr) != n:
        raise MalformedInputError(f"{name} must hold {n} entries, got {len(arr)}")
    if not np.all(np.isfinite(arr)):
        raise MalformedInputError(f"{name} contains non-finite values")
    return arr


class PointCloudManager:
    """Owns a point cloud, its spatial index and its surface normals.

    Args:
        points: Point coordinates (Nx3). Copied; the copy is read-only.
        normals: Optional normals (Nx3). If None, normals are computed with
            ``calc_normals`` during construction.
        kn: Number of neighbours used for normal estimation
        ki: Number of neighbours used for normal interpolation
        kd: Number of neighbours used for distance value calculation
        index: Optional prebuilt spatial index over ``points``. By default
            ``make_index`` picks a KD-tree or brute-force search.
        block_size: Neighbour entries (query points * k) gathered at once in
            batched passes; bounds the memory of large clouds and grids.

    Example:
        >>> manager = PointCloudManager(points, kn=10, ki=10, kd=10)
        >>> projected, euclidean = manager.distance([0.0, 0.0, 1.0])
    """

    def __init__(self,
                 points,
                 normals=None,
                 kn: int = DEFAULT_KN,
                 ki: int = DEFAULT_KI,
                 kd: int = DEFAULT_KD,
                 index: SpatialIndex | None = None,
                 block_size: int = QUERY_BLOCK_SIZE):
        self.kn = _check_k("kn", kn)
        self.ki = _check_k("ki", ki)
        self.kd = _check_k("kd", kd)
        self.block_size = _check_k("block_size", block_size)

        self._points = _as_point_array("points", points)
        if len(self._points) == 0:
            raise MalformedInputError("Cannot build a point cloud manager without points")
        self._points.setflags(write=False)

        self._centroid = self._points.mean(axis=0)
        self._centroid.setflags(write=False)

        if index is not None and index.num_points != len(self._points):
            raise ValueError(f"index holds {index.num_points} points, expected {len(self._points)}")
        self._index = index if index is not None else make_index(self._points)

        largest_k = max(self.kn, self.ki, self.kd)
        if self.num_points < largest_k:
            logger.warning(f"Point cloud has {self.num_points} points but k={largest_k} was requested; "
                           f"neighbourhoods will be truncated")

        self.report = NormalEstimationReport(num_points=self.num_points)
        if normals is None:
            self._normals = np.zeros_like(self._points)
            self.calc_normals()
        else:
            self._normals = _as_point_array("normals", normals, self.num_points)

    @classmethod
    def from_file(cls, filename: str | Path,
                  kn: int = DEFAULT_KN,
                  ki: int = DEFAULT_KI,
                  kd: int = DEFAULT_KD) -> "PointCloudManager":
        """
        Read a point cloud file and build a manager for it.

        The reader is chosen by file extension (see ``pointsurf.io``). Normals
        stored in the file are used as is; otherwise they are computed.

        Raises:
            MalformedInputError: missing file, unknown extension or bad payload
        """
        from .io import read_point_cloud

        points, normals = read_point_cloud(filename)
        logger.info(f"Loaded {len(points):,} points from {Path(filename).name}"
                    f"{' with normals' if normals is not None else ''}")
        return cls(points, normals, kn=kn, ki=ki, kd=kd)

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    @property
    def num_points(self) -> int:
        return len(self._points)

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def normals(self) -> np.ndarray:
        view = self._normals.view()
        view.setflags(write=False)
        return view

    @property
    def centroid(self) -> np.ndarray:
        return self._centroid

    def from_id(self, i: int) -> np.ndarray:
        """Return the coordinates of point ``i`` (0 <= i < num_points)."""
        if not 0 <= i < self.num_points:
            raise IndexError(f"point id {i} out of range for {self.num_points} points")
        return self._points[i]

    # ------------------------------------------------------------------
    # neighbour queries
    # ------------------------------------------------------------------

    def get_k_closest_vertices(self, query, k: int) -> np.ndarray:
        """
        Return the k points closest to ``query``.

        Args:
            query: Query position (3,)
            k: Maximum number of returned points

        Returns:
            min(k, n) points (kx3) sorted by non-decreasing distance
        """
        _, idx = self._index.query(np.asarray(query, dtype=np.float64).reshape(3), k)
        return self._points[idx]

    def get_k_closest_normals(self, query, k: int) -> np.ndarray:
        """Not provided by this manager.

        Raises:
            UnsupportedQueryError: always
        """
        raise UnsupportedQueryError(
            "get_k_closest_normals is not supported; query vertices with "
            "get_k_closest_vertices and look up their normals instead"
        )

    def mean_spacing(self) -> float:
        """
        Mean distance from each distinct point to its nearest distinct point.

        Duplicated points (common in merged scans) are measured once.

        Raises:
            DegenerateNeighborhoodError: fewer than 2 distinct points
        """
        distinct = np.unique(self._points, axis=0)
        if len(distinct) < 2:
            raise DegenerateNeighborhoodError(
                f"Need at least 2 distinct points to measure point spacing, got {len(distinct)}"
            )
        dist, _ = make_index(distinct).query(distinct, 2)
        return float(dist[:, 1].mean())

    def distance(self, point) -> tuple[float, float]:
        """
        Distance of a point from the nearest local tangent plane.

        The plane is anchored at the mean of the ``kd`` closest points and
        oriented by the re-normalised mean of their normals.

        Args:
            point: Query position (3,)

        Returns:
            (signed projected distance, Euclidean distance to the anchor)

        Raises:
            DegenerateNeighborhoodError: fewer than ``kd`` points in the cloud
                or the neighbour normals cancel out
        """
        projected, euclidean = self.distances(np.asarray(point, dtype=np.float64).reshape(1, 3))
        if not np.isfinite(projected[0]):
            raise DegenerateNeighborhoodError("Neighbour normals cancel out; no tangent plane")
        return float(projected[0]), float(euclidean[0])

    def distances(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Batched ``distance``.

        Args:
            points: Query positions (Mx3)

        Returns:
            Signed projected distances (M,) and Euclidean distances (M,).
            Projected distances are NaN where the neighbour normals cancel out.
        """
        if self.num_points < self.kd:
            raise DegenerateNeighborhoodError(
                f"distance needs {self.kd} neighbours, point cloud has {self.num_points}"
            )
        q = np.atleast_2d(np.asarray(points, dtype=np.float64))
        projected = np.empty(len(q), dtype=np.float64)
        euclidean = np.empty(len(q), dtype=np.float64)

        for block in self._blocks(len(q), self.kd):
            _, idx = self._index.query(q[block], self.kd)
            anchors = self._points[idx].mean(axis=1)
            mean_normals = self._normals[idx].mean(axis=1)
            lengths = np.linalg.norm(mean_normals, axis=1)

            offsets = q[block] - anchors
            euclidean[block] = np.linalg.norm(offsets, axis=1)
            with np.errstate(invalid="ignore", divide="ignore"):
                p = np.einsum("ij,ij->i", offsets, mean_normals) / lengths
            p[lengths < 1e-12] = np.nan
            projected[block] = p
        return projected, euclidean

    def _blocks(self, count: int, k: int):
        """Slices over ``count`` query points, about ``block_size / k`` points each."""
        step = max(1, self.block_size // max(k, 1))
        for start in range(0, count, step):
            yield slice(start, min(start + step, count))

    # ------------------------------------------------------------------
    # normal estimation
    # ------------------------------------------------------------------

    def calc_normals(self) -> NormalEstimationReport:
        """
        Estimate normals for all points, then interpolate them.

        Overwrites any stored normals. Running it again on unchanged data
        yields the same normals.

        Returns:
            The degeneracy report of this run (also kept as ``self.report``)
        """
        report = NormalEstimationReport(num_points=self.num_points)

        initial = self._estimate_initial_normals(report)
        #barrier: interpolation reads only the complete initial normal field
        self._normals = self._interpolate_normals(initial, report)
        self.report = report

        if report.has_degeneracies:
            logger.warning(report.summary())
        else:
            logger.info(report.summary())
        return report

    def _fit_neighborhoods(self, ids: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Fit planes to the k-neighbourhoods of ``ids``, block by block.

        Returns:
            Normals (Nx3), plane validity (N,) and bounding box shape check (N,)
        """
        normals = np.empty((len(ids), 3), dtype=np.float64)
        valid = np.empty(len(ids), dtype=bool)
        well_shaped = np.empty(len(ids), dtype=bool)

        for block in self._blocks(len(ids), k):
            _, idx = self._index.query(self._points[ids[block]], k)
            neighborhoods = self._points[idx]
            normals[block], _, _, valid[block] = fit_planes(neighborhoods)
            extents = neighborhoods.max(axis=1) - neighborhoods.min(axis=1)
            well_shaped[block] = bounding_boxes_ok(extents, BOUNDING_BOX_RATIO)
        return normals, valid, well_shaped

    def _estimate_initial_normals(self, report: NormalEstimationReport) -> np.ndarray:
        n = self.num_points
        ids = np.arange(n)
        k = min(self.kn, n)

        normals, valid, well_shaped = self._fit_neighborhoods(ids, k)
        pending = ids[~well_shaped]
        report.grown = len(pending) if k < n else 0

        #enlarge badly shaped neighbourhoods and refit them
        rounds = 0
        while len(pending) and k < n and rounds < MAX_NEIGHBORHOOD_GROWTH:
            k = min(2 * k, n)
            rounds += 1
            normals[pending], valid[pending], well_shaped = self._fit_neighborhoods(pending, k)
            pending = pending[~well_shaped]
            logger.debug(f"Neighbourhood growth round {rounds}: k={k}, {len(pending)} still ill-shaped")

        report.ill_shaped = pending.tolist()

        normals = self._orient(normals)

        #points without a plane get the direction away from the centroid
        bad = ids[~valid]
        if len(bad):
            normals[bad] = self._centroid_directions(bad)
            report.fallback = bad.tolist()
            logger.debug(f"{len(bad)} points fell back to centroid normals")
        return normals

    def _orient(self, normals: np.ndarray) -> np.ndarray:
        """Flip normals to point away from the centroid.

        Where a point lies (numerically) on the plane through the centroid the
        rule is undecided; such normals get a canonical sign instead, with
        their largest-magnitude component positive.
        """
        normals = normals.copy()
        largest = np.abs(normals).argmax(axis=1)
        canonical_flip = normals[np.arange(len(normals)), largest] < 0
        normals[canonical_flip] *= -1.0

        outward = self._points - self._centroid
        dots = np.einsum("ij,ij->i", normals, outward)
        decided = np.abs(dots) > ORIENTATION_TOLERANCE * np.linalg.norm(outward, axis=1)
        normals[decided & (dots < 0)] *= -1.0
        return normals

    def _centroid_directions(self, ids: np.ndarray) -> np.ndarray:
        directions = self._points[ids] - self._centroid
        lengths = np.linalg.norm(directions, axis=1)
        out = np.tile([0.0, 0.0, 1.0], (len(ids), 1))
        nonzero = lengths > 0
        out[nonzero] = directions[nonzero] / lengths[nonzero, None]
        return out

    def _interpolate_normals(self, initial: np.ndarray, report: NormalEstimationReport) -> np.ndarray:
        k = min(self.ki, self.num_points)
        result = initial.copy()
        vanished = np.zeros(self.num_points, dtype=bool)

        for block in self._blocks(self.num_points, k):
            _, idx = self._index.query(self._points[block], k)
            neighbour_normals = initial[idx]
            own = initial[block]

            #align neighbour normals with the point's own normal before averaging
            signs = np.sign(np.einsum("nkj,nj->nk", neighbour_normals, own))
            signs[signs == 0] = 1.0
            mean = (neighbour_normals * signs[:, :, None]).mean(axis=1)

            lengths = np.linalg.norm(mean, axis=1)
            gone = lengths < 1e-12
            mean[gone] = own[gone]
            lengths[gone] = 1.0
            result[block] = mean / lengths[:, None]
            vanished[block] = gone

        if np.any(vanished):
            report.interpolation_skipped = np.flatnonzero(vanished).tolist()
        return result

    # ------------------------------------------------------------------
    # output
    # ------------------------------------------------------------------

    def save(self, filename: str | Path) -> None:
        """
        Save points and normals; the format follows the file extension.

        ``.xyz``, ``.pts`` and ``.3d`` produce ASCII point files, ``.nor``
        ASCII points with normals and ``.ply`` a binary PLY with normals.
        """
        from .io import write_point_cloud

        write_point_cloud(filename, self._points, self._normals)
        logger.info(f"Saved {self.num_points:,} points to {Path(filename).name}")
