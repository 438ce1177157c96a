"""
Sampling of the signed distance field of a point cloud on a regular grid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .config import DEFAULT_GRID_PADDING, DEFAULT_MAX_DISTANCE_FACTOR, DEFAULT_VOXEL_FACTOR
from .point_cloud import PointCloudManager

logger = logging.getLogger(__name__)


@dataclass
class DistanceGrid:
    """Signed distances sampled at the corners of a regular grid.

    Attributes:
        values: (nx, ny, nz) signed projected distances; negative inside.
        origin: (3,) world position of corner (0, 0, 0).
        spacing: Edge length of a voxel.
        valid: (nx, ny, nz) mask of corners close enough to the samples.
    """

    values: np.ndarray
    origin: np.ndarray
    spacing: float
    valid: np.ndarray

    @property
    def shape(self) -> tuple[int, int, int]:
        return tuple(self.values.shape)

    def corner_positions(self) -> np.ndarray:
        """World positions of all grid corners, (nx*ny*nz) x 3 in C order."""
        idx = np.indices(self.shape).reshape(3, -1).T
        return self.origin + idx * self.spacing


def estimate_voxel_size(manager: PointCloudManager, factor: float = DEFAULT_VOXEL_FACTOR) -> float:
    """
    Suggest a voxel size from the point spacing.

    Args:
        manager: Point cloud to reconstruct
        factor: Multiple of the mean nearest-neighbour distance

    Returns:
        Voxel edge length

    Raises:
        DegenerateNeighborhoodError: fewer than 2 distinct points
    """
    return factor * manager.mean_spacing()


def sample_distance_grid(manager: PointCloudManager,
                         voxel_size: float,
                         padding: int = DEFAULT_GRID_PADDING,
                         max_distance: float | None = None) -> DistanceGrid:
    """
    Evaluate the manager's signed distance at every corner of a voxel grid.

    The grid covers the bounding box of the cloud plus ``padding`` voxels on
    every side. Corners farther than ``max_distance`` from their local tangent
    plane anchor, or without a defined distance, are marked invalid so that
    no surface is extracted away from the samples.

    Args:
        manager: Point cloud with normals
        voxel_size: Grid spacing
        padding: Margin in voxels around the cloud bounding box
        max_distance: Largest accepted anchor distance
            (default DEFAULT_MAX_DISTANCE_FACTOR * voxel_size)

    Returns:
        DistanceGrid
    """
    if voxel_size <= 0:
        raise ValueError(f"voxel_size must be > 0, got {voxel_size}")
    if padding < 0:
        raise ValueError(f"padding must be >= 0, got {padding}")
    if max_distance is None:
        max_distance = DEFAULT_MAX_DISTANCE_FACTOR * voxel_size

    lo = manager.points.min(axis=0) - padding * voxel_size
    hi = manager.points.max(axis=0) + padding * voxel_size
    shape = np.maximum(np.ceil((hi - lo) / voxel_size).astype(np.int64) + 1, 2)

    grid = DistanceGrid(
        values=np.empty(tuple(shape), dtype=np.float64),
        origin=lo,
        spacing=float(voxel_size),
        valid=np.empty(tuple(shape), dtype=bool),
    )
    logger.info(f"Sampling distance grid {shape[0]}x{shape[1]}x{shape[2]} (voxel size {voxel_size:.4g})")

    #one x-slab at a time so the corner positions never exist for the whole grid
    yz = np.indices(grid.shape[1:]).reshape(2, -1).T
    for i in range(grid.shape[0]):
        corners = grid.origin + np.column_stack([np.full(len(yz), i), yz]) * grid.spacing
        projected, euclidean = manager.distances(corners)
        grid.values[i] = projected.reshape(grid.shape[1:])
        grid.valid[i] = (np.isfinite(projected) & (euclidean <= max_distance)).reshape(grid.shape[1:])

    logger.debug(f"{int(grid.valid.sum()):,} of {grid.valid.size:,} grid corners valid")
    return grid
