"""
Point cloud file readers and writers, selected by file extension.

- ``.xyz``, ``.pts``, ``.3d``: ASCII, one point per line (x y z [...])
- ``.nor``: ASCII, one point and normal per line (x y z nx ny nz)
- ``.ply``: binary PLY with points and normals (requires Open3D,
  ``pip install pointsurf[ply]``)
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from .config import NORMAL_FORMATS, PLY_FORMATS, POINT_FORMATS
from .errors import MalformedInputError

logger = logging.getLogger(__name__)


def _suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in POINT_FORMATS | NORMAL_FORMATS | PLY_FORMATS:
        known = ", ".join(sorted(POINT_FORMATS | NORMAL_FORMATS | PLY_FORMATS))
        raise MalformedInputError(f"Unsupported point cloud format '{path.suffix}' ({path.name}); expected one of {known}")
    return suffix


def _load_ascii(path: Path, columns: int) -> np.ndarray:
    try:
        data = np.loadtxt(path, dtype=np.float64, comments="#", ndmin=2)
    except ValueError as e:
        raise MalformedInputError(f"Cannot parse {path.name}: {e}") from e

    if data.size == 0:
        raise MalformedInputError(f"{path.name} contains no points")
    if data.shape[1] < columns:
        raise MalformedInputError(f"{path.name} has {data.shape[1]} columns, expected at least {columns}")
    if not np.all(np.isfinite(data[:, :columns])):
        raise MalformedInputError(f"{path.name} contains non-finite values")
    return data[:, :columns]


def _read_ply(path: Path) -> tuple[np.ndarray, np.ndarray | None]:
    import open3d as o3d  # noqa: PLC0415

    pcd = o3d.io.read_point_cloud(str(path))
    if pcd.is_empty():
        raise MalformedInputError(f"{path.name} contains no points or is not a valid PLY file")
    points = np.asarray(pcd.points, dtype=np.float64)
    normals = np.asarray(pcd.normals, dtype=np.float64) if pcd.has_normals() else None
    return points, normals


def read_point_cloud(filename: str | Path) -> tuple[np.ndarray, np.ndarray | None]:
    """
    Read a point cloud file.

    Args:
        filename: Path to a .xyz, .pts, .3d, .nor or .ply file

    Returns:
        Points (Nx3) and normals (Nx3) or None if the format has none

    Raises:
        MalformedInputError: missing file, unsupported extension or
            unreadable payload
    """
    path = Path(filename)
    suffix = _suffix(path)
    if not path.is_file():
        raise MalformedInputError(f"Point cloud file not found: {path}")

    if suffix in PLY_FORMATS:
        points, normals = _read_ply(path)
    elif suffix in NORMAL_FORMATS:
        data = _load_ascii(path, 6)
        points, normals = data[:, :3].copy(), data[:, 3:6].copy()
    else:
        points, normals = _load_ascii(path, 3).copy(), None

    logger.debug(f"Read {len(points):,} points from {path}")
    return points, normals


def write_point_cloud(filename: str | Path, points: np.ndarray, normals: np.ndarray | None = None) -> None:
    """
    Write a point cloud file.

    Point-only formats ignore the normals. ``.nor`` and ``.ply`` require them.

    Args:
        filename: Target path; the extension selects the format
        points: Points (Nx3)
        normals: Normals (Nx3)

    Raises:
        MalformedInputError: unsupported extension, or normals missing for a
            format that stores them
        OSError: the file could not be written
    """
    path = Path(filename)
    suffix = _suffix(path)
    points = np.asarray(points, dtype=np.float64)

    if suffix in POINT_FORMATS:
        np.savetxt(path, points, fmt="%.8f")
        return

    if normals is None:
        raise MalformedInputError(f"Format '{suffix}' stores normals but none were given")
    normals = np.asarray(normals, dtype=np.float64)
    if normals.shape != points.shape:
        raise MalformedInputError(f"normals shape {normals.shape} does not match points {points.shape}")

    if suffix in NORMAL_FORMATS:
        np.savetxt(path, np.hstack([points, normals]), fmt="%.8f")
        return

    import open3d as o3d  # noqa: PLC0415

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points)
    pcd.normals = o3d.utility.Vector3dVector(normals)
    if not o3d.io.write_point_cloud(str(path), pcd, write_ascii=False):
        raise OSError(f"Could not write {path}")
