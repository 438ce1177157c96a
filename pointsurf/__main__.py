"""
Command line surface reconstruction.

    python -m pointsurf scan.xyz mesh.ply --voxel-size 0.01 --normals-out scan.nor
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import DEFAULT_KD, DEFAULT_KI, DEFAULT_KN
from .errors import PointSurfError
from .logging_config import setup_logging
from .mesh import save_mesh
from .point_cloud import PointCloudManager
from .reconstruct import reconstruct

logger = logging.getLogger("pointsurf.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pointsurf",
        description="Estimate oriented normals for a point cloud and reconstruct a triangle mesh",
    )
    parser.add_argument("input", type=Path, help="Point cloud (.xyz, .pts, .3d, .nor or .ply)")
    parser.add_argument("output", type=Path, help="Mesh file (.ply, .stl, .obj, .off)")
    parser.add_argument("--voxel-size", type=float, default=None,
                        help="Grid spacing (default: twice the mean point spacing)")
    parser.add_argument("--kn", type=int, default=DEFAULT_KN, help="Neighbours for normal estimation")
    parser.add_argument("--ki", type=int, default=DEFAULT_KI, help="Neighbours for normal interpolation")
    parser.add_argument("--kd", type=int, default=DEFAULT_KD, help="Neighbours for distance values")
    parser.add_argument("--recompute-normals", action="store_true",
                        help="Ignore normals stored in the input file")
    parser.add_argument("--normals-out", type=Path, default=None,
                        help="Also save points with normals (.nor or .ply)")
    parser.add_argument("--log-file", default=None, help="Write the log to this file as well")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        manager = PointCloudManager.from_file(args.input, kn=args.kn, ki=args.ki, kd=args.kd)
        if args.recompute_normals:
            manager.calc_normals()
        if args.normals_out is not None:
            manager.save(args.normals_out)

        mesh, _ = reconstruct(manager, voxel_size=args.voxel_size)
    except PointSurfError as e:
        logger.error(f"Reconstruction of {args.input} failed: {e}")
        return 1

    if mesh.is_empty():
        logger.error("No surface was extracted; try a larger --voxel-size")
        return 1

    try:
        save_mesh(mesh, args.output)
    except (PointSurfError, OSError) as e:
        logger.error(f"Cannot write {args.output}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
