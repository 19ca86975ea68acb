"""
scripts/run_calibration.py

Command line runner for tool-tip calibration, triangulation, two-view
reconstruction and fundamental matrix estimation.
"""

import argparse
import sys

import numpy as np

from trackcal.errors import CardinalityError, DegenerateConfigurationError
from trackcal.io.camera import (
    read_fundamental_matrix,
    read_intrinsics,
    read_points_2d,
    read_poses,
    read_projection_matrix,
)
from trackcal.io.pointcloud_io import write_ply
from trackcal.io.results import save_tooltip_result
from trackcal.pipeline import (
    CalibrationConfig,
    get_default_config,
    run_fundamental_estimation,
    run_reconstruction,
    run_tooltip_calibration,
    run_triangulation,
)
from trackcal.utils.logging_utils import make_logger, verbosity_level


def build_config_from_args(args) -> CalibrationConfig:
    """
    Start from --config (or the defaults), then override with any explicitly
    provided arguments.
    """
    config = CalibrationConfig.from_file(args.config) if args.config else get_default_config()

    if args.command == "tooltip":
        rc = config.tooltip.ransac
        if args.threshold is not None:
            rc.threshold = args.threshold
        if args.iterations is not None:
            rc.max_iterations = args.iterations
        if args.min_inliers is not None:
            rc.min_inlier = args.min_inliers
        if args.seed is not None:
            rc.seed = args.seed

    elif args.command == "triangulate":
        if args.refine:
            config.triangulation.refine = True

    elif args.command == "reconstruct":
        if args.max_cost is not None:
            config.reconstruction.max_cost = args.max_cost

    elif args.command == "fundamental":
        if args.step is not None:
            config.fundamental.step_size = args.step
        if args.ransac:
            config.fundamental.use_ransac = True
        if args.seed is not None:
            config.fundamental.ransac.seed = args.seed

    config.verbose = args.verbose
    return config


def _cmd_tooltip(args, config, logger) -> int:
    poses = read_poses(args.poses)
    result = run_tooltip_calibration(poses, config=config, logger=logger)
    if args.output:
        save_tooltip_result(args.output, result)
        logger.info(f"Saved: {args.output}")
    return 0 if result.success else 1


def _cmd_triangulate(args, config, logger) -> int:
    projections = [read_projection_matrix(p) for p in args.projections]
    points = read_points_2d(args.points)
    X, _ = run_triangulation(projections, points, config=config, logger=logger)
    print(" ".join(repr(float(v)) for v in X))
    return 0


def _cmd_reconstruct(args, config, logger) -> int:
    P1 = read_projection_matrix(args.P1)
    P2 = read_projection_matrix(args.P2)
    F = read_fundamental_matrix(args.F) if args.F else None
    X = run_reconstruction(
        read_points_2d(args.points1),
        read_points_2d(args.points2),
        P1, P2, F,
        config=config,
        logger=logger,
    )
    write_ply(args.output, X)
    logger.info(f"Saved {X.shape[0]} points: {args.output}")
    return 0


def _cmd_fundamental(args, config, logger) -> int:
    K1 = read_intrinsics(args.K1) if args.K1 else None
    K2 = read_intrinsics(args.K2) if args.K2 else None
    est = run_fundamental_estimation(
        read_points_2d(args.points1),
        read_points_2d(args.points2),
        config=config,
        K1=K1,
        K2=K2,
        logger=logger,
    )
    if est.F is None:
        logger.info("No fundamental matrix with enough inliers.")
        return 1
    np.savetxt(sys.stdout, est.F)
    return 0


COMMANDS = {
    "tooltip": _cmd_tooltip,
    "triangulate": _cmd_triangulate,
    "reconstruct": _cmd_reconstruct,
    "fundamental": _cmd_fundamental,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="trackcal calibration runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Pivot calibration from recorded poses (qx qy qz qw tx ty tz per line)
  python -m scripts.run_calibration tooltip --poses data/pivot.txt --seed 0 --output out/tip.json

  # Triangulate one point seen by three cameras, with LM refinement
  python -m scripts.run_calibration triangulate --projections P0.txt P1.txt P2.txt --points obs.txt --refine

  # Match + reconstruct two unordered point sets
  python -m scripts.run_calibration reconstruct --P1 P0.txt --P2 P1.txt --points1 a.txt --points2 b.txt --output out/points.ply
        """
    )
    parser.add_argument("--config", type=str, default=None,
                        help="JSON/YAML config file (see trackcal/pipeline/config.py)")
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    # =========================================================
    # TOOL TIP
    # =========================================================
    p = sub.add_parser("tooltip", help="RANSAC tool-tip (pivot) calibration")
    p.add_argument("--poses", type=str, required=True, help="Pose file")
    p.add_argument("--threshold", type=float, default=None,
                   help="Inlier distance in tracker units (default: 1.0)")
    p.add_argument("--iterations", type=int, default=None, help="RANSAC iterations (default: 300)")
    p.add_argument("--min_inliers", type=int, default=None, help="Minimum consensus (default: 10)")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--output", type=str, default=None, help="Result JSON")

    # =========================================================
    # TRIANGULATION
    # =========================================================
    p = sub.add_parser("triangulate", help="3D point from N >= 2 views")
    p.add_argument("--projections", type=str, nargs="+", required=True, help="3x4 projection files")
    p.add_argument("--points", type=str, required=True, help="One observation per projection")
    p.add_argument("--refine", action="store_true", help="Levenberg-Marquardt refinement")

    # =========================================================
    # RECONSTRUCTION
    # =========================================================
    p = sub.add_parser("reconstruct", help="Match two point sets and triangulate")
    p.add_argument("--P1", type=str, required=True)
    p.add_argument("--P2", type=str, required=True)
    p.add_argument("--points1", type=str, required=True)
    p.add_argument("--points2", type=str, required=True)
    p.add_argument("--F", type=str, default=None, help="Fundamental matrix (default: from P1, P2)")
    p.add_argument("--max_cost", type=float, default=None, help="Squared epipolar distance gate")
    p.add_argument("--output", type=str, required=True, help="PLY output")

    # =========================================================
    # FUNDAMENTAL MATRIX
    # =========================================================
    p = sub.add_parser("fundamental", help="Normalized 8-point fundamental matrix")
    p.add_argument("--points1", type=str, required=True)
    p.add_argument("--points2", type=str, required=True)
    p.add_argument("--step", type=int, default=None, help="Use every n-th correspondence")
    p.add_argument("--ransac", action="store_true")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--K1", type=str, default=None, help="Intrinsics of view 1 (enables pose recovery)")
    p.add_argument("--K2", type=str, default=None, help="Intrinsics of view 2")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = build_config_from_args(args)
    logger = make_logger(level=verbosity_level(config.verbose))

    try:
        return COMMANDS[args.command](args, config, logger)
    except (CardinalityError, DegenerateConfigurationError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
