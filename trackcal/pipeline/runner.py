"""
trackcal/pipeline/runner.py

Config-driven entry points used by the command line scripts.
This is a thin orchestrator that calls the geometry/estimation components.

ALL numeric defaults come from config.py - no hardcoded values here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from trackcal.estimation.fundamental import estimate_fundamental_matrix_ransac
from trackcal.estimation.tooltip import ToolTipResult, estimate_tool_tip
from trackcal.geometry import (
    Pose,
    fundamental_matrix_from_poses,
    get_3d_position,
    get_fundamental_matrix,
    pose_from_fundamental_matrix,
    reconstruct_3d_points,
)
from trackcal.io.camera import decompose_projection_matrix
from trackcal.utils.logging_utils import timed

from .config import CalibrationConfig, get_default_config


@dataclass
class FundamentalEstimate:
    F: Optional[np.ndarray]
    num_inliers: int
    inlier_mask: np.ndarray
    relative_pose: Optional[Pose] = None


def run_tooltip_calibration(
    poses: Sequence[Pose],
    config: Optional[CalibrationConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> ToolTipResult:
    config = config or get_default_config()
    rc = config.tooltip.ransac

    with timed(logger, f"Tool-tip calibration ({len(poses)} poses)"):
        result = estimate_tool_tip(poses, rc.to_parameters(), seed=rc.seed, logger=logger)

    if logger:
        if result.success:
            logger.info(
                f"Tip: world={np.round(result.world_point, 4).tolist()} "
                f"local={np.round(result.local_offset, 4).tolist()} "
                f"inliers={result.num_inliers}/{len(poses)} rms={result.rms_error(poses):.4f}"
            )
        else:
            logger.info("Tool-tip calibration found no consensus.")
    return result


def run_triangulation(
    projections: Sequence[np.ndarray],
    points: np.ndarray,
    config: Optional[CalibrationConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> Tuple[np.ndarray, float]:
    config = config or get_default_config()
    tc = config.triangulation

    X, residual = get_3d_position(
        projections,
        points,
        refine=tc.refine,
        return_residual=True,
        max_iterations=tc.max_iterations,
        tolerance=tc.tolerance,
    )
    if logger:
        logger.info(f"Point: {np.round(X, 6).tolist()} residual={residual:.6f} views={len(projections)}")
    return X, residual


def fundamental_from_projections(P1: np.ndarray, P2: np.ndarray) -> np.ndarray:
    """F of two calibrated cameras given by their projection matrices."""
    cam1 = decompose_projection_matrix(P1)
    cam2 = decompose_projection_matrix(P2)
    return fundamental_matrix_from_poses(cam1.pose, cam2.pose, cam1.K, cam2.K)


def run_reconstruction(
    points1: np.ndarray,
    points2: np.ndarray,
    P1: np.ndarray,
    P2: np.ndarray,
    F: Optional[np.ndarray] = None,
    config: Optional[CalibrationConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> np.ndarray:
    config = config or get_default_config()
    if F is None:
        F = fundamental_from_projections(P1, P2)

    with timed(logger, "Two-view reconstruction"):
        X = reconstruct_3d_points(
            points1, points2, P1, P2, F,
            max_cost=config.reconstruction.max_cost,
            logger=logger,
        )
    return X


def run_fundamental_estimation(
    from_points: np.ndarray,
    to_points: np.ndarray,
    config: Optional[CalibrationConfig] = None,
    K1: Optional[np.ndarray] = None,
    K2: Optional[np.ndarray] = None,
    logger: Optional[logging.Logger] = None,
) -> FundamentalEstimate:
    """
    Estimate F (plain 8-point or RANSAC, per config) and, when both
    intrinsics are given, the pose of the second camera relative to the first.
    """
    config = config or get_default_config()
    fc = config.fundamental
    x1 = np.asarray(from_points, dtype=np.float64)
    x2 = np.asarray(to_points, dtype=np.float64)

    with timed(logger, f"Fundamental matrix ({x1.shape[0]} correspondences)"):
        if fc.use_ransac:
            rc = fc.ransac
            res = estimate_fundamental_matrix_ransac(
                x1[::fc.step_size], x2[::fc.step_size], rc.to_parameters(), seed=rc.seed, logger=logger,
            )
            est = FundamentalEstimate(res.F, res.num_inliers, res.inlier_mask)
        else:
            F = get_fundamental_matrix(x1, x2, step_size=fc.step_size)
            n_used = x1[::fc.step_size].shape[0]
            est = FundamentalEstimate(F, n_used, np.ones((n_used,), dtype=bool))

    if est.F is not None and K1 is not None and K2 is not None:
        idx: List[int] = np.flatnonzero(est.inlier_mask).tolist()
        sub1 = x1[::fc.step_size]
        sub2 = x2[::fc.step_size]
        est.relative_pose = pose_from_fundamental_matrix(est.F, sub1[idx[0]], sub2[idx[0]], K1, K2)
        if logger:
            logger.info(f"Relative pose: {est.relative_pose}")

    return est
