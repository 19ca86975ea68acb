"""
trackcal/estimation/tooltip.py

Tool-tip (pivot) calibration: a probe is pivoted around a fixed point while its
marker body is tracked. Every pose must then satisfy

    pw = R_i @ pm + t_i

with pw the pivot point in world coordinates and pm the tip offset in the
marker frame. Stacking [R_i | -I] [pm; pw] = -t_i gives a linear least-squares
problem; RANSAC on top of it rejects poses recorded while the tip slipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from trackcal.errors import CardinalityError, DegenerateConfigurationError
from trackcal.geometry_utils.pose import Pose

from .ransac import RansacParameter, ransac

MIN_POSES = 2

# relative singular value below which the pivot system counts as rank deficient
_RANK_TOL = 1e-6


def _solve_pivot(poses: Sequence[Pose]) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    n = len(poses)
    if n < MIN_POSES:
        return None

    A = np.zeros((3 * n, 6), dtype=np.float64)
    b = np.zeros((3 * n,), dtype=np.float64)
    for i, pose in enumerate(poses):
        A[3 * i:3 * i + 3, :3] = pose.R
        A[3 * i:3 * i + 3, 3:] = -np.eye(3)
        b[3 * i:3 * i + 3] = -pose.t

    try:
        x, _, _, s = np.linalg.lstsq(A, b, rcond=None)
    except np.linalg.LinAlgError:
        return None

    if s.size < 6 or s[-1] <= _RANK_TOL * s[0]:
        return None

    pm, pw = x[:3], x[3:]
    return pw, pm


def estimate_position_3d_6d(poses: Sequence[Pose]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Least-squares pivot point over all poses.

    Returns:
      pw: (3,) fixed point in world coordinates
      pm: (3,) tip offset in the marker frame
    """
    if len(poses) < MIN_POSES:
        raise CardinalityError(f"Tool-tip calibration needs at least {MIN_POSES} poses, got {len(poses)}.")

    solution = _solve_pivot(poses)
    if solution is None:
        raise DegenerateConfigurationError(
            "Pivot system is rank deficient; poses need distinct orientations."
        )
    return solution


class ToolTipEstimator:
    """6-vector model [pw, pm] from a set of poses."""

    def estimate(self, samples: Sequence[Pose]) -> Optional[np.ndarray]:
        solution = _solve_pivot(samples)
        if solution is None:
            return None
        pw, pm = solution
        return np.concatenate([pw, pm])


class ToolTipEvaluator:
    """Euclidean distance between pw and the pose-transformed pm."""

    def evaluate(self, model: np.ndarray, pose: Pose) -> float:
        tip = pose * model[3:6]
        return float(np.linalg.norm(model[0:3] - tip))


class ToolTipRansac:
    def __init__(self):
        self.estimator = ToolTipEstimator()
        self.evaluator = ToolTipEvaluator()


@dataclass
class ToolTipResult:
    world_point: np.ndarray   # (3,)
    local_offset: np.ndarray  # (3,)
    num_inliers: int
    inlier_mask: np.ndarray   # (N,) bool

    @property
    def success(self) -> bool:
        return self.num_inliers > 0

    def rms_error(self, poses: Sequence[Pose]) -> float:
        """RMS pivot residual over the inlier poses."""
        if not self.success:
            return float("nan")
        ev = ToolTipEvaluator()
        model = np.concatenate([self.world_point, self.local_offset])
        r = [ev.evaluate(model, p) for p, keep in zip(poses, self.inlier_mask) if keep]
        return float(np.sqrt(np.mean(np.square(r))))


def default_tooltip_parameters(n_poses: int) -> RansacParameter:
    """
    Parameters used by estimate_tool_tip when params is None.

    Threshold in tracker units (mm for most optical trackers). min_inlier scales
    with the pose count, unlike the fixed ToolTipConfig preset used by
    run_tooltip_calibration.
    """
    return RansacParameter(
        threshold=1.0,
        set_size=3,
        min_inlier=max(MIN_POSES + 1, n_poses // 3),
        max_iterations=300,
        stop_on_consensus=False,
        refine=True,
    )


def estimate_tool_tip(
    poses: Sequence[Pose],
    params: Optional[RansacParameter] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    logger: Optional[logging.Logger] = None,
) -> ToolTipResult:
    """
    Robust tool-tip calibration.

    Runs all params.max_iterations unless params.stop_on_consensus is set.

    Returns:
      ToolTipResult; on no consensus num_inliers is 0 and both vectors are NaN.
    """
    poses = list(poses)
    if len(poses) < MIN_POSES:
        raise CardinalityError(f"Tool-tip calibration needs at least {MIN_POSES} poses, got {len(poses)}.")

    if params is None:
        params = default_tooltip_parameters(len(poses))

    result = ransac(poses, ToolTipRansac(), params, rng=rng, seed=seed, logger=logger)
    if not result.success:
        nan = np.full((3,), np.nan)
        return ToolTipResult(nan, nan.copy(), 0, result.inlier_mask)

    model = result.model
    return ToolTipResult(
        world_point=model[0:3].copy(),
        local_offset=model[3:6].copy(),
        num_inliers=result.num_inliers,
        inlier_mask=result.inlier_mask,
    )
