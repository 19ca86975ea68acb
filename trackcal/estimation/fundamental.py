"""
trackcal/estimation/fundamental.py

RANSAC instantiation for the fundamental matrix.
Data items are rows [x, y, x', y'] of an (N,4) correspondence array.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from trackcal.errors import CardinalityError, DegenerateConfigurationError
from trackcal.geometry_utils.epipolar import (
    MIN_POINTS_8POINT,
    get_fundamental_matrix,
    point_to_line_distance,
)
from trackcal.geometry_utils.projective import as_points, result_dtype

from .ransac import RansacParameter, ransac


class FundamentalMatrixEstimator:
    def estimate(self, samples: np.ndarray) -> Optional[np.ndarray]:
        samples = np.asarray(samples, dtype=np.float64)
        try:
            return get_fundamental_matrix(samples[:, 0:2], samples[:, 2:4])
        except (CardinalityError, DegenerateConfigurationError):
            return None


class FundamentalMatrixEvaluator:
    """Squared distance of x' to the epipolar line F x."""

    def evaluate(self, F: np.ndarray, datum: np.ndarray) -> float:
        return point_to_line_distance(datum[0:2], datum[2:4], F)


class FundamentalRansac:
    def __init__(self):
        self.estimator = FundamentalMatrixEstimator()
        self.evaluator = FundamentalMatrixEvaluator()


@dataclass
class FundamentalResult:
    F: Optional[np.ndarray]   # (3,3) or None
    num_inliers: int
    inlier_mask: np.ndarray   # (N,) bool

    @property
    def success(self) -> bool:
        return self.F is not None and self.num_inliers > 0


def default_fundamental_parameters(n_points: int) -> RansacParameter:
    """
    Parameters used by estimate_fundamental_matrix_ransac when params is None.
    Threshold is a squared pixel distance; min_inlier is half the correspondences
    (FundamentalConfig keeps a fixed count for config-driven runs).
    """
    return RansacParameter(
        threshold=1.0,
        set_size=MIN_POINTS_8POINT,
        min_inlier=max(MIN_POINTS_8POINT, int(0.5 * n_points)),
        max_iterations=1000,
        stop_on_consensus=True,
        refine=True,
    )


def estimate_fundamental_matrix_ransac(
    from_points: np.ndarray,
    to_points: np.ndarray,
    params: Optional[RansacParameter] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    logger: Optional[logging.Logger] = None,
) -> FundamentalResult:
    """
    Robust fundamental matrix from noisy correspondences.

    Stops as soon as min_inlier is reached (when params.stop_on_consensus is set)
    and re-fits on the whole consensus set.
    """
    dtype = result_dtype(from_points, to_points)
    x1 = as_points(from_points, 2, "from_points")
    x2 = as_points(to_points, 2, "to_points")
    if x1.shape[0] != x2.shape[0]:
        raise CardinalityError(f"from_points and to_points differ in length: {x1.shape[0]} vs {x2.shape[0]}")
    if x1.shape[0] < MIN_POINTS_8POINT:
        raise CardinalityError(f"Need at least {MIN_POINTS_8POINT} correspondences for F, got {x1.shape[0]}.")

    if params is None:
        params = default_fundamental_parameters(x1.shape[0])
    if params.set_size < MIN_POINTS_8POINT:
        raise ValueError(f"set_size must be >= {MIN_POINTS_8POINT} for the 8-point algorithm")

    data = np.hstack([x1, x2])
    result = ransac(data, FundamentalRansac(), params, rng=rng, seed=seed, logger=logger)
    if not result.success:
        return FundamentalResult(None, 0, result.inlier_mask)
    return FundamentalResult(result.model.astype(dtype), result.num_inliers, result.inlier_mask)
