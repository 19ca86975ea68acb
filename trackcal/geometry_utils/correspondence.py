"""
trackcal/geometry_utils/correspondence.py

Match two unordered point sets through the epipolar constraint and triangulate
the matched pairs.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ..errors import DegenerateConfigurationError
from .assignment import row_match_list
from .projective import as_points, as_projection, result_dtype
from .triangulation import get_3d_position_pair

_log = logging.getLogger(__name__)


def epipolar_cost_matrix(
    points1: np.ndarray,
    points2: np.ndarray,
    F: np.ndarray,
) -> np.ndarray:
    """
    Cost (i, j) = squared distance of points2[j] to the epipolar line F @ points1[i].

    Returns:
      (P,Q) float64, NaN/inf where the epipolar line is undefined.
    """
    x1 = as_points(points1, 2, "points1")
    x2 = as_points(points2, 2, "points2")
    F = np.asarray(F, dtype=np.float64)
    if F.shape != (3, 3):
        raise ValueError(f"F must be (3,3), got {F.shape}")

    lines = np.hstack([x1, np.ones((x1.shape[0], 1))]) @ F.T              # (P,3)
    term = lines[:, :2] @ x2.T + lines[:, 2:3]                            # (P,Q)
    norm = (lines[:, 0] ** 2 + lines[:, 1] ** 2)[:, None]
    with np.errstate(divide="ignore", invalid="ignore"):
        return (term * term) / norm


def reconstruct_3d_points(
    points1: np.ndarray,
    points2: np.ndarray,
    P1: np.ndarray,
    P2: np.ndarray,
    F: np.ndarray,
    max_cost: Optional[float] = None,
    logger: Optional[logging.Logger] = None,
) -> np.ndarray:
    """
    Reconstruct 3D points from two unmatched 2D point sets.

    1. cost matrix of point-to-epipolar-line distances
    2. minimum-cost assignment (rows of points1 to columns of points2)
    3. two-view triangulation of every matched pair, in row order

    A pair whose rays do not meet at a finite point is dropped like an
    unmatched row instead of failing the whole set.

    Args:
      points1: (P,2) points of the first view
      points2: (Q,2) points of the second view
      P1, P2: (3,4) projection matrices
      F: (3,3) fundamental matrix, points2^T F points1 = 0
      max_cost: optional squared-distance gate on accepted matches

    Returns:
      X: (M,3) with M <= min(P, Q)
    """
    dtype = result_dtype(points1, points2, P1, P2, F)
    x1 = as_points(points1, 2, "points1")
    x2 = as_points(points2, 2, "points2")
    P1 = as_projection(P1, "P1")
    P2 = as_projection(P2, "P2")

    cost = epipolar_cost_matrix(x1, x2, F)
    match = row_match_list(cost, max_cost=max_cost)

    n_cols = x2.shape[0]
    X = []
    skipped = 0
    for i, j in enumerate(match):
        if j >= n_cols:
            continue
        try:
            X.append(get_3d_position_pair(P1, P2, x1[i], x2[j]))
        except DegenerateConfigurationError:
            # parallel rays (point at infinity): treated like an unmatched row
            _log.debug(f"Pair ({i}, {j}) has no finite intersection, skipped")
            skipped += 1

    if logger:
        logger.info(
            f"Reconstruction: {len(X)} points from {x1.shape[0]}x{n_cols} points"
            f" ({skipped} degenerate pairs skipped)"
        )

    if not X:
        return np.zeros((0, 3), dtype=dtype)
    return np.stack(X, axis=0).astype(dtype)
