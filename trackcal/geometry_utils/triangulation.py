"""
trackcal/geometry_utils/triangulation.py

3D point estimation from two or more calibrated views:
linear DLT (SVD null space) followed by optional Levenberg-Marquardt refinement
of the reprojection error.
"""

from __future__ import annotations

from typing import Sequence, Tuple, Union

import numpy as np
from scipy.optimize import least_squares

from trackcal.errors import CardinalityError, DegenerateConfigurationError

from .projective import as_points, as_projection, point_depths, result_dtype
from .reprojection import reprojection_residuals

# ----------------------------
# Small numeric helpers
# ----------------------------
_EPS_Z = 1e-12
_EPS_W = 1e-12


def _skew(x: float, y: float) -> np.ndarray:
    """[x_h]_x for the homogeneous image point x_h = (x, y, 1)."""
    return np.array([
        [0.0, -1.0, y],
        [1.0, 0.0, -x],
        [-y, x, 0.0],
    ], dtype=np.float64)


def _null_vector(A: np.ndarray) -> np.ndarray:
    """Right singular vector of the smallest singular value."""
    try:
        _, _, Vt = np.linalg.svd(A)
    except np.linalg.LinAlgError as e:
        raise DegenerateConfigurationError("SVD for point reconstruction failed.") from e
    return Vt[-1]


def _dehomogenize(Xh: np.ndarray) -> np.ndarray:
    if not np.isfinite(Xh).all() or abs(Xh[3]) < _EPS_W:
        raise DegenerateConfigurationError("Reconstructed point lies at infinity.")
    return Xh[:3] / Xh[3]


def _check_inputs(projections, points) -> Tuple[np.ndarray, np.ndarray]:
    proj = [as_projection(P, f"projections[{i}]") for i, P in enumerate(projections)]
    pts = as_points(points, 2, "points")
    if len(proj) != pts.shape[0]:
        raise CardinalityError(
            "no equal amount of camera projections and corresponding points "
            f"({len(proj)} vs {pts.shape[0]})."
        )
    if len(proj) < 2:
        raise CardinalityError("3d point estimation requires at least 2 matrices and 2 image points.")
    return np.stack(proj, axis=0), pts


def orient_homogeneous(Xh: np.ndarray, P: np.ndarray) -> np.ndarray:
    """
    Return Xh or -Xh, whichever has a non-negative third row under camera P.

    Only the sign of the homogeneous vector changes. The dehomogenized point
    is the same either way, so this does not move a point behind a camera
    into view; use cheirality_mask for that.
    """
    Xh = np.asarray(Xh, dtype=np.float64)
    s = float(np.asarray(P, dtype=np.float64)[2, :] @ Xh)
    return -Xh if s < 0 else Xh


def triangulate_linear(
    projections: Sequence[np.ndarray],
    points: Union[np.ndarray, Sequence[np.ndarray]],
) -> np.ndarray:
    """
    Linear triangulation from N >= 2 views.

    Each observation contributes the 3x4 block [x_i]_x P_i to a (3N,4) system
    whose null space is the homogeneous point.

    Args:
      projections: N (3,4) projection matrices
      points: (N,2) image observations, one per projection
    Returns:
      X: (3,) float64
    """
    proj, pts = _check_inputs(projections, points)
    n = proj.shape[0]

    A = np.empty((3 * n, 4), dtype=np.float64)
    for i in range(n):
        A[3 * i:3 * i + 3] = _skew(pts[i, 0], pts[i, 1]) @ proj[i]

    Xh = orient_homogeneous(_null_vector(A), proj[0])
    return _dehomogenize(Xh)


def refine_point(
    projections: Sequence[np.ndarray],
    points: Union[np.ndarray, Sequence[np.ndarray]],
    X0: np.ndarray,
    max_iterations: int = 200,
    tolerance: float = 1e-6,
) -> Tuple[np.ndarray, float]:
    """
    Minimize the summed squared reprojection error of one point over all views.

    Returns:
      X: (3,) refined point
      residual: norm of the final (2N,) residual vector
    """
    proj, pts = _check_inputs(projections, points)
    x0 = np.asarray(X0, dtype=np.float64).reshape(3)

    def residuals(p: np.ndarray) -> np.ndarray:
        r = reprojection_residuals(p, proj, pts)
        # keep LM away from the camera planes
        return np.nan_to_num(r, nan=1e6, posinf=1e6, neginf=-1e6)

    res = least_squares(
        residuals,
        x0,
        method="lm",
        max_nfev=int(max_iterations),
        xtol=float(tolerance),
        ftol=float(tolerance),
    )

    X = res.x
    if not np.isfinite(X).all():
        X = x0
    return X, float(np.linalg.norm(residuals(X)))


def get_3d_position(
    projections: Sequence[np.ndarray],
    points: Union[np.ndarray, Sequence[np.ndarray]],
    refine: bool = False,
    return_residual: bool = False,
    max_iterations: int = 200,
    tolerance: float = 1e-6,
):
    """
    Estimate a 3D point from its projections in N >= 2 cameras.

    Args:
      projections: N (3,4) projection matrices
      points: (N,2) observations, same order as projections
      refine: run nonlinear refinement starting from the linear estimate
      return_residual: also return the reprojection residual norm of the result
      max_iterations, tolerance: termination policy of the refinement

    Returns:
      X: (3,) in the precision of the inputs, or (X, residual) with return_residual
    """
    dtype = result_dtype(*projections, points)
    X = triangulate_linear(projections, points)

    if refine:
        X, residual = refine_point(projections, points, X, max_iterations, tolerance)
    elif return_residual:
        residual = float(np.linalg.norm(reprojection_residuals(X, projections, points)))

    X = X.astype(dtype)
    if return_residual:
        return X, residual
    return X


def get_3d_position_pair(
    P1: np.ndarray,
    P2: np.ndarray,
    x: np.ndarray,
    x_: np.ndarray,
) -> np.ndarray:
    """Two-view DLT on the 4x4 system built from both observations."""
    dtype = result_dtype(P1, P2, x, x_)
    P1 = as_projection(P1, "P1")
    P2 = as_projection(P2, "P2")
    x = np.asarray(x, dtype=np.float64).reshape(2)
    x_ = np.asarray(x_, dtype=np.float64).reshape(2)

    A = np.stack([
        x[0] * P1[2] - P1[0],
        x[1] * P1[2] - P1[1],
        x_[0] * P2[2] - P2[0],
        x_[1] * P2[2] - P2[1],
    ], axis=0)

    Xh = orient_homogeneous(_null_vector(A), P1)
    return _dehomogenize(Xh).astype(dtype)


def cheirality_mask(X: np.ndarray, P: np.ndarray) -> np.ndarray:
    """Keep points with positive depth under projection P."""
    X = as_points(X, 3, "X")
    keep = np.zeros((X.shape[0],), dtype=bool)
    finite = np.isfinite(X).all(axis=1)
    if not np.any(finite):
        return keep
    z = point_depths(P, X[finite])
    keep[np.where(finite)[0]] = np.isfinite(z) & (z > _EPS_Z)
    return keep
