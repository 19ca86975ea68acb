from typing import Sequence

import numpy as np

from .projective import as_points, as_projection, project_points


def reprojection_residuals(
    X: np.ndarray,
    projections: Sequence[np.ndarray],
    points_2d,
) -> np.ndarray:
    """
    Stacked reprojection residuals of ONE 3D point observed by several cameras.

    Returns:
      r: (2*N,) float64, [u_0 - x_0, v_0 - y_0, u_1 - x_1, ...]
    """
    Xh = np.append(np.asarray(X, dtype=np.float64).reshape(3), 1.0)
    pts = as_points(points_2d, 2, "points_2d")
    xh = np.stack([as_projection(P) @ Xh for P in projections], axis=0)  # (N,3)
    with np.errstate(divide="ignore", invalid="ignore"):
        uv = xh[:, :2] / xh[:, 2:3]
    return (uv - pts).reshape(-1)


def reprojection_errors(
    X: np.ndarray,
    points_2d: np.ndarray,
    P: np.ndarray,
) -> np.ndarray:
    """
    Pixel distance between each projected X[i] and its observation in camera P.
    Non-finite points or projections give +inf.
    """
    X = as_points(X, 3, "X")
    obs = as_points(points_2d, 2, "points_2d")
    if X.shape[0] != obs.shape[0]:
        raise ValueError(f"X and points_2d differ in length: {X.shape[0]} vs {obs.shape[0]}")

    with np.errstate(invalid="ignore"):
        err = np.linalg.norm(np.asarray(project_points(P, X), dtype=np.float64) - obs, axis=1)
    return np.where(np.isfinite(err), err, np.inf)
