from __future__ import annotations

from typing import Union

import numpy as np

from .pose import Pose


def result_dtype(*arrays) -> np.dtype:
    """float32 if every floating input is float32, float64 otherwise."""
    dtypes = [np.asarray(a).dtype for a in arrays]
    floats = [d for d in dtypes if np.issubdtype(d, np.floating)]
    if floats and all(d == np.float32 for d in floats):
        return np.dtype(np.float32)
    return np.dtype(np.float64)


def as_points(points, dim: int, name: str = "points") -> np.ndarray:
    """Coerce a sequence of `dim`-vectors into an (N,dim) float64 array."""
    arr = np.asarray(points, dtype=np.float64)
    if arr.ndim == 1 and arr.size == dim:
        arr = arr.reshape(1, dim)
    if arr.ndim != 2 or arr.shape[1] != dim:
        if arr.size == 0:
            return np.zeros((0, dim), dtype=np.float64)
        raise ValueError(f"{name} must be (N,{dim}), got {arr.shape}")
    return arr


def as_projection(P, name: str = "P") -> np.ndarray:
    P = np.asarray(P, dtype=np.float64)
    if P.shape != (3, 4):
        raise ValueError(f"{name} must be (3,4), got {P.shape}")
    return P


def projection_matrix(K: np.ndarray, R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Compute the 3x4 projection matrix P = K [R | t].
    Args:
        K: (3,3) intrinsic matrix
        R: (3,3) rotation matrix
        t: (3,) or (3,1) translation vector
    Returns:
        P: (3,4) projection matrix
    """

    K = np.asarray(K, np.float64)
    R = np.asarray(R, np.float64)
    t = np.asarray(t, np.float64).reshape(3, 1)

    if K.shape != (3, 3):
        raise ValueError(f"K must be (3,3), got {K.shape}")
    if R.shape != (3, 3):
        raise ValueError(f"R must be (3,3), got {R.shape}")

    return K @ np.hstack([R, t])  # 3x4


def projection_matrix_from_pose(K: np.ndarray, pose: Pose) -> np.ndarray:
    """P = K [R | t] for a world->camera pose."""
    return projection_matrix(K, pose.R, pose.t)


def camera_center(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Compute camera center in world coordinates from extrinsics R and t.
    Args:
        R: (3,3) rotation matrix
        t: (3,1) translation vector
    Returns:
        C: (3,) camera center in world coordinates"""
    # world->cam: Xc = R X + t  => C = -R^T t
    R = np.asarray(R, np.float64)
    t = np.asarray(t, np.float64).reshape(3, 1)
    return (-R.T @ t).reshape(3)


def _homogenize_for(P: np.ndarray, pts: np.ndarray) -> np.ndarray:
    n, d = pts.shape
    if P.shape == (3, 3):
        if d != 2:
            raise ValueError(f"A (3,3) projection only maps 2D points, got dimension {d}")
        return np.hstack([pts, np.ones((n, 1))])

    if d == 2:
        # point on the z=0 plane
        return np.hstack([pts, np.zeros((n, 1)), np.ones((n, 1))])
    if d == 3:
        return np.hstack([pts, np.ones((n, 1))])
    if d == 4:
        return pts
    raise ValueError(f"Only 2D, 3D or 4D points can be projected, got dimension {d}")


def project_points(
    P: np.ndarray,
    points: Union[np.ndarray, list],
) -> np.ndarray:
    """
    Project points with a (3,4) projection matrix or a (3,3) homography.

    Point representations accepted with a (3,4) matrix:
      - 2D: [x, y] is taken as [x, y, 0, 1]
      - 3D: [x, y, z] is taken as [x, y, z, 1]
      - 4D: homogeneous, used as is
    A (3,3) matrix only accepts 2D points ([x, y, 1]).

    Returns:
      (N,2) image points, or (2,) when a single vector was passed.
      Points at infinity project to +/-inf or NaN.
    """
    dtype = result_dtype(P, points)
    P = np.asarray(P, dtype=np.float64)
    if P.shape not in ((3, 3), (3, 4)):
        raise ValueError(f"Expected a (3,4) or (3,3) projection matrix, got {P.shape}")

    pts = np.asarray(points, dtype=np.float64)
    single = pts.ndim == 1
    if single:
        pts = pts.reshape(1, -1)
    if pts.ndim != 2:
        raise ValueError(f"points must be a vector or (N,D) array, got {pts.shape}")

    Xh = _homogenize_for(P, pts)
    xh = Xh @ P.T  # (N,3)
    with np.errstate(divide="ignore", invalid="ignore"):
        x = xh[:, :2] / xh[:, 2:3]

    x = x.astype(dtype)
    return x[0] if single else x


def point_depths(P: np.ndarray, X: np.ndarray) -> np.ndarray:
    """
    Value of the projection's third row on each homogeneous point [X, 1].
    Positive means the point is in front of the camera (for det(M) > 0).
    """
    P = as_projection(P)
    X = as_points(X, 3, "X")
    return np.hstack([X, np.ones((X.shape[0], 1))]) @ P[2, :]
