"""
trackcal/geometry_utils/epipolar.py

Fundamental matrix estimation (normalized 8-point algorithm), fundamental matrix
from known camera poses, relative pose recovery, and point-to-epipolar-line distances.

Convention: F maps points x of the first view to epipolar lines l' = F x of the
second view, so x'^T F x = 0 for corresponding points.
"""

from __future__ import annotations

from typing import Sequence, Tuple, Union

import numpy as np

from trackcal.errors import CardinalityError, DegenerateConfigurationError

from .pose import Pose
from .projective import as_points, result_dtype
from .triangulation import get_3d_position_pair

MIN_POINTS_8POINT = 8

_EPS = 1e-12

# Rotation by 90 degrees about z, used to split E into R and t
_W = np.array([
    [0.0, -1.0, 0.0],
    [1.0, 0.0, 0.0],
    [0.0, 0.0, 1.0],
], dtype=np.float64)


def skew(t: np.ndarray) -> np.ndarray:
    t = np.asarray(t, dtype=np.float64).reshape(3)
    return np.array([
        [0.0, -t[2], t[1]],
        [t[2], 0.0, -t[0]],
        [-t[1], t[0], 0.0],
    ], dtype=np.float64)


def _svd(A: np.ndarray):
    try:
        return np.linalg.svd(A)
    except np.linalg.LinAlgError as e:
        raise DegenerateConfigurationError("SVD for fundamental matrix did not converge.") from e


def _normalization_transform(pts: np.ndarray) -> np.ndarray:
    """Similarity moving the centroid to the origin and the mean distance to 1."""
    c = pts.mean(axis=0)
    d = float(np.mean(np.linalg.norm(pts - c[None, :], axis=1)))
    if not np.isfinite(d) or d < _EPS:
        raise DegenerateConfigurationError("All points coincide, cannot normalize.")
    s = 1.0 / d
    return np.array([
        [s, 0.0, -s * c[0]],
        [0.0, s, -s * c[1]],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


def _apply_h(T: np.ndarray, pts: np.ndarray) -> np.ndarray:
    ph = np.hstack([pts, np.ones((pts.shape[0], 1))]) @ T.T
    return ph[:, :2] / ph[:, 2:3]


def enforce_rank2(F: np.ndarray) -> np.ndarray:
    """Closest rank-2 matrix in Frobenius norm (smallest singular value zeroed)."""
    U, S, Vt = _svd(np.asarray(F, dtype=np.float64))
    S = S.copy()
    S[2] = 0.0
    return U @ np.diag(S) @ Vt


def get_fundamental_matrix(
    from_points: Union[np.ndarray, Sequence[np.ndarray]],
    to_points: Union[np.ndarray, Sequence[np.ndarray]],
    step_size: int = 1,
) -> np.ndarray:
    """
    Normalized 8-point algorithm (Hartley & Zisserman, alg. 11.1).

    Args:
      from_points: (N,2) points x of the first view
      to_points: (N,2) points x' of the second view
      step_size: use only every step_size-th correspondence
    Returns:
      F: (3,3) rank-2, unit Frobenius norm, in the precision of the inputs
    """
    dtype = result_dtype(from_points, to_points)
    if int(step_size) < 1:
        raise ValueError(f"step_size must be >= 1, got {step_size}")

    x1 = as_points(from_points, 2, "from_points")
    x2 = as_points(to_points, 2, "to_points")
    if x1.shape[0] != x2.shape[0]:
        raise CardinalityError(
            f"from_points and to_points differ in length: {x1.shape[0]} vs {x2.shape[0]}"
        )

    x1 = x1[::int(step_size)]
    x2 = x2[::int(step_size)]
    n = x1.shape[0]
    if n < MIN_POINTS_8POINT:
        raise CardinalityError(f"Need at least {MIN_POINTS_8POINT} correspondences for F, got {n}.")
    if np.unique(np.hstack([x1, x2]), axis=0).shape[0] < MIN_POINTS_8POINT:
        raise CardinalityError(f"Need at least {MIN_POINTS_8POINT} distinct correspondences for F.")
    if not (np.isfinite(x1).all() and np.isfinite(x2).all()):
        raise ValueError("Correspondences contain non-finite values.")

    T1 = _normalization_transform(x1)
    T2 = _normalization_transform(x2)
    a = _apply_h(T1, x1)
    b = _apply_h(T2, x2)

    u, v = a[:, 0], a[:, 1]
    u_, v_ = b[:, 0], b[:, 1]
    A = np.stack([
        u_ * u, u_ * v, u_,
        v_ * u, v_ * v, v_,
        u, v, np.ones(n),
    ], axis=1)

    _, _, Vt = _svd(A)
    F = enforce_rank2(Vt[-1].reshape(3, 3))

    F = T2.T @ F @ T1
    F /= (np.linalg.norm(F) + _EPS)
    return F.astype(dtype)


def fundamental_matrix_from_poses(
    pose1: Pose,
    pose2: Pose,
    K1: np.ndarray,
    K2: np.ndarray,
) -> np.ndarray:
    """Compute the fundamental matrix F such that x2^T F x1 = 0
    for two cameras given by world->camera poses and intrinsics.
    """
    K1 = np.asarray(K1, np.float64)
    K2 = np.asarray(K2, np.float64)
    if K1.shape != (3, 3) or K2.shape != (3, 3):
        raise ValueError(f"K1/K2 must be (3,3), got {K1.shape} and {K2.shape}")

    rel = pose2 * pose1.inverse()
    E = skew(rel.t) @ rel.R

    F = np.linalg.inv(K2).T @ E @ np.linalg.inv(K1)
    F /= (np.linalg.norm(F) + _EPS)
    return F


def decompose_essential_matrix(E: np.ndarray) -> Tuple[Tuple[np.ndarray, np.ndarray], ...]:
    """The four (R, t) candidates of an essential matrix, t with unit norm."""
    U, _, Vt = _svd(np.asarray(E, dtype=np.float64))
    if np.linalg.det(U) < 0:
        U = -U
    if np.linalg.det(Vt) < 0:
        Vt = -Vt

    Ra = U @ _W @ Vt
    Rb = U @ _W.T @ Vt
    t = U[:, 2]
    return ((Ra, t), (Ra, -t), (Rb, t), (Rb, -t))


def pose_from_fundamental_matrix(
    F: np.ndarray,
    x: np.ndarray,
    x_: np.ndarray,
    K1: np.ndarray,
    K2: np.ndarray,
) -> Pose:
    """
    Pose of the second camera relative to the first one.

    The essential matrix E = K2^T F K1 has four (R, t) decompositions; the one
    that puts the triangulated correspondence x <-> x_ in front of both cameras
    is returned. The translation has unit length (scale is unobservable).

    Returns:
      Pose mapping first-camera coordinates into second-camera coordinates.
    """
    F = np.asarray(F, np.float64)
    K1 = np.asarray(K1, np.float64)
    K2 = np.asarray(K2, np.float64)
    if F.shape != (3, 3):
        raise ValueError(f"F must be (3,3), got {F.shape}")

    E = K2.T @ F @ K1
    P1 = K1 @ np.hstack([np.eye(3), np.zeros((3, 1))])

    for R, t in decompose_essential_matrix(E):
        P2 = K2 @ np.hstack([R, t.reshape(3, 1)])
        try:
            X = get_3d_position_pair(P1, P2, x, x_)
        except DegenerateConfigurationError:
            continue
        z1 = X[2]
        z2 = (R @ X + t)[2]
        if z1 > 0 and z2 > 0:
            return Pose(R, t)

    raise DegenerateConfigurationError("No decomposition of E puts the point in front of both cameras.")


# ----------------------------
# Distances
# ----------------------------

def _homogeneous(p: np.ndarray) -> np.ndarray:
    p = np.asarray(p, dtype=np.float64).reshape(-1)
    if p.shape == (2,):
        return np.append(p, 1.0)
    if p.shape == (3,):
        return p
    raise ValueError(f"Expected a 2- or 3-vector, got {p.shape}")


def point_to_line_distance(from_pt: np.ndarray, to_pt: np.ndarray, F: np.ndarray) -> float:
    """
    Squared distance of `to_pt` to the epipolar line F @ from_pt.
    Accepts inhomogeneous 2-vectors or homogeneous 3-vectors.
    """
    line = np.asarray(F, dtype=np.float64) @ _homogeneous(from_pt)
    term = line @ _homogeneous(to_pt)
    with np.errstate(divide="ignore", invalid="ignore"):
        return float((term * term) / (line[0] ** 2 + line[1] ** 2))


def point_to_line_distances(from_points: np.ndarray, to_points: np.ndarray, F: np.ndarray) -> np.ndarray:
    """Row-aligned version of point_to_line_distance: (N,) for (N,2) inputs."""
    x1 = as_points(from_points, 2, "from_points")
    x2 = as_points(to_points, 2, "to_points")
    if x1.shape[0] != x2.shape[0]:
        raise ValueError(f"Point sets differ in length: {x1.shape[0]} vs {x2.shape[0]}")

    lines = np.hstack([x1, np.ones((x1.shape[0], 1))]) @ np.asarray(F, np.float64).T
    term = np.sum(lines[:, :2] * x2, axis=1) + lines[:, 2]
    with np.errstate(divide="ignore", invalid="ignore"):
        return (term * term) / (lines[:, 0] ** 2 + lines[:, 1] ** 2)


def epipolar_distance(
    p1: np.ndarray,  # (N,2) or (2,) points in image 1
    p2: np.ndarray,  # (N,2) or (2,) points in image 2
    F: np.ndarray,   # (3,3) fundamental matrix
) -> np.ndarray:
    """
    Compute symmetric epipolar distance.

    Returns average of:
    - Distance from p2 to epipolar line of p1
    - Distance from p1 to epipolar line of p2
    """
    single = np.asarray(p1).ndim == 1
    x1 = as_points(p1, 2, "p1")
    x2 = as_points(p2, 2, "p2")
    F = np.asarray(F, np.float64)

    x1h = np.hstack([x1, np.ones((x1.shape[0], 1))])
    x2h = np.hstack([x2, np.ones((x2.shape[0], 1))])

    # Line in image 2 from p1
    l2 = x1h @ F.T
    d2 = np.abs(np.sum(x2h * l2, axis=1)) / (np.sqrt(l2[:, 0] ** 2 + l2[:, 1] ** 2) + _EPS)

    # Line in image 1 from p2
    l1 = x2h @ F
    d1 = np.abs(np.sum(x1h * l1, axis=1)) / (np.sqrt(l1[:, 0] ** 2 + l1[:, 1] ** 2) + _EPS)

    d = (d1 + d2) / 2
    return d[0] if single else d


def epipolar_residuals(F: np.ndarray, from_points: np.ndarray, to_points: np.ndarray) -> np.ndarray:
    """Algebraic residual x'^T F x per correspondence."""
    x1 = as_points(from_points, 2, "from_points")
    x2 = as_points(to_points, 2, "to_points")
    x1h = np.hstack([x1, np.ones((x1.shape[0], 1))])
    x2h = np.hstack([x2, np.ones((x2.shape[0], 1))])
    return np.sum(x2h * (x1h @ np.asarray(F, np.float64).T), axis=1)
