"""
trackcal/geometry_utils/pose.py

Rigid body transform used for tracked tool poses and camera extrinsics.
A pose maps points from its local frame into the reference frame:
    p_ref = R @ p_local + t
"""

from __future__ import annotations

from typing import Union

import cv2
import numpy as np
from scipy.spatial.transform import Rotation


def _frozen(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=np.float64)
    a.setflags(write=False)
    return a


class Pose:
    """
    Immutable rotation + translation.

    Usage:
        pose = Pose.from_quaternion([0, 0, 0, 1], [0.1, 0.0, 0.5])
        tip_world = pose * np.array([0.0, 0.0, 0.12])
        relative = cam2 * cam1.inverse()
    """

    __slots__ = ("_R", "_t")

    def __init__(self, R: np.ndarray, t: np.ndarray):
        R = np.asarray(R, dtype=np.float64)
        t = np.asarray(t, dtype=np.float64).reshape(-1)
        if R.shape != (3, 3):
            raise ValueError(f"R must be (3,3), got {R.shape}")
        if t.shape != (3,):
            raise ValueError(f"t must have 3 elements, got {t.shape}")
        if not (np.isfinite(R).all() and np.isfinite(t).all()):
            raise ValueError("Pose contains non-finite values.")
        self._R = _frozen(R)
        self._t = _frozen(t)

    # -------------------------
    # Constructors
    # -------------------------

    @classmethod
    def identity(cls) -> "Pose":
        return cls(np.eye(3), np.zeros(3))

    @classmethod
    def from_quaternion(cls, q_xyzw, t) -> "Pose":
        """Quaternion in scalar-last (x, y, z, w) order, normalized on the way in."""
        q = np.asarray(q_xyzw, dtype=np.float64).reshape(-1)
        if q.shape != (4,):
            raise ValueError(f"Quaternion must have 4 elements, got {q.shape}")
        if np.linalg.norm(q) < 1e-12:
            raise ValueError("Quaternion has zero norm.")
        return cls(Rotation.from_quat(q).as_matrix(), t)

    @classmethod
    def from_rotvec(cls, rvec, t) -> "Pose":
        R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
        return cls(R, t)

    @classmethod
    def from_matrix(cls, M: np.ndarray) -> "Pose":
        """Build from a (3,4) [R|t] or a (4,4) homogeneous matrix."""
        M = np.asarray(M, dtype=np.float64)
        if M.shape not in ((3, 4), (4, 4)):
            raise ValueError(f"Expected (3,4) or (4,4) matrix, got {M.shape}")
        return cls(M[:3, :3], M[:3, 3])

    # -------------------------
    # Accessors
    # -------------------------

    @property
    def R(self) -> np.ndarray:
        return self._R

    @property
    def t(self) -> np.ndarray:
        return self._t

    def quaternion(self) -> np.ndarray:
        """(x, y, z, w)"""
        return Rotation.from_matrix(self._R).as_quat()

    def rotvec(self) -> np.ndarray:
        rvec, _ = cv2.Rodrigues(np.array(self._R))
        return rvec.reshape(3)

    def as_matrix(self) -> np.ndarray:
        return np.hstack([self._R, self._t.reshape(3, 1)])

    def as_homogeneous(self) -> np.ndarray:
        M = np.eye(4)
        M[:3, :4] = self.as_matrix()
        return M

    # -------------------------
    # Operations
    # -------------------------

    def transform(self, points: np.ndarray) -> np.ndarray:
        """Apply to a (3,) point or an (N,3) array of points."""
        p = np.asarray(points, dtype=np.float64)
        if p.shape == (3,):
            return self._R @ p + self._t
        if p.ndim != 2 or p.shape[1] != 3:
            raise ValueError(f"points must be (3,) or (N,3), got {p.shape}")
        return p @ self._R.T + self._t[None, :]

    def inverse(self) -> "Pose":
        Rt = self._R.T
        return Pose(Rt, -Rt @ self._t)

    def __mul__(self, other: Union["Pose", np.ndarray]):
        if isinstance(other, Pose):
            return Pose(self._R @ other._R, self._R @ other._t + self._t)
        return self.transform(other)

    def almost_equal(self, other: "Pose", atol: float = 1e-9) -> bool:
        return bool(np.allclose(self._R, other._R, atol=atol) and np.allclose(self._t, other._t, atol=atol))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Pose):
            return NotImplemented
        return bool(np.array_equal(self._R, other._R) and np.array_equal(self._t, other._t))

    def __hash__(self) -> int:
        return hash((self._R.tobytes(), self._t.tobytes()))

    def __repr__(self) -> str:
        q = np.round(self.quaternion(), 6).tolist()
        t = np.round(self._t, 6).tolist()
        return f"Pose(q_xyzw={q}, t={t})"
