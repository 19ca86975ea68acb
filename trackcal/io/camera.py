"""
trackcal/io/camera.py

Readers for the inputs of the calibration entry points (intrinsics,
projection and fundamental matrices, image points, tracked poses) and the
decomposition of a projection matrix into intrinsics and a pose.

Every reader goes through `load_data`, so .txt, .json and .yaml files are
accepted alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from trackcal.geometry_utils.pose import Pose

from .parsing import extract_float_rows, extract_floats, load_data

PathLike = Union[str, Path]


@dataclass(frozen=True)
class DecomposedCamera:
    K: np.ndarray       # (3,3), positive diagonal, K[2,2] == 1
    pose: Pose          # world -> camera
    center: np.ndarray  # (3,) camera center in world coordinates


def read_intrinsics(path: PathLike) -> np.ndarray:
    """3x3 K; JSON/YAML may also give it as {fx, fy, cx, cy}."""
    obj = load_data(path)
    if isinstance(obj, Mapping) and all(k in obj for k in ("fx", "fy", "cx", "cy")):
        K = np.array([
            [float(obj["fx"]), 0.0, float(obj["cx"])],
            [0.0, float(obj["fy"]), float(obj["cy"])],
            [0.0, 0.0, 1.0],
        ])
    else:
        K = _decode_matrix(obj, ("K", "intrinsics"), (3, 3), path)

    if abs(K[2, 2] - 1.0) > 1e-6:
        raise ValueError(f"Expected K[2,2] == 1 in {path}, got {K[2, 2]}")
    if K[0, 0] <= 0 or K[1, 1] <= 0:
        raise ValueError(f"Focal lengths must be positive in {path}, got {K[0, 0]}, {K[1, 1]}")
    return K


def read_projection_matrix(path: PathLike) -> np.ndarray:
    return _decode_matrix(load_data(path), ("P", "projection"), (3, 4), path)


def read_fundamental_matrix(path: PathLike) -> np.ndarray:
    return _decode_matrix(load_data(path), ("F", "fundamental"), (3, 3), path)


def read_points_2d(path: PathLike) -> np.ndarray:
    """
    (N,2) image points: text rows "x y", or JSON/YAML [[x, y], ...] / {"points": [...]}.
    Extra columns are ignored.
    """
    obj = load_data(path)
    if isinstance(obj, str):
        rows = extract_float_rows(obj)
    elif isinstance(obj, Mapping):
        rows = obj.get("points", [])
    else:
        rows = obj

    if any(len(r) < 2 for r in rows):
        raise ValueError(f"Every point in {path} needs two coordinates.")
    pts = np.array([[float(r[0]), float(r[1])] for r in rows], dtype=np.float64).reshape(-1, 2)
    if not np.isfinite(pts).all():
        raise ValueError(f"Non-finite point coordinates in {path}")
    return pts


def read_poses(path: PathLike) -> List[Pose]:
    """
    Tracked marker poses, one per recorded sample.

    Text files hold one pose per line as "qx qy qz qw tx ty tz".
    JSON/YAML files hold a list (optionally under "poses") whose entries are
    either such a 7-number list or a mapping with "t" and one of
    "q" (xyzw quaternion), "rvec" (rotation vector) or "R" (3x3).
    """
    obj = load_data(path)
    if isinstance(obj, str):
        entries: Sequence[Any] = extract_float_rows(obj)
    elif isinstance(obj, Mapping):
        entries = obj.get("poses", [])
    else:
        entries = obj

    poses = []
    for i, entry in enumerate(entries):
        try:
            poses.append(_decode_pose(entry))
        except ValueError as e:
            raise ValueError(f"{path}: pose {i}: {e}") from e
    return poses


def decompose_projection_matrix(P: np.ndarray) -> DecomposedCamera:
    """
    Split P ~ K [R | t] into K, the world->camera pose and the camera center.

    OpenCV's RQ decomposition may return K with negative diagonal entries;
    those signs are moved into R so that K has a positive diagonal.
    """
    P = np.asarray(P, dtype=np.float64)
    if P.shape != (3, 4):
        raise ValueError(f"P must be (3,4), got {P.shape}")

    K, R, Ch = cv2.decomposeProjectionMatrix(P)[:3]
    D = np.diag(np.where(np.diag(K) < 0, -1.0, 1.0))
    K = K @ D
    R = D @ R

    if abs(Ch[3, 0]) < 1e-12:
        raise ValueError("P has its camera center at infinity.")
    C = Ch[:3, 0] / Ch[3, 0]

    # P is defined up to sign
    if np.linalg.det(R) < 0:
        R = -R

    return DecomposedCamera(K=K / K[2, 2], pose=Pose(R, -R @ C), center=C)


def _decode_pose(entry: Any) -> Pose:
    if not isinstance(entry, Mapping):
        vals = [float(v) for v in entry]
        if len(vals) != 7:
            raise ValueError(f"expected 7 numbers (qx qy qz qw tx ty tz), got {len(vals)}")
        return Pose.from_quaternion(vals[:4], vals[4:])

    t = _first(entry, ("t", "translation"))
    if t is None:
        raise ValueError("missing translation 't'")

    q = _first(entry, ("q", "quaternion"))
    if q is not None:
        return Pose.from_quaternion(q, t)
    if "rvec" in entry:
        return Pose.from_rotvec(entry["rvec"], t)
    if "R" in entry:
        return Pose(_reshape(entry["R"], (3, 3)), t)
    raise ValueError("missing rotation ('q', 'rvec' or 'R')")


def _decode_matrix(obj: Any, keys: Tuple[str, ...], shape: Tuple[int, int], path: PathLike) -> np.ndarray:
    """
    Matrix from raw text (first rows*cols numbers), a mapping holding one of
    `keys` (directly or under "camera"), or a nested list.
    """
    if isinstance(obj, str):
        vals = extract_floats(obj)
        n = shape[0] * shape[1]
        if len(vals) < n:
            raise ValueError(f"{path}: expected {n} numbers for a {shape} matrix, got {len(vals)}")
        M = np.array(vals[:n], dtype=np.float64).reshape(shape)
    elif isinstance(obj, Mapping):
        value = _first(obj, keys)
        if value is None and isinstance(obj.get("camera"), Mapping):
            value = _first(obj["camera"], keys)
        if value is None:
            raise ValueError(f"{path}: none of the keys {keys} found")
        M = _reshape(value, shape)
    else:
        M = _reshape(obj, shape)

    if not np.isfinite(M).all():
        raise ValueError(f"{path}: matrix contains non-finite values")
    return M


def _first(obj: Mapping, keys: Sequence[str]) -> Optional[Any]:
    for k in keys:
        if k in obj:
            return obj[k]
    return None


def _reshape(value: Any, shape: Tuple[int, int]) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.size != shape[0] * shape[1]:
        raise ValueError(f"expected {shape[0] * shape[1]} values for a {shape} matrix, got {arr.size}")
    return arr.reshape(shape)
