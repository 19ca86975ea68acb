"""
Shared synthetic scenes: a calibrated multi-camera rig looking at a point
cloud near the origin, and pivot-calibration pose sequences.
"""

from dataclasses import dataclass
from typing import List

import numpy as np
import pytest

from trackcal.geometry import Pose, project_points, projection_matrix_from_pose

K_DEFAULT = np.array([
    [800.0, 0.0, 320.0],
    [0.0, 780.0, 240.0],
    [0.0, 0.0, 1.0],
])


@dataclass
class Scene:
    K: np.ndarray
    poses: List[Pose]          # world -> camera
    projections: List[np.ndarray]
    X: np.ndarray              # (N,3) world points
    observations: List[np.ndarray]  # per camera (N,2)


def make_camera(rng: np.random.Generator, distance: float = 10.0) -> Pose:
    """Camera roughly `distance` in front of the origin, small random rotation."""
    rvec = rng.uniform(-0.25, 0.25, size=3)
    t = np.array([rng.uniform(-2.0, 2.0), rng.uniform(-2.0, 2.0), distance])
    return Pose.from_rotvec(rvec, t)


def make_scene(rng: np.random.Generator, n_cameras: int = 2, n_points: int = 30) -> Scene:
    poses = [make_camera(rng) for _ in range(n_cameras)]
    projections = [projection_matrix_from_pose(K_DEFAULT, p) for p in poses]
    X = rng.uniform(-1.0, 1.0, size=(n_points, 3))
    observations = [project_points(P, X) for P in projections]
    return Scene(K_DEFAULT.copy(), poses, projections, X, observations)


def make_pivot_poses(
    rng: np.random.Generator,
    world_point: np.ndarray,
    local_offset: np.ndarray,
    n: int,
    noise: float = 0.0,
) -> List[Pose]:
    poses = []
    for _ in range(n):
        R = Pose.from_rotvec(rng.uniform(-0.6, 0.6, size=3), np.zeros(3)).R
        t = world_point - R @ local_offset + rng.normal(0.0, noise, size=3)
        poses.append(Pose(R, t))
    return poses


def make_slipped_poses(
    rng: np.random.Generator,
    world_point: np.ndarray,
    local_offset: np.ndarray,
    n: int,
) -> List[Pose]:
    """Poses whose implied tip lies 20-60 units away from the pivot."""
    poses = []
    for _ in range(n):
        R = Pose.from_rotvec(rng.uniform(-0.6, 0.6, size=3), np.zeros(3)).R
        direction = rng.normal(size=3)
        direction /= np.linalg.norm(direction)
        t = world_point - R @ local_offset + direction * rng.uniform(20.0, 60.0)
        poses.append(Pose(R, t))
    return poses


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def stereo_scene(rng):
    return make_scene(rng, n_cameras=2, n_points=30)


@pytest.fixture
def multi_scene(rng):
    return make_scene(rng, n_cameras=4, n_points=10)


@pytest.fixture
def tip_truth():
    return np.array([12.0, -4.0, 150.0]), np.array([0.5, -1.5, 120.0])
