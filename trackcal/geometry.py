# trackcal/geometry.py
"""
Public geometry API.

Internals live in trackcal/geometry_utils/.
Import from here in the rest of the codebase to avoid deep-path imports.
"""

from trackcal.geometry_utils.assignment import row_match_list
from trackcal.geometry_utils.correspondence import epipolar_cost_matrix, reconstruct_3d_points
from trackcal.geometry_utils.epipolar import (
    enforce_rank2,
    epipolar_distance,
    epipolar_residuals,
    fundamental_matrix_from_poses,
    get_fundamental_matrix,
    point_to_line_distance,
    point_to_line_distances,
    pose_from_fundamental_matrix,
)
from trackcal.geometry_utils.pose import Pose
from trackcal.geometry_utils.projective import (
    camera_center,
    point_depths,
    project_points,
    projection_matrix,
    projection_matrix_from_pose,
)
from trackcal.geometry_utils.reprojection import reprojection_errors
from trackcal.geometry_utils.triangulation import (
    cheirality_mask,
    get_3d_position,
    get_3d_position_pair,
    refine_point,
    triangulate_linear,
)

__all__ = [
    "Pose",
    "row_match_list",
    "epipolar_cost_matrix",
    "reconstruct_3d_points",
    "enforce_rank2",
    "epipolar_distance",
    "epipolar_residuals",
    "fundamental_matrix_from_poses",
    "get_fundamental_matrix",
    "point_to_line_distance",
    "point_to_line_distances",
    "pose_from_fundamental_matrix",
    "camera_center",
    "point_depths",
    "project_points",
    "projection_matrix",
    "projection_matrix_from_pose",
    "reprojection_errors",
    "cheirality_mask",
    "get_3d_position",
    "get_3d_position_pair",
    "refine_point",
    "triangulate_linear",
]
