"""
trackcal - geometric calibration primitives for tracking.

    from trackcal import estimate_tool_tip, get_3d_position, reconstruct_3d_points
"""

from trackcal.errors import CardinalityError, DegenerateConfigurationError
from trackcal.estimation import (
    RansacParameter,
    RansacResult,
    ToolTipResult,
    estimate_fundamental_matrix_ransac,
    estimate_tool_tip,
    ransac,
)
from trackcal.geometry import (
    Pose,
    fundamental_matrix_from_poses,
    get_3d_position,
    get_fundamental_matrix,
    pose_from_fundamental_matrix,
    project_points,
    reconstruct_3d_points,
)

__version__ = "0.1.0"

__all__ = [
    "CardinalityError",
    "DegenerateConfigurationError",
    "RansacParameter",
    "RansacResult",
    "ToolTipResult",
    "estimate_fundamental_matrix_ransac",
    "estimate_tool_tip",
    "ransac",
    "Pose",
    "fundamental_matrix_from_poses",
    "get_3d_position",
    "get_fundamental_matrix",
    "pose_from_fundamental_matrix",
    "project_points",
    "reconstruct_3d_points",
]
