from .ransac import (
    ModelEstimator,
    ModelEvaluator,
    RansacParameter,
    RansacResult,
    RansacStrategy,
    ransac,
    required_iterations,
)
from .tooltip import (
    ToolTipEstimator,
    ToolTipEvaluator,
    ToolTipRansac,
    ToolTipResult,
    estimate_position_3d_6d,
    estimate_tool_tip,
)
from .fundamental import (
    FundamentalMatrixEstimator,
    FundamentalMatrixEvaluator,
    FundamentalRansac,
    FundamentalResult,
    estimate_fundamental_matrix_ransac,
)

__all__ = [
    "ModelEstimator",
    "ModelEvaluator",
    "RansacParameter",
    "RansacResult",
    "RansacStrategy",
    "ransac",
    "required_iterations",
    "ToolTipEstimator",
    "ToolTipEvaluator",
    "ToolTipRansac",
    "ToolTipResult",
    "estimate_position_3d_6d",
    "estimate_tool_tip",
    "FundamentalMatrixEstimator",
    "FundamentalMatrixEvaluator",
    "FundamentalRansac",
    "FundamentalResult",
    "estimate_fundamental_matrix_ransac",
]
