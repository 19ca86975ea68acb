"""
trackcal/pipeline/__init__.py

Config-driven calibration runs.

Usage:
    from trackcal.pipeline import CalibrationConfig, run_tooltip_calibration

    config = CalibrationConfig()
    config.tooltip.ransac.threshold = 0.5
    result = run_tooltip_calibration(poses, config=config)
"""

from .config import (
    CalibrationConfig,
    FundamentalConfig,
    RansacConfig,
    ReconstructionConfig,
    ToolTipConfig,
    TriangulationConfig,
    get_default_config,
    get_stereo_config,
    get_tooltip_config,
)
from .runner import (
    FundamentalEstimate,
    fundamental_from_projections,
    run_fundamental_estimation,
    run_reconstruction,
    run_tooltip_calibration,
    run_triangulation,
)

__all__ = [
    # Config
    "CalibrationConfig",
    "FundamentalConfig",
    "RansacConfig",
    "ReconstructionConfig",
    "ToolTipConfig",
    "TriangulationConfig",
    "get_default_config",
    "get_stereo_config",
    "get_tooltip_config",
    # Entry points
    "FundamentalEstimate",
    "fundamental_from_projections",
    "run_fundamental_estimation",
    "run_reconstruction",
    "run_tooltip_calibration",
    "run_triangulation",
]
