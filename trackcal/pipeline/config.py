"""
trackcal/pipeline/config.py

All configuration dataclasses for the calibration pipeline.
Defaults of config-driven runs (run_* and scripts/run_calibration.py) live here.
The RANSAC presets use a fixed min_inlier. Library calls made with params=None
use default_tooltip_parameters / default_fundamental_parameters instead, which
scale min_inlier with the input size.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional, Union

from trackcal.estimation.ransac import RansacParameter
from trackcal.io.parsing import load_data


@dataclass
class RansacConfig:
    """Parameters for one RANSAC run."""
    threshold: float = 1.0                 # Inlier iff residual <= threshold
    set_size: int = 3                      # Samples drawn per iteration
    min_inlier: int = 3                    # Smallest accepted consensus
    max_iterations: int = 300              # Iteration cap
    stop_on_consensus: bool = False        # Early stop once min_inlier is reached
    refine: bool = True                    # Re-fit on all inliers of the best model
    seed: Optional[int] = None             # None = fresh entropy every run

    # Derive max_iterations from an expected outlier ratio instead
    outlier_ratio: Optional[float] = None
    confidence: float = 0.99

    def to_parameters(self) -> RansacParameter:
        if self.outlier_ratio is not None:
            return RansacParameter.from_confidence(
                threshold=self.threshold,
                set_size=self.set_size,
                min_inlier=self.min_inlier,
                outlier_ratio=self.outlier_ratio,
                confidence=self.confidence,
                stop_on_consensus=self.stop_on_consensus,
                refine=self.refine,
            )
        return RansacParameter(
            threshold=self.threshold,
            set_size=self.set_size,
            min_inlier=self.min_inlier,
            max_iterations=self.max_iterations,
            stop_on_consensus=self.stop_on_consensus,
            refine=self.refine,
        )


@dataclass
class ToolTipConfig:
    """Tool-tip calibration. Threshold in tracker units (usually mm)."""
    ransac: RansacConfig = field(default_factory=lambda: RansacConfig(
        threshold=1.0,
        set_size=3,
        min_inlier=10,
        max_iterations=300,
        stop_on_consensus=False,           # keep the best of all iterations
    ))


@dataclass
class FundamentalConfig:
    """Fundamental matrix estimation. Threshold is a squared pixel distance."""
    step_size: int = 1                     # Use every step_size-th correspondence
    use_ransac: bool = False
    ransac: RansacConfig = field(default_factory=lambda: RansacConfig(
        threshold=1.0,
        set_size=8,
        min_inlier=16,
        max_iterations=1000,
        stop_on_consensus=True,            # stop at the first sufficient consensus
    ))


@dataclass
class TriangulationConfig:
    """Multi-view point estimation."""
    refine: bool = False                   # Levenberg-Marquardt after DLT
    max_iterations: int = 200              # Refinement iteration cap
    tolerance: float = 1e-6                # Refinement xtol/ftol


@dataclass
class ReconstructionConfig:
    """Two-view correspondence + reconstruction."""
    max_cost: Optional[float] = None       # Squared epipolar distance gate (None = accept all matches)


@dataclass
class CalibrationConfig:
    """
    Master configuration.

    Usage:
        config = CalibrationConfig()
        config.tooltip.ransac.threshold = 0.5
        config = CalibrationConfig.from_file("calib.yaml")
    """
    tooltip: ToolTipConfig = field(default_factory=ToolTipConfig)
    fundamental: FundamentalConfig = field(default_factory=FundamentalConfig)
    triangulation: TriangulationConfig = field(default_factory=TriangulationConfig)
    reconstruction: ReconstructionConfig = field(default_factory=ReconstructionConfig)

    # Logging
    verbose: bool = True

    @classmethod
    def from_dict(cls, d: dict) -> "CalibrationConfig":
        """Create config from dictionary (e.g., loaded from YAML/JSON)."""
        tooltip_dict = dict(d.get("tooltip", {}))
        if "ransac" in tooltip_dict:
            tooltip_dict["ransac"] = RansacConfig(**tooltip_dict["ransac"])

        fundamental_dict = dict(d.get("fundamental", {}))
        if "ransac" in fundamental_dict:
            fundamental_dict["ransac"] = RansacConfig(**fundamental_dict["ransac"])

        return cls(
            tooltip=ToolTipConfig(**tooltip_dict),
            fundamental=FundamentalConfig(**fundamental_dict),
            triangulation=TriangulationConfig(**d.get("triangulation", {})),
            reconstruction=ReconstructionConfig(**d.get("reconstruction", {})),
            verbose=d.get("verbose", True),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "CalibrationConfig":
        obj = load_data(path)
        if not isinstance(obj, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        return cls.from_dict(obj)

    def to_dict(self) -> dict:
        """Convert config to dictionary (for saving to YAML/JSON)."""
        return asdict(self)


# ============================================================
# PRESET CONFIGURATIONS
# ============================================================

def get_default_config() -> CalibrationConfig:
    return CalibrationConfig()


def get_tooltip_config() -> CalibrationConfig:
    """Pivot calibration with a noisy optical tracker (sub-millimetre jitter, slipping tip)."""
    config = CalibrationConfig(
        tooltip=ToolTipConfig(
            ransac=RansacConfig(
                threshold=2.0,
                set_size=3,
                min_inlier=20,
                max_iterations=500,
            ),
        ),
    )
    return config


def get_stereo_config() -> CalibrationConfig:
    """Calibrated stereo rig: robust F, refined triangulation, gated matching."""
    config = CalibrationConfig(
        fundamental=FundamentalConfig(
            use_ransac=True,
            ransac=RansacConfig(
                threshold=1.0,
                set_size=8,
                min_inlier=16,
                outlier_ratio=0.3,
                confidence=0.999,
                stop_on_consensus=True,
            ),
        ),
        triangulation=TriangulationConfig(
            refine=True,
        ),
        reconstruction=ReconstructionConfig(
            max_cost=4.0,
        ),
    )
    return config
