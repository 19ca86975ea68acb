"""
trackcal/estimation/ransac.py

Generic RANSAC over pluggable estimator/evaluator strategies.

A strategy is any object with
    estimator.estimate(samples) -> model or None
    evaluator.evaluate(model, datum) -> float (nonnegative residual)

Usage:
    params = RansacParameter(threshold=0.5, set_size=3, min_inlier=10, max_iterations=200)
    result = ransac(poses, ToolTipRansac(), params, seed=0)
    if result.num_inliers == 0:
        ...  # no consensus
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Protocol, Sequence, TypeVar

import numpy as np

D = TypeVar("D")
M = TypeVar("M")

_log = logging.getLogger(__name__)


class ModelEstimator(Protocol[D, M]):
    def estimate(self, samples: Sequence[D]) -> Optional[M]:
        """Model from a sample, or None when the sample is degenerate."""
        ...


class ModelEvaluator(Protocol[M, D]):
    def evaluate(self, model: M, datum: D) -> float:
        ...


class RansacStrategy(Protocol[D, M]):
    estimator: ModelEstimator[D, M]
    evaluator: ModelEvaluator[M, D]


@dataclass(frozen=True)
class RansacParameter:
    """
    threshold: inlier iff residual <= threshold
    set_size: number of data drawn per iteration
    min_inlier: smallest consensus accepted as a model
    max_iterations: iteration cap
    stop_on_consensus: stop as soon as the best consensus reaches min_inlier
    refine: re-estimate the best model on all of its inliers
    """
    threshold: float
    set_size: int
    min_inlier: int
    max_iterations: int
    stop_on_consensus: bool = False
    refine: bool = True

    def __post_init__(self):
        if not (self.threshold >= 0):
            raise ValueError(f"threshold must be >= 0, got {self.threshold}")
        if self.set_size < 1:
            raise ValueError(f"set_size must be >= 1, got {self.set_size}")
        if self.min_inlier < 1:
            raise ValueError(f"min_inlier must be >= 1, got {self.min_inlier}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")

    @classmethod
    def from_confidence(
        cls,
        threshold: float,
        set_size: int,
        min_inlier: int,
        outlier_ratio: float = 0.5,
        confidence: float = 0.99,
        **kwargs: Any,
    ) -> "RansacParameter":
        """Iterations k = log(1-p) / log(1 - (1-e)^s)."""
        return cls(
            threshold=threshold,
            set_size=set_size,
            min_inlier=min_inlier,
            max_iterations=required_iterations(set_size, outlier_ratio, confidence),
            **kwargs,
        )


def required_iterations(set_size: int, outlier_ratio: float, confidence: float) -> int:
    if not (0.0 <= outlier_ratio < 1.0):
        raise ValueError(f"outlier_ratio must be in [0,1), got {outlier_ratio}")
    if not (0.0 < confidence < 1.0):
        raise ValueError(f"confidence must be in (0,1), got {confidence}")

    good = (1.0 - outlier_ratio) ** set_size
    if good >= 1.0:
        return 1
    if good <= 0.0:
        raise ValueError("outlier_ratio too high for the given set_size")
    return max(1, int(math.ceil(math.log(1.0 - confidence) / math.log(1.0 - good))))


@dataclass
class RansacResult(Generic[M]):
    model: Optional[M]
    num_inliers: int
    inlier_mask: np.ndarray
    iterations: int = 0
    residuals: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def success(self) -> bool:
        return self.model is not None and self.num_inliers > 0


def _subset(data, idx: np.ndarray):
    if isinstance(data, np.ndarray):
        return data[idx]
    return [data[int(i)] for i in idx]


def _score(evaluator, model, data, threshold: float):
    residuals = np.fromiter(
        (evaluator.evaluate(model, d) for d in data),
        dtype=np.float64,
        count=len(data),
    )
    # NaN residuals never count as inliers
    mask = residuals <= threshold
    return residuals, mask


def _make_rng(seed: Optional[int] = None, rng: Optional[np.random.Generator] = None) -> np.random.Generator:
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def ransac(
    data: Sequence[D],
    strategy: RansacStrategy[D, M],
    params: RansacParameter,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> RansacResult[M]:
    """
    Robustly fit a model to data containing outliers.

    Ties between equally large consensus sets keep the first one found, so a
    fixed seed (or identically seeded generator) gives identical results.

    Returns:
      RansacResult; model is None and num_inliers is 0 when fewer than
      set_size data were given or no model reached min_inlier.
    """
    n = len(data)
    empty = RansacResult(model=None, num_inliers=0, inlier_mask=np.zeros((n,), dtype=bool))

    if n < params.set_size:
        if logger:
            logger.info(f"RANSAC: {n} data < set_size {params.set_size}, no model")
        return empty

    rng = _make_rng(seed, rng)
    estimator, evaluator = strategy.estimator, strategy.evaluator

    best_model = None
    best_count = 0
    best_mask = empty.inlier_mask
    best_residuals = None
    degenerate = 0
    it = 0

    for it in range(1, params.max_iterations + 1):
        idx = rng.choice(n, size=params.set_size, replace=False)
        model = estimator.estimate(_subset(data, idx))
        if model is None:
            degenerate += 1
            _log.debug(f"iteration {it}: degenerate sample {idx.tolist()}")
            continue

        residuals, mask = _score(evaluator, model, data, params.threshold)
        count = int(mask.sum())
        if count > best_count:
            best_model, best_count, best_mask, best_residuals = model, count, mask, residuals

        if params.stop_on_consensus and best_count >= params.min_inlier:
            break

    if best_model is None or best_count < params.min_inlier:
        if logger:
            logger.info(
                f"RANSAC: no consensus after {it} iterations "
                f"(best={best_count}, required={params.min_inlier}, degenerate={degenerate})"
            )
        empty.iterations = it
        return empty

    if params.refine and best_count > params.set_size:
        refined = estimator.estimate(_subset(data, np.flatnonzero(best_mask)))
        if refined is not None:
            residuals, mask = _score(evaluator, refined, data, params.threshold)
            if int(mask.sum()) >= best_count:
                best_model, best_count, best_mask, best_residuals = refined, int(mask.sum()), mask, residuals

    if logger:
        logger.info(
            f"RANSAC: {best_count}/{n} inliers after {it} iterations (degenerate={degenerate})"
        )

    return RansacResult(
        model=best_model,
        num_inliers=best_count,
        inlier_mask=best_mask,
        iterations=it,
        residuals=best_residuals,
    )
