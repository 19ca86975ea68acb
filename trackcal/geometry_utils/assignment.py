"""
trackcal/geometry_utils/assignment.py

Minimum-cost bipartite matching (Munkres / Hungarian) on a P x Q cost matrix.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.optimize import linear_sum_assignment


def _finite_costs(cost: np.ndarray) -> np.ndarray:
    """Replace NaN/inf with a penalty larger than any finite entry."""
    finite = np.isfinite(cost)
    if finite.all():
        return cost
    big = float(np.max(np.abs(cost[finite]))) if np.any(finite) else 1.0
    penalty = (big + 1.0) * max(cost.shape) * 10.0
    out = cost.copy()
    out[~finite] = penalty
    return out


def row_match_list(
    cost: np.ndarray,
    max_cost: Optional[float] = None,
) -> np.ndarray:
    """
    Assign every row to at most one column minimizing the summed cost.

    Args:
      cost: (P,Q) cost matrix, rectangular allowed
      max_cost: optional gate, assignments with a larger cost are dropped

    Returns:
      match: (P,) int64, match[i] is the column of row i, or Q when row i is unmatched
    """
    cost = np.asarray(cost, dtype=np.float64)
    if cost.ndim != 2:
        raise ValueError(f"cost must be 2D, got {cost.shape}")

    n_rows, n_cols = cost.shape
    match = np.full((n_rows,), n_cols, dtype=np.int64)
    if n_rows == 0 or n_cols == 0:
        return match

    rows, cols = linear_sum_assignment(_finite_costs(cost))
    match[rows] = cols

    if max_cost is not None:
        assigned = match < n_cols
        too_far = np.zeros_like(assigned)
        too_far[assigned] = ~(cost[assigned, match[assigned]] <= float(max_cost))
        match[too_far] = n_cols

    return match
