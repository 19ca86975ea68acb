"""
trackcal/errors.py

Errors raised by the top-level calibration entry points.
"""


class CardinalityError(ValueError):
    """Fewer inputs than the estimator needs (or mismatched input lengths)."""


class DegenerateConfigurationError(RuntimeError):
    """Numerically degenerate input: rank-deficient system, failed SVD, point at infinity."""
