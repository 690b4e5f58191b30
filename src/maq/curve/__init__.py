"""
Curve layer for maq.

Point queries on fitted gain curves and paired comparisons
between curves.
"""

from maq.curve.evaluator import (
    Breakpoints,
    CurveEvaluator,
    GainEstimate,
    fit_curve,
)
from maq.curve.comparator import (
    CurveComparator,
    difference_gain,
    integrated_difference,
)

__all__ = [
    "Breakpoints",
    "CurveEvaluator",
    "GainEstimate",
    "fit_curve",
    "CurveComparator",
    "difference_gain",
    "integrated_difference",
]
