"""
Paired comparison of two gain curves.

Both curves must be fit on the same units with the same resample
draws (same seed, same cluster labels).  Standard errors are then
taken over per-replicate differences, which removes the variance the
two curves share because they are evaluated on the same sample.
"""

from __future__ import annotations

import numpy as np
from loguru import logger

from maq.bootstrap.engine import replicate_std
from maq.core.contracts import check_spend
from maq.core.exceptions import IncompatibleCurvesError
from maq.curve.evaluator import CurveEvaluator, GainEstimate


class CurveComparator:
    """
    Compare two curves on shared bootstrap replicates.

    Usage::

        comparator = CurveComparator(treated_curve, baseline_curve)
        comparator.difference_gain(spend=50.0)
        comparator.integrated_difference(spend=50.0)
    """

    def __init__(self, curve_a: CurveEvaluator, curve_b: CurveEvaluator):
        self.curve_a = curve_a
        self.curve_b = curve_b
        self._check_compatible()

    @property
    def budget(self) -> float:
        """Largest spend at which both curves are defined."""
        return min(self.curve_a.budget, self.curve_b.budget)

    def _check_compatible(self) -> None:
        a, b = self.curve_a, self.curve_b
        if a is b:
            return
        if a.n_units != b.n_units:
            raise IncompatibleCurvesError(
                f"Curves were fit on different sample sizes ({a.n_units} vs {b.n_units})"
            )
        if not a.replicates.is_paired_with(b.replicates):
            raise IncompatibleCurvesError(
                "Curves do not share bootstrap draws; fit both with the same seed, "
                "replicate count and cluster labels"
            )

    def difference_gain(self, spend: float) -> GainEstimate:
        """
        Gain of curve A minus gain of curve B at ``spend``.

        Replicates unusable in either curve are excluded from the
        standard error.
        """
        spend = check_spend(spend, self.budget)
        if self.curve_a is self.curve_b:
            return GainEstimate(0.0, 0.0)

        estimate = self.curve_a.path.gain_at(spend) - self.curve_b.path.gain_at(spend)
        diffs = (
            self.curve_a.replicates.gains_at(spend)
            - self.curve_b.replicates.gains_at(spend)
        )
        return GainEstimate(float(estimate), self._std_err(diffs))

    def integrated_difference(self, spend: float) -> GainEstimate:
        """
        Area between curve A and curve B on ``[0, spend]``.
        """
        spend = check_spend(spend, self.budget)
        if self.curve_a is self.curve_b:
            return GainEstimate(0.0, 0.0)

        estimate = self.curve_a.path.area_to(spend) - self.curve_b.path.area_to(spend)
        diffs = (
            self.curve_a.replicates.areas_to(spend)
            - self.curve_b.replicates.areas_to(spend)
        )
        return GainEstimate(float(estimate), self._std_err(diffs))

    def _std_err(self, diffs: np.ndarray) -> float:
        n_paired = int(np.isfinite(diffs).sum())
        if diffs.size and n_paired < diffs.size:
            logger.debug(
                f"Comparison uses {n_paired} of {diffs.size} replicates usable in both curves"
            )
        return replicate_std(diffs)


def difference_gain(
    curve_a: CurveEvaluator,
    curve_b: CurveEvaluator,
    spend: float,
) -> GainEstimate:
    """Convenience function: ``CurveComparator(curve_a, curve_b).difference_gain(spend)``."""
    return CurveComparator(curve_a, curve_b).difference_gain(spend)


def integrated_difference(
    curve_a: CurveEvaluator,
    curve_b: CurveEvaluator,
    spend: float,
) -> GainEstimate:
    """Convenience function: ``CurveComparator(curve_a, curve_b).integrated_difference(spend)``."""
    return CurveComparator(curve_a, curve_b).integrated_difference(spend)
