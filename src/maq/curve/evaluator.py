"""
Queryable gain curves.

A ``CurveEvaluator`` wraps one full-sample solution path and its
bootstrap replicates.  It answers point queries (expected gain with
a standard error, implied assignment) at any spend in
``[0, budget]`` and exposes the breakpoints for external plotting.

``fit_curve`` is the entry point that validates the caller's arrays,
builds the path and runs the bootstrap.
"""

from __future__ import annotations

import threading
from typing import Any, Literal, NamedTuple

import numpy as np
import pandas as pd
from loguru import logger

from maq.bootstrap.engine import BootstrapEngine, ReplicateSet
from maq.config import MaqConfig, get_config
from maq.core.contracts import FitParams, check_spend, validate_arrays, validate_clusters
from maq.core.exceptions import InvalidInputError
from maq.path.builder import PathBuilder, SolutionPath


class GainEstimate(NamedTuple):
    """Point estimate with its bootstrap standard error."""

    estimate: float
    std_err: float

    def confidence_interval(self, level: float = 0.95) -> tuple[float, float]:
        """Normal-approximation interval; NaN bounds when the standard error is unknown."""
        from scipy import stats

        if not 0 < level < 1:
            raise InvalidInputError("level must be in (0, 1)", field="level")
        z = float(stats.norm.ppf(0.5 + level / 2))
        return self.estimate - z * self.std_err, self.estimate + z * self.std_err


class Breakpoints(NamedTuple):
    """Breakpoint arrays of a curve (read-only)."""

    spend: np.ndarray
    gain: np.ndarray
    ratio: np.ndarray


class CurveEvaluator:
    """
    Gain curve fitted on one dataset.

    Example:
        >>> curve = fit_curve(reward, cost, budget=100.0, n_bootstrap=200, seed=1)
        >>> curve.average_gain(50.0)
        GainEstimate(estimate=..., std_err=...)
        >>> curve.predict(50.0).shape
        (n, K)
    """

    def __init__(self, path: SolutionPath, replicates: ReplicateSet):
        self._path = path
        self._replicates = replicates

        spend, gain, ratio = path.breakpoints()
        for arr in (spend, gain, ratio):
            arr.setflags(write=False)
        self._breakpoints = Breakpoints(spend, gain, ratio)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def path(self) -> SolutionPath:
        """Full per-action path."""
        return self._path

    @property
    def breakpoints(self) -> Breakpoints:
        return self._breakpoints

    @property
    def replicates(self) -> ReplicateSet:
        return self._replicates

    @property
    def budget(self) -> float:
        return self._path.budget

    @property
    def n_units(self) -> int:
        return self._path.n_units

    @property
    def n_options(self) -> int:
        return self._path.n_options

    @property
    def complete(self) -> bool:
        """True when every admissible action fits within the budget."""
        return self._path.complete

    @property
    def seed(self) -> int:
        return self._replicates.seed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def average_gain(self, spend: float) -> GainEstimate:
        """
        Expected gain at ``spend``.

        Interpolates the per-action path, so inside an interval of tied
        ratios the gain is that of the fractional assignment ``predict``
        returns at the same spend.

        Args:
            spend: Spend level in ``[0, budget]``.

        Returns:
            GainEstimate; ``std_err`` is NaN with fewer than two usable
            replicates.
        """
        spend = check_spend(spend, self.budget)
        return GainEstimate(
            estimate=self._path.gain_at(spend),
            std_err=self._replicates.std_err(spend),
        )

    def predict(
        self,
        spend: float,
        kind: Literal["matrix", "vector"] = "matrix",
    ) -> np.ndarray:
        """
        Assignment implied by the path at ``spend``.

        Args:
            spend: Spend level in ``[0, budget]``.
            kind:  "matrix" gives an (n, K) array of assignment weights;
                   at most one unit holds fractional weights (every unit
                   for baseline curves).  "vector" gives each unit's
                   fully-funded option, -1 for none.

        Returns:
            numpy array as described above.
        """
        if kind not in ("matrix", "vector"):
            raise InvalidInputError(f"Unknown prediction kind: {kind}", field="kind")
        spend = check_spend(spend, self.budget)

        path = self._path
        n, k = path.n_units, path.n_options

        # Actions [0, n_full) are fully funded at this spend.
        n_full = int(np.searchsorted(path.spend, spend, side="right")) - 1
        frac = 0.0
        if n_full < path.n_actions:
            lo, hi = path.spend[n_full], path.spend[n_full + 1]
            frac = (spend - lo) / (hi - lo)

        if path.is_baseline:
            current = int(path.option[n_full - 1]) if n_full > 0 else -1
            assignment = np.full(n, current, dtype=np.int64)
        else:
            assignment = np.full(n, -1, dtype=np.int64)
            if n_full > 0:
                units = path.unit[:n_full][::-1]
                options = path.option[:n_full][::-1]
                latest, first = np.unique(units, return_index=True)
                assignment[latest] = options[first]

        if kind == "vector":
            return assignment

        matrix = np.zeros((n, k), dtype=np.float64)
        assigned = np.flatnonzero(assignment >= 0)
        matrix[assigned, assignment[assigned]] = 1.0

        if frac > 0:
            option = int(path.option[n_full])
            prev = int(path.prev_option[n_full])
            rows = slice(None) if path.is_baseline else int(path.unit[n_full])
            matrix[rows, option] = frac
            if prev >= 0:
                matrix[rows, prev] = 1.0 - frac

        return matrix

    def gain_curve(
        self,
        spends: np.ndarray | list[float] | None = None,
        n_points: int = 100,
    ) -> pd.DataFrame:
        """
        Estimates and standard errors over a spend grid.

        Args:
            spends:   Spend levels to evaluate; defaults to ``n_points``
                      evenly spaced levels on ``[0, budget]``.
            n_points: Grid size when ``spends`` is omitted.

        Returns:
            DataFrame with columns ``spend``, ``estimate``, ``std_err``.
        """
        if spends is None:
            spends = np.linspace(0.0, self.budget, n_points)
        records = []
        for s in np.asarray(spends, dtype=float):
            est = self.average_gain(s)
            records.append({"spend": float(s), "estimate": est.estimate, "std_err": est.std_err})
        return pd.DataFrame(records, columns=["spend", "estimate", "std_err"])

    def to_dataframe(self) -> pd.DataFrame:
        """Breakpoints as a DataFrame (``spend``, ``gain``, ``ratio``)."""
        bp = self._breakpoints
        return pd.DataFrame({"spend": bp.spend, "gain": bp.gain, "ratio": bp.ratio})

    def to_dict(self) -> dict[str, Any]:
        rep = self._replicates
        return {
            "budget": self.budget,
            "n_units": self.n_units,
            "n_options": self.n_options,
            "n_actions": self._path.n_actions,
            "n_breakpoints": len(self._breakpoints.spend),
            "complete": self.complete,
            "baseline": self._path.is_baseline,
            "seed": rep.seed,
            "n_replicates": rep.n_replicates,
            "n_usable_replicates": rep.n_usable,
            "n_failed_replicates": rep.n_failed,
            "bootstrap_aborted": rep.aborted,
        }

    def __repr__(self) -> str:
        return (
            f"CurveEvaluator(n_units={self.n_units}, n_options={self.n_options}, "
            f"budget={self.budget}, n_breakpoints={len(self._breakpoints.spend)}, "
            f"n_replicates={self._replicates.n_replicates})"
        )


def fit_curve(
    reward: Any,
    cost: Any,
    budget: float,
    reward_eval: Any | None = None,
    *,
    n_bootstrap: int | None = None,
    seed: int | None = None,
    target_with_covariates: bool = True,
    clusters: Any | None = None,
    n_jobs: int | None = None,
    cancel_event: threading.Event | None = None,
    config: MaqConfig | None = None,
) -> CurveEvaluator:
    """
    Fit a gain curve and its bootstrap replicates.

    Args:
        reward:       n x K (or n-vector) ranking values.
        cost:         n x K, K-vector, n-vector (K=1) or scalar positive costs.
        budget:       Maximum spend B_max (> 0).
        reward_eval:  Evaluation scores, same shape as ``reward``;
                      defaults to ``reward``.
        n_bootstrap:  Number of replicates R (>= 0).
        seed:         Resampling seed.  Curves that will be compared must
                      share it.
        target_with_covariates: False ranks every unit by the population
                      mean values and costs (baseline curve).
        clusters:     Optional cluster labels; the bootstrap then
                      resamples whole clusters.
        n_jobs:       Worker threads for the bootstrap.
        cancel_event: Stops the bootstrap early when set.
        config:       Overrides the global configuration.

    ``None`` arguments fall back to the configuration.

    Returns:
        CurveEvaluator
    """
    cfg = config or get_config()
    params = FitParams.parse(
        budget=budget,
        n_bootstrap=cfg.bootstrap.n_replicates if n_bootstrap is None else n_bootstrap,
        seed=cfg.bootstrap.seed if seed is None else seed,
        n_jobs=cfg.bootstrap.n_jobs if n_jobs is None else n_jobs,
        target_with_covariates=target_with_covariates,
    )
    tau, cost_mat, gamma = validate_arrays(reward, cost, reward_eval)
    codes = validate_clusters(clusters, tau.shape[0])

    logger.info(
        f"Fitting gain curve: {tau.shape[0]} units, {tau.shape[1]} options, "
        f"budget {params.budget:g}, "
        f"{'per-unit' if params.target_with_covariates else 'baseline'} ranking"
    )

    builder = PathBuilder(
        tau,
        cost_mat,
        gamma,
        params.budget,
        epsilon=cfg.path.epsilon,
        target_with_covariates=params.target_with_covariates,
    )
    path = builder.build()
    if path.is_empty():
        logger.warning("No option has a positive value; the gain curve is identically zero")

    engine = BootstrapEngine(
        builder,
        n_replicates=params.n_bootstrap,
        seed=params.seed,
        clusters=codes,
        n_jobs=params.n_jobs,
        max_failure_rate=cfg.bootstrap.max_failure_rate,
        on_excess_failures=cfg.bootstrap.on_excess_failures,
    )
    replicates = engine.run(cancel_event=cancel_event)

    return CurveEvaluator(path, replicates)
