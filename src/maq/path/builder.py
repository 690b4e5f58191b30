"""
Solution path construction.

Builds the whole gain-vs-spend path of the budget-constrained
allocation problem in one pass:

  1. Each unit's options are reduced to its envelope (see
     ``maq.path.envelope``), giving a private action sequence with
     decreasing ratios.
  2. The sequences are merged by a binary heap that always applies the
     eligible action with the highest ratio.  Applying an action makes
     the same unit's next action eligible.
  3. Cumulative spend and cumulative gain (measured with the
     evaluation scores, not the ranking values) are recorded after
     every action.

Equal ratios are ordered by unit index, then by position in the
(possibly resampled) dataset, then by the unit's own action order.
Ratios are compared as exact floats; ``epsilon`` only applies when
envelopes are pruned and breakpoints are collapsed.  The same rule
is used for the full-sample path and every bootstrap replicate.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass

import numpy as np
from loguru import logger

from maq.path.envelope import EnvelopeSet, build_envelopes, build_mean_envelope


# Marks baseline actions, which move every unit at once.
ALL_UNITS = -1


@dataclass(frozen=True)
class SolutionPath:
    """
    Piecewise-linear gain-vs-spend path.

    ``spend`` and ``gain`` hold ``n_actions + 1`` points starting at the
    origin.  Action ``j`` moves ``unit[j]`` from ``prev_option[j]`` to
    ``option[j]`` and spans ``spend[j]..spend[j + 1]``.  ``unit`` indexes
    rows of the dataset the path was built on, or is ``ALL_UNITS`` for a
    baseline path.

    When ``complete`` is False the last action crosses ``budget``; it is
    kept so that every spend in ``[0, budget]`` can be interpolated.
    """

    spend: np.ndarray
    gain: np.ndarray
    unit: np.ndarray
    option: np.ndarray
    prev_option: np.ndarray
    ratio: np.ndarray
    budget: float
    n_units: int
    n_options: int
    complete: bool
    epsilon: float = 1e-12

    @property
    def n_actions(self) -> int:
        return len(self.unit)

    @property
    def is_baseline(self) -> bool:
        return self.n_actions > 0 and int(self.unit[0]) == ALL_UNITS

    def is_empty(self) -> bool:
        return self.n_actions == 0

    def is_degenerate(self) -> bool:
        """True when the path has no action or its spend is not strictly increasing."""
        return self.is_empty() or bool(np.any(np.diff(self.spend) <= 0))

    def gain_at(self, spend: float | np.ndarray) -> float | np.ndarray:
        """Interpolated cumulative gain; flat past the last point."""
        out = np.interp(spend, self.spend, self.gain)
        return float(out) if np.ndim(out) == 0 else out

    def area_to(self, spend: float) -> float:
        """Integral of the gain curve over ``[0, spend]``."""
        inner = self.spend[self.spend < spend]
        xs = np.append(inner, spend)
        ys = np.interp(xs, self.spend, self.gain)
        return float(np.sum(0.5 * (ys[1:] + ys[:-1]) * np.diff(xs)))

    def breakpoints(self, epsilon: float | None = None) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Points where the marginal ratio strictly decreases.

        Consecutive actions whose ratios agree within ``epsilon`` are
        collapsed into a single interval.

        Returns:
            ``(spend, gain, ratio)``; ``ratio[p]`` is the ratio of the
            segment ending at point ``p`` (NaN for the origin).
        """
        eps = self.epsilon if epsilon is None else epsilon
        m = self.n_actions
        if m == 0:
            return self.spend[:1].copy(), self.gain[:1].copy(), np.array([np.nan])

        interior = np.zeros(m, dtype=bool)
        interior[:-1] = self.ratio[1:] >= self.ratio[:-1] - eps
        keep = np.concatenate([[True], ~interior])

        ratio = np.concatenate([[np.nan], self.ratio])
        return self.spend[keep], self.gain[keep], ratio[keep]


def _readonly(values, dtype) -> np.ndarray:
    arr = np.asarray(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


class PathBuilder:
    """
    Build solution paths from validated (n, K) arrays.

    Envelopes depend only on ranking values and costs, so they are
    computed once here and shared by the full-sample path and every
    resampled path.

    Example:
        >>> builder = PathBuilder(reward, cost, reward, budget=10.0)
        >>> path = builder.build()
        >>> path.gain_at(5.0)
    """

    def __init__(
        self,
        reward: np.ndarray,
        cost: np.ndarray,
        reward_eval: np.ndarray,
        budget: float,
        epsilon: float = 1e-12,
        target_with_covariates: bool = True,
    ):
        self.reward = reward
        self.cost = cost
        self.reward_eval = reward_eval
        self.budget = float(budget)
        self.epsilon = epsilon
        self.target_with_covariates = target_with_covariates
        self.n_units, self.n_options = reward.shape

        self.envelopes: EnvelopeSet | None = None
        self.mean_steps: list[tuple[int, int, float]] = []

        if target_with_covariates:
            self.envelopes = build_envelopes(reward, cost, reward_eval, epsilon)
            # Plain lists make the heap loop considerably cheaper than ndarray indexing.
            self._offsets = self.envelopes.offsets.tolist()
            self._ratio = self.envelopes.ratio.tolist()
            self._d_cost = self.envelopes.d_cost.tolist()
            self._d_eval = self.envelopes.d_eval.tolist()
        else:
            self.mean_steps = build_mean_envelope(reward, cost, epsilon)

    @property
    def has_actions(self) -> bool:
        """False when no unit has an option with positive value."""
        if self.target_with_covariates:
            return self.envelopes.n_actions > 0
        return bool(self.mean_steps)

    def build(self) -> SolutionPath:
        """Path on the full sample."""
        path = self.build_resample(np.arange(self.n_units))
        logger.debug(
            f"Solution path: {path.n_actions} actions, "
            f"spend {path.spend[-1]:.4g}, gain {path.gain[-1]:.4g}, "
            f"complete={path.complete}"
        )
        return path

    def build_resample(self, rows: np.ndarray) -> SolutionPath:
        """
        Path on the dataset formed by ``rows`` (unit indices, repeats allowed).

        Ranking uses the envelopes of the original units; gains use the
        evaluation scores of the drawn rows.
        """
        if self.target_with_covariates:
            return self._merge(rows)
        return self._merge_baseline(rows)

    # ------------------------------------------------------------------
    # Merge strategies
    # ------------------------------------------------------------------

    def _merge(self, rows: np.ndarray) -> SolutionPath:
        env = self.envelopes
        offsets, ratio = self._offsets, self._ratio
        d_cost, d_eval = self._d_cost, self._d_eval

        heap = []
        for pos, unit in enumerate(rows.tolist()):
            start = offsets[unit]
            if start < offsets[unit + 1]:
                heap.append((-ratio[start], unit, pos, start))
        heapq.heapify(heap)

        spend_acc, gain_acc = 0.0, 0.0
        spend, gain = [0.0], [0.0]
        positions, actions = [], []
        complete = True

        while heap:
            _, unit, pos, j = heapq.heappop(heap)
            spend_acc += d_cost[j]
            gain_acc += d_eval[j]
            spend.append(spend_acc)
            gain.append(gain_acc)
            positions.append(pos)
            actions.append(j)

            if spend_acc > self.budget:
                complete = False
                break

            nxt = j + 1
            if nxt < offsets[unit + 1]:
                heapq.heappush(heap, (-ratio[nxt], unit, pos, nxt))

        idx = np.asarray(actions, dtype=np.int64)
        return SolutionPath(
            spend=_readonly(spend, np.float64),
            gain=_readonly(gain, np.float64),
            unit=_readonly(positions, np.int64),
            option=_readonly(env.option[idx], np.int64),
            prev_option=_readonly(env.prev_option[idx], np.int64),
            ratio=_readonly(env.ratio[idx], np.float64),
            budget=self.budget,
            n_units=len(rows),
            n_options=self.n_options,
            complete=complete,
            epsilon=self.epsilon,
        )

    def _merge_baseline(self, rows: np.ndarray) -> SolutionPath:
        cost_rows = self.cost[rows]
        eval_rows = self.reward_eval[rows]

        spend_acc, gain_acc = 0.0, 0.0
        spend, gain = [0.0], [0.0]
        options, prevs, ratios = [], [], []
        complete = True

        for option, prev, ratio in self.mean_steps:
            d_cost = cost_rows[:, option].sum()
            d_eval = eval_rows[:, option].sum()
            if prev >= 0:
                d_cost -= cost_rows[:, prev].sum()
                d_eval -= eval_rows[:, prev].sum()

            spend_acc += float(d_cost)
            gain_acc += float(d_eval)
            spend.append(spend_acc)
            gain.append(gain_acc)
            options.append(option)
            prevs.append(prev)
            ratios.append(ratio)

            if spend_acc > self.budget:
                complete = False
                break

        return SolutionPath(
            spend=_readonly(spend, np.float64),
            gain=_readonly(gain, np.float64),
            unit=_readonly([ALL_UNITS] * len(options), np.int64),
            option=_readonly(options, np.int64),
            prev_option=_readonly(prevs, np.int64),
            ratio=_readonly(ratios, np.float64),
            budget=self.budget,
            n_units=len(rows),
            n_options=self.n_options,
            complete=complete,
            epsilon=self.epsilon,
        )


def build_path(
    reward: np.ndarray,
    cost: np.ndarray,
    budget: float,
    reward_eval: np.ndarray | None = None,
    epsilon: float = 1e-12,
    target_with_covariates: bool = True,
) -> SolutionPath:
    """
    Convenience function: build a single path from validated arrays.

    Args:
        reward:      (n, K) ranking values.
        cost:        (n, K) positive costs.
        budget:      Maximum spend.
        reward_eval: (n, K) evaluation scores; defaults to ``reward``.

    Returns:
        SolutionPath on the full sample.
    """
    builder = PathBuilder(
        reward,
        cost,
        reward if reward_eval is None else reward_eval,
        budget,
        epsilon=epsilon,
        target_with_covariates=target_with_covariates,
    )
    return builder.build()
