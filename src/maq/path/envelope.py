"""
Per-unit option envelopes.

For a single unit only the options on the upper convex hull of its
(cost, value) points, anchored at the origin, can be optimal at some
budget.  Each hull vertex becomes one action: an initial assignment
for the cheapest vertex and an upgrade for every later one.  Along a
unit's action sequence costs strictly increase and ratios strictly
decrease.

The envelopes of all units are stored flattened, CSR style, so that
the merge step and every bootstrap replicate can share them without
copying.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from loguru import logger


@dataclass(frozen=True)
class EnvelopeSet:
    """
    Flattened action sequences for a set of units.

    Actions of unit ``i`` occupy ``offsets[i]:offsets[i + 1]``, ordered by
    increasing cost.  ``prev_option`` is -1 for an initial assignment.
    """

    offsets: np.ndarray
    option: np.ndarray
    prev_option: np.ndarray
    d_cost: np.ndarray
    d_reward: np.ndarray
    d_eval: np.ndarray
    ratio: np.ndarray

    @property
    def n_units(self) -> int:
        return len(self.offsets) - 1

    @property
    def n_actions(self) -> int:
        return len(self.option)

    def unit_slice(self, unit: int) -> slice:
        return slice(int(self.offsets[unit]), int(self.offsets[unit + 1]))


def hull_options(
    reward: np.ndarray,
    cost: np.ndarray,
    epsilon: float = 1e-12,
) -> list[int]:
    """
    Return the option indices on a unit's cost/value envelope.

    Options with non-positive value are never offered.  Candidates are
    visited by increasing cost (equal costs: higher value first, then
    lower option index); a candidate is dropped unless its value strictly
    exceeds every cheaper candidate's, and a vertex is popped whenever the
    segment after it is not strictly flatter than the segment before it.

    Args:
        reward: Length-K ranking values of one unit.
        cost:   Length-K strictly positive costs of the same unit.
        epsilon: Ratio tolerance; ratios within it count as equal.

    Returns:
        Option indices ordered by increasing cost.
    """
    candidates = [k for k in range(len(reward)) if reward[k] > 0]
    candidates.sort(key=lambda k: (cost[k], -reward[k], k))

    hull: list[int] = []
    best_reward = 0.0

    for k in candidates:
        if reward[k] <= best_reward:
            continue
        best_reward = reward[k]

        while hull:
            b = hull[-1]
            if len(hull) > 1:
                a_cost, a_reward = cost[hull[-2]], reward[hull[-2]]
            else:
                a_cost, a_reward = 0.0, 0.0
            ratio_before = (reward[b] - a_reward) / (cost[b] - a_cost)
            ratio_after = (reward[k] - reward[b]) / (cost[k] - cost[b])
            if ratio_after >= ratio_before - epsilon:
                hull.pop()
            else:
                break

        hull.append(k)

    return hull


def _actions_for(
    options: list[int],
    reward: np.ndarray,
    cost: np.ndarray,
    reward_eval: np.ndarray,
) -> list[tuple[int, int, float, float, float]]:
    actions = []
    prev = -1
    for k in options:
        if prev < 0:
            d_cost, d_reward, d_eval = cost[k], reward[k], reward_eval[k]
        else:
            d_cost = cost[k] - cost[prev]
            d_reward = reward[k] - reward[prev]
            d_eval = reward_eval[k] - reward_eval[prev]
        actions.append((k, prev, float(d_cost), float(d_reward), float(d_eval)))
        prev = k
    return actions


def _pack(
    per_unit: list[list[tuple[int, int, float, float, float]]],
) -> EnvelopeSet:
    counts = np.array([len(a) for a in per_unit], dtype=np.int64)
    offsets = np.zeros(len(per_unit) + 1, dtype=np.int64)
    np.cumsum(counts, out=offsets[1:])

    flat = [a for actions in per_unit for a in actions]
    if flat:
        option, prev, d_cost, d_reward, d_eval = (np.array(col) for col in zip(*flat))
    else:
        option = prev = np.empty(0, dtype=np.int64)
        d_cost = d_reward = d_eval = np.empty(0, dtype=np.float64)

    arrays = {
        "offsets": offsets,
        "option": option.astype(np.int64),
        "prev_option": prev.astype(np.int64),
        "d_cost": d_cost.astype(np.float64),
        "d_reward": d_reward.astype(np.float64),
        "d_eval": d_eval.astype(np.float64),
    }
    arrays["ratio"] = (
        arrays["d_reward"] / arrays["d_cost"] if flat else np.empty(0, dtype=np.float64)
    )
    for arr in arrays.values():
        arr.setflags(write=False)
    return EnvelopeSet(**arrays)


def build_envelopes(
    reward: np.ndarray,
    cost: np.ndarray,
    reward_eval: np.ndarray,
    epsilon: float = 1e-12,
) -> EnvelopeSet:
    """Compute every unit's action sequence from validated (n, K) arrays."""
    per_unit = [
        _actions_for(hull_options(reward[i], cost[i], epsilon), reward[i], cost[i], reward_eval[i])
        for i in range(reward.shape[0])
    ]
    envelopes = _pack(per_unit)
    logger.debug(
        f"Built envelopes for {envelopes.n_units} units: "
        f"{envelopes.n_actions} actions from {reward.size} options"
    )
    return envelopes


def build_mean_envelope(
    reward: np.ndarray,
    cost: np.ndarray,
    epsilon: float = 1e-12,
) -> list[tuple[int, int, float]]:
    """
    Envelope of the population-average option values.

    Used for baseline curves that ignore per-unit variation.

    Returns:
        List of ``(option, prev_option, ratio)`` steps by increasing cost.
    """
    mean_reward = reward.mean(axis=0)
    mean_cost = cost.mean(axis=0)
    options = hull_options(mean_reward, mean_cost, epsilon)
    steps = []
    for k, prev, d_cost, d_reward, _ in _actions_for(options, mean_reward, mean_cost, mean_reward):
        steps.append((k, prev, d_reward / d_cost))
    return steps
