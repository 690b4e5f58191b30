"""
Input contracts for maq.

Every array handed to the path builder passes through
``validate_arrays`` first, so downstream code can rely on
dense, finite, read-only ``float64`` matrices of shape ``(n, K)``
with strictly positive costs.

Scalar fit parameters are described by the ``FitParams`` Pydantic
model; its validation errors are surfaced as ``InvalidInputError``.
"""

from __future__ import annotations

import math
from typing import Any

import numpy as np
from pydantic import BaseModel, Field, ValidationError, field_validator

from maq.core.exceptions import InvalidInputError


# ---------------------------------------------------------------------------
# Scalar parameters
# ---------------------------------------------------------------------------

class FitParams(BaseModel):
    """Scalar arguments of a curve fit."""

    budget: float = Field(gt=0)
    n_bootstrap: int = Field(ge=0)
    seed: int | None = Field(default=None, ge=0)
    n_jobs: int = Field(default=1, ge=1)
    target_with_covariates: bool = True

    @field_validator("budget")
    @classmethod
    def budget_is_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("budget must be finite")
        return v

    @classmethod
    def parse(cls, **kwargs: Any) -> "FitParams":
        """Build from keyword arguments, mapping validation failures to InvalidInputError."""
        try:
            return cls(**kwargs)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise InvalidInputError(
                f"Invalid value for '{field}': {first.get('msg', 'validation failed')}",
                field=field or None,
            ) from exc


# ---------------------------------------------------------------------------
# Array validation
# ---------------------------------------------------------------------------

def _as_float_array(values: Any, name: str) -> np.ndarray:
    try:
        arr = np.array(values, dtype=float)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"'{name}' must be numeric", field=name) from exc
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"'{name}' contains NaN or infinite values", field=name)
    return arr


def _as_matrix(values: Any, name: str) -> np.ndarray:
    arr = _as_float_array(values, name)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise InvalidInputError(
            f"'{name}' must be an n-vector or an n x K matrix, got {arr.ndim} dimensions",
            field=name,
        )
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise InvalidInputError(f"'{name}' must have at least one unit and one option", field=name)
    return arr


def _broadcast_cost(cost: Any, n: int, k: int) -> np.ndarray:
    arr = _as_float_array(cost, "cost")

    if arr.ndim == 0:
        arr = np.full((n, k), float(arr))
    elif arr.ndim == 1:
        if k == 1 and arr.shape[0] == n:
            arr = arr.reshape(-1, 1)
        elif arr.shape[0] == k:
            arr = np.broadcast_to(arr, (n, k)).copy()
        else:
            raise InvalidInputError(
                f"'cost' of length {arr.shape[0]} matches neither n={n} units (K=1) "
                f"nor K={k} options",
                field="cost",
            )
    elif arr.ndim != 2 or arr.shape != (n, k):
        raise InvalidInputError(
            f"'cost' has shape {arr.shape}, expected ({n}, {k})",
            field="cost",
        )

    if np.any(arr <= 0):
        raise InvalidInputError("'cost' must be strictly positive", field="cost")
    return arr


def _freeze(arr: np.ndarray) -> np.ndarray:
    arr = np.ascontiguousarray(arr, dtype=np.float64)
    arr.setflags(write=False)
    return arr


def validate_arrays(
    reward: Any,
    cost: Any,
    reward_eval: Any | None = None,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Coerce ranking values, costs and evaluation scores to aligned matrices.

    Args:
        reward:      n x K (or n-vector) ranking values.
        cost:        n x K, K-vector, n-vector (K=1) or scalar costs; must be > 0.
        reward_eval: Evaluation scores with the same shape as ``reward``.
                     Defaults to ``reward``.

    Returns:
        Tuple ``(tau, cost, gamma)`` of read-only (n, K) float64 arrays.
    """
    tau = _as_matrix(reward, "reward")
    n, k = tau.shape
    cost_mat = _broadcast_cost(cost, n, k)

    if reward_eval is None:
        gamma = tau.copy()
    else:
        gamma = _as_matrix(reward_eval, "reward_eval")
        if gamma.shape != tau.shape:
            raise InvalidInputError(
                f"'reward_eval' has shape {gamma.shape}, expected {tau.shape}",
                field="reward_eval",
            )

    return _freeze(tau), _freeze(cost_mat), _freeze(gamma)


def validate_clusters(clusters: Any | None, n: int) -> np.ndarray | None:
    """Map cluster labels to dense integer codes ``0..G-1`` (or pass through None)."""
    if clusters is None:
        return None
    labels = np.asarray(clusters)
    if labels.ndim != 1 or labels.shape[0] != n:
        raise InvalidInputError(
            f"'clusters' must be a vector of length {n}",
            field="clusters",
        )
    _, codes = np.unique(labels, return_inverse=True)
    codes = codes.astype(np.int64)
    codes.setflags(write=False)
    return codes


def check_spend(spend: Any, budget: float) -> float:
    """Validate a query spend against the fitted budget range [0, budget]."""
    try:
        value = float(spend)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError("spend must be a real number", field="spend") from exc
    if not math.isfinite(value) or value < 0 or value > budget:
        raise InvalidInputError(
            f"spend {spend!r} is outside the fitted range [0, {budget}]",
            field="spend",
        )
    return value
