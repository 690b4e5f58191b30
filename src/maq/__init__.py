"""
maq: budget-constrained gain curves over multiple treatment options.

Builds, in one pass, the gain achievable at every spend level when a
limited budget is allocated across units and candidate options, and
attaches bootstrap standard errors to points on the curve and to
differences between curves.

Quickstart::

    from maq import fit_curve, difference_gain

    curve = fit_curve(reward, cost, budget=100.0, n_bootstrap=200, seed=42)
    curve.average_gain(50.0)

    baseline = fit_curve(reward, cost, budget=100.0, n_bootstrap=200, seed=42,
                         target_with_covariates=False)
    difference_gain(curve, baseline, 50.0)
"""

from maq.config import MaqConfig, get_config, load_config, set_config
from maq.core.exceptions import (
    MaqError,
    InvalidInputError,
    IncompatibleCurvesError,
    DegenerateResampleError,
)
from maq.path import PathBuilder, SolutionPath
from maq.bootstrap import BootstrapEngine, ReplicateSet
from maq.curve import (
    CurveComparator,
    CurveEvaluator,
    GainEstimate,
    difference_gain,
    fit_curve,
    integrated_difference,
)

__version__ = "0.1.0"

__all__ = [
    "MaqConfig",
    "get_config",
    "load_config",
    "set_config",
    "MaqError",
    "InvalidInputError",
    "IncompatibleCurvesError",
    "DegenerateResampleError",
    "PathBuilder",
    "SolutionPath",
    "BootstrapEngine",
    "ReplicateSet",
    "CurveComparator",
    "CurveEvaluator",
    "GainEstimate",
    "difference_gain",
    "fit_curve",
    "integrated_difference",
]
