"""
Core module for maq.

Provides the input contracts and exception types shared by the
path, bootstrap and curve layers.
"""

from maq.core.contracts import (
    FitParams,
    validate_arrays,
    validate_clusters,
    check_spend,
)
from maq.core.exceptions import (
    MaqError,
    InvalidInputError,
    IncompatibleCurvesError,
    DegenerateResampleError,
)

__all__ = [
    "FitParams",
    "validate_arrays",
    "validate_clusters",
    "check_spend",
    "MaqError",
    "InvalidInputError",
    "IncompatibleCurvesError",
    "DegenerateResampleError",
]
