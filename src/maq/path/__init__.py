"""
Solution path layer for maq.

Reduces each unit's options to its cost/value envelope and merges
the per-unit action sequences into one gain-vs-spend path.
"""

from maq.path.envelope import (
    EnvelopeSet,
    build_envelopes,
    build_mean_envelope,
    hull_options,
)
from maq.path.builder import (
    ALL_UNITS,
    PathBuilder,
    SolutionPath,
    build_path,
)

__all__ = [
    "EnvelopeSet",
    "build_envelopes",
    "build_mean_envelope",
    "hull_options",
    "ALL_UNITS",
    "PathBuilder",
    "SolutionPath",
    "build_path",
]
