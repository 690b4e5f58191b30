"""
Bootstrap layer for maq.

Seeded unit (or cluster) resampling, replicate path construction
and replicate-based standard errors.
"""

from maq.bootstrap.engine import (
    BootstrapEngine,
    ReplicateSet,
    draw_resamples,
    replicate_std,
    resolve_seed,
)

__all__ = [
    "BootstrapEngine",
    "ReplicateSet",
    "draw_resamples",
    "replicate_std",
    "resolve_seed",
]
