"""
Bootstrap replicates for gain-curve standard errors.

Each replicate resamples whole units with replacement (or whole
clusters, when cluster labels are given), keeps the original
ranking envelopes of the drawn units and re-merges them, so the
replicate's gain is measured with the resampled evaluation scores.

Draws come from an explicit ``numpy.random.default_rng(seed)`` owned
by the engine.  Two curves fit on the same units with the same seed
see identical draws, which is what makes paired comparisons valid.

Replicates are independent and may run on a thread pool; results
are collected by replicate index so the output does not depend on
the number of workers.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Literal

import numpy as np
from loguru import logger

from maq.core.exceptions import DegenerateResampleError
from maq.path.builder import PathBuilder, SolutionPath


@dataclass(frozen=True)
class ReplicateSet:
    """
    Read-only collection of bootstrap replicate paths.

    ``paths[r]`` is None when replicate ``r`` was degenerate
    (``failed[r]``) or was never run because the loop was aborted.
    """

    seed: int
    draws: tuple[np.ndarray, ...]
    paths: tuple[SolutionPath | None, ...]
    failed: np.ndarray
    aborted: bool = False

    @property
    def n_replicates(self) -> int:
        return len(self.draws)

    @property
    def usable(self) -> np.ndarray:
        return np.array([p is not None for p in self.paths], dtype=bool)

    @property
    def n_usable(self) -> int:
        return int(self.usable.sum())

    @property
    def n_failed(self) -> int:
        return int(self.failed.sum())

    def gains_at(self, spend: float) -> np.ndarray:
        """Per-replicate interpolated gain at ``spend`` (NaN where unusable)."""
        return np.array(
            [np.nan if p is None else p.gain_at(spend) for p in self.paths],
            dtype=np.float64,
        )

    def areas_to(self, spend: float) -> np.ndarray:
        """Per-replicate area under the gain curve on ``[0, spend]``."""
        return np.array(
            [np.nan if p is None else p.area_to(spend) for p in self.paths],
            dtype=np.float64,
        )

    def std_err(self, spend: float) -> float:
        return replicate_std(self.gains_at(spend))

    def is_paired_with(self, other: "ReplicateSet") -> bool:
        """True when both sets were built from identical resample draws."""
        if self.n_replicates != other.n_replicates:
            return False
        return all(
            a.shape == b.shape and np.array_equal(a, b)
            for a, b in zip(self.draws, other.draws)
        )


def replicate_std(values: np.ndarray) -> float:
    """Sample standard deviation over finite entries; NaN with fewer than two."""
    finite = values[np.isfinite(values)]
    if finite.size < 2:
        return float("nan")
    return float(np.std(finite, ddof=1))


def resolve_seed(seed: int | None) -> int:
    """Return ``seed`` or, when None, fresh OS entropy that can be replayed later."""
    if seed is not None:
        return int(seed)
    return int(np.random.SeedSequence().entropy)


def draw_resamples(
    n_units: int,
    n_replicates: int,
    seed: int,
    clusters: np.ndarray | None = None,
) -> tuple[np.ndarray, ...]:
    """
    Draw bootstrap index sets.

    Args:
        n_units:      Number of units in the fitted data.
        n_replicates: Number of draws R.
        seed:         Seed for ``numpy.random.default_rng``.
        clusters:     Optional dense cluster codes (length ``n_units``);
                      whole clusters are then resampled.

    Returns:
        Tuple of R read-only integer index arrays.
    """
    rng = np.random.default_rng(seed)

    if clusters is None:
        matrix = rng.integers(0, n_units, size=(n_replicates, n_units))
        draws = tuple(matrix[r] for r in range(n_replicates))
    else:
        n_clusters = int(clusters.max()) + 1
        order = np.argsort(clusters, kind="stable")
        bounds = np.searchsorted(clusters[order], np.arange(n_clusters + 1))
        members = [order[bounds[g]:bounds[g + 1]] for g in range(n_clusters)]
        draws = tuple(
            np.concatenate([members[g] for g in rng.integers(0, n_clusters, size=n_clusters)])
            for _ in range(n_replicates)
        )

    for rows in draws:
        rows.setflags(write=False)
    return draws


class BootstrapEngine:
    """
    Run bootstrap replicates of a solution path.

    Usage::

        engine = BootstrapEngine(builder, n_replicates=200, seed=42)
        replicates = engine.run()
        replicates.std_err(spend=10.0)
    """

    def __init__(
        self,
        builder: PathBuilder,
        n_replicates: int = 200,
        seed: int | None = None,
        clusters: np.ndarray | None = None,
        n_jobs: int = 1,
        max_failure_rate: float = 0.1,
        on_excess_failures: Literal["raise", "warn"] = "raise",
    ):
        self.builder = builder
        self.n_replicates = n_replicates
        self.seed = resolve_seed(seed)
        self.clusters = clusters
        self.n_jobs = n_jobs
        self.max_failure_rate = max_failure_rate
        self.on_excess_failures = on_excess_failures

    @property
    def max_failures(self) -> int:
        """Largest number of degenerate replicates that is still tolerated."""
        return int(np.floor(self.max_failure_rate * self.n_replicates))

    def draw(self) -> tuple[np.ndarray, ...]:
        return draw_resamples(
            self.builder.n_units, self.n_replicates, self.seed, self.clusters
        )

    def _replicate(self, rows: np.ndarray) -> SolutionPath | None:
        path = self.builder.build_resample(rows)
        # With no admissible action anywhere every path is the zero curve.
        if not self.builder.has_actions:
            return path
        if path.is_degenerate():
            return None
        return path

    def run(self, cancel_event: threading.Event | None = None) -> ReplicateSet:
        """
        Build every replicate path.

        Args:
            cancel_event: Optional event; once set, no further replicates
                are started and the completed ones are returned.

        Returns:
            ReplicateSet with one entry per draw.

        Raises:
            DegenerateResampleError: when more than ``max_failure_rate`` of
                the draws are degenerate and ``on_excess_failures`` is "raise".
        """
        draws = self.draw()
        n = self.n_replicates
        paths: list[SolutionPath | None] = [None] * n
        failed = np.zeros(n, dtype=bool)

        if n == 0:
            return ReplicateSet(seed=self.seed, draws=draws, paths=(), failed=failed)

        logger.info(
            f"Running {n} bootstrap replicates on {self.builder.n_units} units "
            f"(seed={self.seed}, n_jobs={self.n_jobs})"
        )

        stop = threading.Event()
        excess = False

        def _should_stop() -> bool:
            return stop.is_set() or (cancel_event is not None and cancel_event.is_set())

        def _record(r: int, path: SolutionPath | None) -> None:
            nonlocal excess
            paths[r] = path
            if path is None:
                failed[r] = True
                if failed.sum() > self.max_failures:
                    excess = True
                    stop.set()

        if self.n_jobs <= 1:
            for r in range(n):
                if _should_stop():
                    break
                _record(r, self._replicate(draws[r]))
        else:
            def _worker(r: int) -> tuple[int, SolutionPath | None, bool]:
                if _should_stop():
                    return r, None, False
                return r, self._replicate(draws[r]), True

            with ThreadPoolExecutor(max_workers=self.n_jobs) as executor:
                futures = [executor.submit(_worker, r) for r in range(n)]
                for fut in as_completed(futures):
                    if fut.cancelled():
                        continue
                    r, path, ran = fut.result()
                    if ran:
                        _record(r, path)
                    if _should_stop():
                        for pending in futures:
                            pending.cancel()

        failed.setflags(write=False)
        n_failed = int(failed.sum())
        n_done = sum(p is not None for p in paths) + n_failed
        aborted = n_done < n

        if excess:
            if self.on_excess_failures == "raise":
                raise DegenerateResampleError(n_failed, n, self.max_failure_rate)
            logger.warning(
                f"Bootstrap aborted: {n_failed} of {n} replicates were degenerate "
                f"(allowed {self.max_failure_rate:.0%}); standard errors are a "
                f"best-effort estimate from {n_done - n_failed} replicates"
            )
        elif aborted:
            logger.warning(
                f"Bootstrap cancelled after {n_done} of {n} replicates; "
                f"standard errors use the completed ones only"
            )
        elif n_failed:
            logger.warning(f"Excluded {n_failed} degenerate bootstrap replicates out of {n}")

        logger.info(f"Bootstrap complete: {n_done - n_failed} usable replicates")

        return ReplicateSet(
            seed=self.seed,
            draws=draws,
            paths=tuple(paths),
            failed=failed,
            aborted=aborted or excess,
        )
