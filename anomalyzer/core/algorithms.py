"""Scoring functions for the anomaly ensemble.

Every test maps ``(series, config, rng)`` to a score in [0, 1], where higher
means more anomalous, or ``None`` when the test cannot run on the current
buffer (too little history, empty active window and so on). The evaluator
drops ``None`` scores instead of treating them as numbers.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np
from scipy.special import kolmogorov
from scipy.stats import rankdata

from .windows import InsufficientWindow, extract_windows

if TYPE_CHECKING:
    from ..config import ResolvedConfig


Transform = Callable[[np.ndarray], np.ndarray]
Comparison = Callable[[float, float], bool]

CDF_MIN_REFERENCE = 4


def clip(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(min(x, hi), lo)


def weight_exp(x: float, base: float = 10.0) -> float:
    """Horseshoe weighting on [0, 1]: small x stays near 0, x near 1 rises sharply."""
    return (math.pow(base, x) - 1.0) / (base - 1.0)


def abs_diff(values: np.ndarray) -> np.ndarray:
    return np.abs(np.diff(values))


def identity(values: np.ndarray) -> np.ndarray:
    return values


def ecdf(sample: np.ndarray) -> Callable[[np.ndarray], np.ndarray]:
    """Empirical CDF of ``sample``: share of observations <= x."""
    ordered = np.sort(np.asarray(sample, dtype=float))
    n = len(ordered)

    def _ecdf(x):  # type: ignore[no-untyped-def]
        return np.searchsorted(ordered, x, side="right") / n

    return _ecdf


def magnitude_test(
    series: np.ndarray, config: "ResolvedConfig", rng: Optional[np.random.Generator] = None
) -> Optional[float]:
    """Relative change of the active mean against the reference mean."""
    try:
        reference, active = extract_windows(series, config.reference_size, config.active_size, 1)
    except InsufficientWindow:
        return None

    active_mean = float(active.mean())
    ref_mean = float(reference.mean())

    # limit of the ratio when the baseline is zero
    if ref_mean == 0:
        return 0.0 if active_mean == 0 else 1.0
    return clip(abs(active_mean - ref_mean) / abs(ref_mean))


def fence_test(
    series: np.ndarray, config: "ResolvedConfig", rng: Optional[np.random.Generator] = None
) -> Optional[float]:
    """How close the active mean sits to the configured bounds."""
    if config.upper_bound is None:
        return None
    _, active = extract_windows(series, config.reference_size, config.active_size)
    if len(active) == 0:
        return None

    x = float(active.mean())
    if config.lower_bound is None:
        distance = x / config.upper_bound
    else:
        half_range = (config.upper_bound - config.lower_bound) / 2
        mid = config.lower_bound + half_range
        distance = abs(x - mid) / half_range
    return clip(weight_exp(clip(distance), 10.0))


def rank_permutation_test(
    series: np.ndarray,
    config: "ResolvedConfig",
    rng: np.random.Generator,
    transform: Transform,
    beats: Comparison,
) -> Optional[float]:
    """Share of shuffles whose trailing rank sum ``beats`` the observed one.

    ``transform`` runs before ranking, both on the series and on every
    shuffled copy of it.
    """
    if config.perm_count < 1:
        return None
    ranks = rankdata(transform(series))
    try:
        _, active = extract_windows(
            ranks, config.reference_size, config.active_size, config.active_size
        )
    except InsufficientWindow:
        return None
    active_sum = float(active.sum())

    significant = 0
    for _ in range(config.perm_count):
        perm_ranks = rankdata(transform(rng.permutation(series)))
        _, perm_active = extract_windows(perm_ranks, config.reference_size, config.active_size)
        if beats(float(perm_active.sum()), active_sum):
            significant += 1
    return significant / config.perm_count


def diff_test(
    series: np.ndarray, config: "ResolvedConfig", rng: np.random.Generator
) -> Optional[float]:
    """Rank test on absolute first differences; high when recent jumps are large."""
    return rank_permutation_test(series, config, rng, abs_diff, lambda perm, real: perm < real)


def high_rank_test(
    series: np.ndarray, config: "ResolvedConfig", rng: np.random.Generator
) -> Optional[float]:
    return rank_permutation_test(series, config, rng, identity, lambda perm, real: perm < real)


def low_rank_test(
    series: np.ndarray, config: "ResolvedConfig", rng: np.random.Generator
) -> Optional[float]:
    return rank_permutation_test(series, config, rng, identity, lambda perm, real: perm > real)


def cdf_test(
    series: np.ndarray, config: "ResolvedConfig", rng: Optional[np.random.Generator] = None
) -> Optional[float]:
    """Locate the shift in mean absolute difference on the reference ECDF.

    A shift landing at the median scores 0, either tail scores towards 1.
    """
    if len(series) < 2:
        return None
    diffs = abs_diff(series)
    try:
        reference, active = extract_windows(
            diffs, config.reference_size, config.active_size, CDF_MIN_REFERENCE
        )
    except InsufficientWindow:
        return None
    if len(active) == 0:
        return None

    active_diff = float(active.mean()) - float(reference.mean())
    percentile = float(ecdf(reference)(active_diff))
    return clip(2 * abs(0.5 - percentile))


def ks_statistic(reference: np.ndarray, active: np.ndarray) -> Optional[float]:
    """Maximum distance between the two ECDFs on a shared grid.

    The grid spans the combined min/max with ``len(reference) + len(active)``
    points. Returns ``None`` unless the reference length is a whole multiple
    of the active length.
    """
    n1 = len(reference)
    n2 = len(active)
    if n1 == 0 or n2 == 0 or n1 % n2 != 0:
        return None

    lo = min(float(reference.min()), float(active.min()))
    hi = max(float(reference.max()), float(active.max()))
    grid = np.linspace(lo, hi, n1 + n2)
    return float(np.max(np.abs(ecdf(active)(grid) - ecdf(reference)(grid))))


def bootstrap_ks_test(
    series: np.ndarray, config: "ResolvedConfig", rng: np.random.Generator
) -> Optional[float]:
    """Share of shuffles whose KS distance falls below the observed distance."""
    if config.perm_count < 1:
        return None
    try:
        reference, active = extract_windows(
            series, config.reference_size, config.active_size, config.active_size
        )
    except InsufficientWindow:
        return None
    dist = ks_statistic(reference, active)
    if dist is None:
        return None

    significant = 0
    for _ in range(config.perm_count):
        perm_reference, perm_active = extract_windows(
            rng.permutation(series), config.reference_size, config.active_size
        )
        perm_dist = ks_statistic(perm_reference, perm_active)
        if perm_dist is not None and perm_dist < dist:
            significant += 1
    return significant / config.perm_count


def ks_pvalue_score(reference: np.ndarray, active: np.ndarray) -> Optional[float]:
    """Analytic KS score, 1 - Q_KS, using the asymptotic Kolmogorov distribution.

    Kept as a diagnostic next to the bootstrap test; it is not an ensemble
    member.
    """
    dist = ks_statistic(reference, active)
    if dist is None:
        return None
    n1 = len(reference)
    n2 = len(active)
    en = math.sqrt(n1 * n2 / (n1 + n2))
    prob = float(kolmogorov((en + 0.12 + 0.11 / en) * dist))
    return clip(1.0 - prob)
