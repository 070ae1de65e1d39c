"""
Summary statistics over raw per-run length deltas.

Unweighted statistics use index-based percentiles on the sorted values.
Weighted statistics (from multi-combo allocations) use the first sorted
value whose cumulative weight reaches the requested share. When every
weight is equal the weighted path is not used, so both agree exactly.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy import stats as sp_stats

from ..types import SkillResult

logger = logging.getLogger(__name__)

# Tolerance on cumulative weight comparisons
_CUM_EPS = 1e-12


def ci_percentiles(confidence_level: float) -> Tuple[float, float]:
    """Lower/upper percentile (0-1) bounding a central confidence_level% interval."""
    if not 0 < confidence_level <= 100:
        raise ValueError(f"confidence_level must be in (0, 100], got {confidence_level}")
    lower = (100.0 - confidence_level) / 200.0
    return lower, 1.0 - lower


def _index_at(n: int, share: float) -> int:
    return min(int(np.floor(n * share)), n - 1)


def _unweighted(values: np.ndarray, confidence_level: float):
    n = len(values)
    mean = float(values.mean())
    mid = n // 2
    if n % 2 == 0:
        median = float((values[mid - 1] + values[mid]) / 2)
    else:
        median = float(values[mid])
    lower, upper = ci_percentiles(confidence_level)
    ci_lower = float(values[_index_at(n, lower)])
    ci_upper = float(values[_index_at(n, upper)])
    std_error = float(sp_stats.sem(values)) if n > 1 else 0.0
    return mean, median, ci_lower, ci_upper, std_error


def weighted_quantile(values: np.ndarray, weights: np.ndarray, share: float) -> float:
    """
    First sorted value whose cumulative weight reaches share of the total.

    Args:
        values: Values sorted ascending
        weights: Matching non-negative weights
        share: Target share of total weight (0-1)
    """
    cumulative = np.cumsum(weights) / weights.sum()
    index = int(np.searchsorted(cumulative, share - _CUM_EPS, side='left'))
    return float(values[min(index, len(values) - 1)])


def _weighted(values: np.ndarray, weights: np.ndarray, confidence_level: float):
    total = weights.sum()
    mean = float(np.dot(values, weights) / total)
    median = weighted_quantile(values, weights, 0.5)
    lower, upper = ci_percentiles(confidence_level)
    ci_lower = weighted_quantile(values, weights, lower)
    ci_upper = weighted_quantile(values, weights, upper)

    # Kish effective sample size
    n_eff = total ** 2 / np.dot(weights, weights)
    variance = float(np.dot(weights, (values - mean) ** 2) / total)
    std_error = float(np.sqrt(variance / n_eff)) if n_eff > 1 else 0.0
    return mean, median, ci_lower, ci_upper, std_error


def compute_stats(
    values: Sequence[float],
    weights: Optional[Sequence[float]] = None,
    cost: float = 0.0,
    confidence_level: float = 95.0,
    skill: str = '',
    discount: float = 0.0,
    include_raw: bool = False,
    status: str = 'fresh',
) -> SkillResult:
    """
    Compute reportable statistics for one skill.

    Args:
        values: Raw per-run length deltas (any order)
        weights: Optional per-value importance weights
        cost: Skill cost; efficiency is 0 when cost <= 0
        confidence_level: Interval coverage in percent
        skill: Skill name to tag the result with
        discount: Discount percentage, carried through for reporting
        include_raw: Attach the sorted raw values to the result
        status: Result status

    Returns:
        SkillResult

    Raises:
        ValueError: If values is empty, weights mismatch or sum to zero
    """
    arr = np.asarray(values, dtype=np.float64)
    n = len(arr)
    if n == 0:
        raise ValueError(f"Cannot compute statistics for '{skill}' without results")

    order = np.argsort(arr, kind='stable')
    sorted_values = arr[order]

    use_weights = False
    if weights is not None:
        w = np.asarray(weights, dtype=np.float64)
        if len(w) != n:
            raise ValueError(f"Got {n} values but {len(w)} weights")
        if np.any(w < 0) or w.sum() <= 0:
            raise ValueError("weights must be non-negative with a positive sum")
        use_weights = not np.allclose(w, w[0], rtol=1e-12, atol=0.0)

    if use_weights:
        mean, median, ci_lower, ci_upper, std_error = _weighted(
            sorted_values, w[order], confidence_level
        )
    else:
        mean, median, ci_lower, ci_upper, std_error = _unweighted(
            sorted_values, confidence_level
        )

    return SkillResult(
        skill=skill,
        cost=cost,
        discount=discount,
        num_simulations=n,
        mean_length=mean,
        median_length=median,
        mean_length_per_cost=mean / cost if cost > 0 else 0.0,
        min_length=float(sorted_values[0]),
        max_length=float(sorted_values[-1]),
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        std_error=std_error,
        status=status,
        raw_results=sorted_values.tolist() if include_raw else None,
    )
