"""Statistics aggregation for skill results."""

from .stats import compute_stats, weighted_quantile, ci_percentiles

__all__ = ['compute_stats', 'weighted_quantile', 'ci_percentiles']
