"""
Song and platform analytics.
"""

from .aggregator import AnalyticsAggregator, trending_score

__all__ = ["AnalyticsAggregator", "trending_score"]
