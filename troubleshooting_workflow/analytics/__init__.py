"""
Analytics Layer - Derived Progress, Timing and Trend Numbers
"""

from troubleshooting_workflow.analytics.aggregator import (
    BOTTLENECK_FACTOR,
    compute_analytics,
    compute_category_completion,
    compute_metrics,
    compute_status_distribution,
    find_bottlenecks,
    format_duration,
    parse_time_range,
)

__all__ = [
    "BOTTLENECK_FACTOR",
    "compute_analytics",
    "compute_category_completion",
    "compute_metrics",
    "compute_status_distribution",
    "find_bottlenecks",
    "format_duration",
    "parse_time_range",
]
