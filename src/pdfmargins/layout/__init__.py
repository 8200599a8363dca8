"""Two-pass page layout: statistics, planning and compositing."""

from .compositor import MarginCompositor, compose
from .planner import baseline_geometry, plan
from .statistics import StatisticsAggregator, aggregate

__all__ = [
    "MarginCompositor",
    "StatisticsAggregator",
    "aggregate",
    "baseline_geometry",
    "compose",
    "plan",
]
