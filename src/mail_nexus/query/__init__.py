"""Email filtering, sorting, and statistics."""

from .engine import QueryEngine, refine
from .filters import EmailFilters
from .statistics import StatisticsEngine, compute_stats

__all__ = [
    "EmailFilters",
    "QueryEngine",
    "StatisticsEngine",
    "compute_stats",
    "refine",
]
