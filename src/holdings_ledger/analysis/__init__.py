"""Analysis tools: diff engine, aggregation, timelines, rollups."""

from .aggregate import aggregate_portfolio
from .diff import diff_holdings, select_previous_report
from .stats import institutional_stats
from .timeline import holdings_timeline

__all__ = [
    "aggregate_portfolio",
    "diff_holdings",
    "select_previous_report",
    "institutional_stats",
    "holdings_timeline",
]
