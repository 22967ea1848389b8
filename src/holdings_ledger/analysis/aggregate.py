"""Portfolio-level aggregation: weights, sector mix and QoQ summary."""

from collections import defaultdict
from dataclasses import dataclass, replace

from ..models import (
    DECREASED,
    EXITED,
    INCREASED,
    NEW,
    UNCHANGED,
    Holding,
    PortfolioChanges,
    QuarterlyReport,
    SectorSlice,
)

UNKNOWN_SECTOR = "Unknown"


@dataclass
class PortfolioAggregate:
    """Aggregates computed for one quarter's merged holdings."""

    holdings: list[Holding]  # merged holdings with percent_of_portfolio set
    total_market_value: int
    holdings_count: int
    sector_breakdown: list[SectorSlice]
    portfolio_changes: PortfolioChanges


def _share_of(value: int, total: int) -> float:
    return value / total * 100 if total > 0 else 0.0


def total_market_value(holdings: list[Holding]) -> int:
    """Sum of value over non-exited holdings."""
    return sum(h.value for h in holdings if not h.is_exited)


def apply_portfolio_weights(holdings: list[Holding], total: int) -> list[Holding]:
    """Set percent_of_portfolio on every holding; exited entries stay at 0."""
    return [
        replace(h, percent_of_portfolio=0.0 if h.is_exited else _share_of(h.value, total))
        for h in holdings
    ]


def compute_sector_breakdown(
    holdings: list[Holding],
    total: int,
    unknown_sector: str = UNKNOWN_SECTOR,
) -> list[SectorSlice]:
    """
    Group non-exited holdings by sector.

    Holdings without a resolved sector fall into ``unknown_sector``. Slices
    are sorted by value descending.
    """
    by_sector: dict[str, int] = defaultdict(int)
    for h in holdings:
        if h.is_exited:
            continue
        by_sector[h.sector or unknown_sector] += h.value

    slices = [
        SectorSlice(sector=sector, value=value, percentage=_share_of(value, total))
        for sector, value in by_sector.items()
    ]
    slices.sort(key=lambda s: s.value, reverse=True)
    return slices


def _count(holdings: list[Holding], change_type: str) -> int:
    return sum(1 for h in holdings if h.change_type == change_type)


def compute_portfolio_changes(
    holdings: list[Holding],
    total: int,
    previous_report: QuarterlyReport | None,
) -> PortfolioChanges:
    """Portfolio-level QoQ summary against the previous report."""
    if previous_report is None:
        return PortfolioChanges(new_positions=_count(holdings, NEW))

    previous_value = previous_report.summary.total_market_value
    value_change = total - previous_value
    current_count = sum(1 for h in holdings if not h.is_exited)

    return PortfolioChanges(
        previous_quarter=previous_report.quarter,
        value_change=value_change,
        value_change_pct=_share_of(value_change, previous_value),
        holdings_count_change=current_count - previous_report.summary.holdings_count,
        new_positions=_count(holdings, NEW),
        increased_positions=_count(holdings, INCREASED),
        decreased_positions=_count(holdings, DECREASED),
        exited_positions=_count(holdings, EXITED),
        unchanged_positions=_count(holdings, UNCHANGED),
    )


def aggregate_portfolio(
    merged: list[Holding],
    previous_report: QuarterlyReport | None,
    unknown_sector: str = UNKNOWN_SECTOR,
) -> PortfolioAggregate:
    """
    Compute totals, weights, sector mix and the QoQ summary for a quarter.

    Args:
        merged: Output of the diff engine (including EXITED entries)
        previous_report: The report the quarter was diffed against
        unknown_sector: Bucket name for holdings without a sector

    Returns:
        PortfolioAggregate
    """
    total = total_market_value(merged)
    weighted = apply_portfolio_weights(merged, total)

    return PortfolioAggregate(
        holdings=weighted,
        total_market_value=total,
        holdings_count=sum(1 for h in weighted if not h.is_exited),
        sector_breakdown=compute_sector_breakdown(weighted, total, unknown_sector),
        portfolio_changes=compute_portfolio_changes(weighted, total, previous_report),
    )
