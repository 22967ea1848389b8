"""Instrument-centric timelines over a filer's recent quarters.

Stored reports are quarter-centric (quarter -> holdings). Dashboards want the
transpose: one row per instrument with a data point per quarter. Every
instrument's data points follow the order of the returned ``quarters`` list;
a quarter in which the instrument does not appear is skipped, never padded.
"""

from dataclasses import asdict, dataclass, field

from ..models import CHANGE_TYPES, NEW, Filer, QuarterlyReport, SectorSlice

SORT_LATEST_VALUE = "latestValue"
SORT_NAME = "name"
SORT_NONE = "none"
SORT_OPTIONS = (SORT_LATEST_VALUE, SORT_NAME, SORT_NONE)


@dataclass
class QuarterPoint:
    quarter: str
    value: int
    shares: int
    percent_of_portfolio: float
    change_from_prev_quarter: float | None
    change_type: str


@dataclass
class InstrumentTimeline:
    cusip: str
    issuer_name: str
    ticker: str | None
    sector: str | None
    quarterly_data: list[QuarterPoint] = field(default_factory=list)

    def point_for(self, quarter: str) -> QuarterPoint | None:
        for point in self.quarterly_data:
            if point.quarter == quarter:
                return point
        return None

    def has_change_type(self, change_type: str) -> bool:
        return any(p.change_type == change_type for p in self.quarterly_data)


@dataclass
class HoldingsTimeline:
    filer_name: str
    cik: str
    latest_quarter: str
    quarters: list[str]
    holdings: list[InstrumentTimeline]
    sector_breakdown_by_quarter: dict[str, list[SectorSlice]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def pivot_reports(reports: list[QuarterlyReport]) -> dict[str, InstrumentTimeline]:
    """Transpose quarter -> holdings into instrument -> quarters.

    ``reports`` are expected newest first; data points are aligned to that
    order afterwards regardless.
    """
    by_cusip: dict[str, InstrumentTimeline] = {}

    for report in reports:
        for h in report.holdings:
            timeline = by_cusip.get(h.cusip)
            if timeline is None:
                timeline = InstrumentTimeline(
                    cusip=h.cusip,
                    issuer_name=h.issuer_name,
                    ticker=h.ticker,
                    sector=h.sector,
                )
                by_cusip[h.cusip] = timeline
            else:
                timeline.ticker = timeline.ticker or h.ticker
                timeline.sector = timeline.sector or h.sector

            timeline.quarterly_data.append(
                QuarterPoint(
                    quarter=report.quarter,
                    value=h.value,
                    shares=h.shares,
                    percent_of_portfolio=h.percent_of_portfolio or 0.0,
                    change_from_prev_quarter=h.value_change_pct,
                    change_type=h.change_type or NEW,
                )
            )

    order = {r.quarter: i for i, r in enumerate(reports)}
    for timeline in by_cusip.values():
        timeline.quarterly_data.sort(key=lambda p: order[p.quarter])

    return by_cusip


def _latest_value(timeline: InstrumentTimeline, newest_quarter: str) -> int:
    point = timeline.point_for(newest_quarter)
    return point.value if point else 0


def build_timeline(
    reports: list[QuarterlyReport],
    quarter_count: int = 4,
    sort_by: str = SORT_LATEST_VALUE,
    change_type: str | None = None,
) -> tuple[list[str], list[InstrumentTimeline]]:
    """
    Pivot the ``quarter_count`` most recent reports.

    Args:
        reports: Report history, newest first
        quarter_count: Number of quarters to include
        sort_by: "latestValue" (descending), "name" (ascending) or "none"
        change_type: Keep only instruments with at least one data point of this type

    Returns:
        (quarters, holdings)
    """
    if quarter_count < 1:
        raise ValueError(f"quarter_count must be positive, got {quarter_count}")
    if sort_by not in SORT_OPTIONS:
        raise ValueError(f"Unknown sort option: {sort_by}")
    if change_type is not None and change_type not in CHANGE_TYPES:
        raise ValueError(f"Unknown change type: {change_type}")

    recent = reports[:quarter_count]
    quarters = [r.quarter for r in recent]
    holdings = list(pivot_reports(recent).values())

    if change_type:
        holdings = [t for t in holdings if t.has_change_type(change_type)]

    if sort_by == SORT_LATEST_VALUE and quarters:
        holdings.sort(key=lambda t: _latest_value(t, quarters[0]), reverse=True)
    elif sort_by == SORT_NAME:
        holdings.sort(key=lambda t: t.issuer_name.casefold())

    return quarters, holdings


def holdings_timeline(
    filer: Filer,
    quarter_count: int = 4,
    sort_by: str = SORT_LATEST_VALUE,
    change_type: str | None = None,
) -> HoldingsTimeline:
    """Instrument-centric view of a filer's recent quarters, with each quarter's sector mix."""
    quarters, holdings = build_timeline(filer.reports, quarter_count, sort_by, change_type)
    return HoldingsTimeline(
        filer_name=filer.name,
        cik=filer.cik,
        latest_quarter=quarters[0] if quarters else "N/A",
        quarters=quarters,
        holdings=holdings,
        sector_breakdown_by_quarter={r.quarter: list(r.sector_breakdown) for r in filer.reports[: len(quarters)]},
    )
