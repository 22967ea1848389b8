"""Rollups and lookups over stored filers."""

import math
from dataclasses import dataclass, field

from ..models import CHANGE_TYPES, Filer

LIST_SORT_FIELDS = ("current_market_value", "current_holdings_count", "last_reported_quarter", "name")


@dataclass
class TopFiler:
    name: str
    cik: str
    quarter: str | None
    market_value: int
    holdings_count: int


@dataclass
class InstitutionalStats:
    total_filers: int
    total_market_value: int
    total_holdings: int
    change_type_breakdown: dict[str, int]
    top_filers: list[TopFiler] = field(default_factory=list)


@dataclass
class FilerPage:
    filers: list[Filer]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _market_value(filer: Filer) -> int:
    return filer.latest_activity.current_market_value if filer.latest_activity else 0


def institutional_stats(filers: list[Filer], top_n: int = 10) -> InstitutionalStats:
    """
    Aggregate statistics across filers.

    Holding counts and the change-type histogram come from each filer's
    latest report; market value from its latest-activity snapshot.
    """
    breakdown = {change_type: 0 for change_type in CHANGE_TYPES}
    total_value = 0
    total_holdings = 0

    for filer in filers:
        total_value += _market_value(filer)
        latest = filer.latest_report
        if latest is None:
            continue
        total_holdings += len(latest.holdings)
        for h in latest.holdings:
            if h.change_type in breakdown:
                breakdown[h.change_type] += 1

    ranked = sorted(
        (f for f in filers if _market_value(f)),
        key=_market_value,
        reverse=True,
    )[:top_n]

    return InstitutionalStats(
        total_filers=len(filers),
        total_market_value=total_value,
        total_holdings=total_holdings,
        change_type_breakdown=breakdown,
        top_filers=[
            TopFiler(
                name=f.name,
                cik=f.cik,
                quarter=f.latest_activity.last_reported_quarter,
                market_value=f.latest_activity.current_market_value,
                holdings_count=f.latest_activity.current_holdings_count,
            )
            for f in ranked
        ],
    )


def _matches(filer: Filer, query: str) -> bool:
    q = query.casefold()
    return q in filer.name.casefold() or q in filer.cik.casefold()


def search_filers(filers: list[Filer], query: str, limit: int | None = 10) -> list[Filer]:
    """Filers whose name or CIK contains ``query`` (case-insensitive); ``limit=None`` keeps all."""
    matches = [f for f in filers if _matches(f, query)]
    return matches if limit is None else matches[:limit]


def _sort_key(sort_by: str):
    if sort_by == "name":
        return lambda f: f.name.casefold()

    if sort_by == "last_reported_quarter":
        # Two-digit tokens do not sort across centuries; use the period end date
        return lambda f: f.latest_report.period_of_report.isoformat() if f.latest_report else ""

    return lambda f: getattr(f.latest_activity, sort_by) if f.latest_activity else 0


def list_filers(
    filers: list[Filer],
    sort_by: str = "current_market_value",
    descending: bool = True,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> FilerPage:
    """Sorted, optionally filtered, paginated filer listing."""
    if sort_by not in LIST_SORT_FIELDS:
        raise ValueError(f"Unknown sort field: {sort_by}")
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")

    selected = search_filers(filers, search, limit=None) if search else list(filers)
    selected.sort(key=_sort_key(sort_by), reverse=descending)

    start = (page - 1) * limit
    return FilerPage(
        filers=selected[start : start + limit],
        page=page,
        limit=limit,
        total=len(selected),
    )


def filer_summary(filer: Filer) -> dict:
    """Identity, latest activity and per-quarter summaries for one filer."""
    activity = filer.latest_activity
    return {
        "cik": filer.cik,
        "name": filer.name,
        "address": {
            "street1": filer.address.street1,
            "city": filer.address.city,
            "state": filer.address.state,
            "zip_code": filer.address.zip_code,
        },
        "latest_activity": {
            "last_reported_quarter": activity.last_reported_quarter,
            "last_filing_date": activity.last_filing_date.isoformat() if activity.last_filing_date else None,
            "current_holdings_count": activity.current_holdings_count,
            "current_market_value": activity.current_market_value,
            "last_updated": activity.last_updated,
        }
        if activity
        else None,
        "quarters": [
            {
                "quarter": r.quarter,
                "period_of_report": r.period_of_report.isoformat(),
                "holdings_count": r.summary.holdings_count,
                "market_value": r.summary.total_market_value,
            }
            for r in filer.reports
        ],
    }
