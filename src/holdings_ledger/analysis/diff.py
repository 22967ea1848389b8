"""Quarter-over-quarter diff engine."""

import logging
from dataclasses import replace

from ..models import (
    DECREASED,
    EXITED,
    INCREASED,
    NEW,
    UNCHANGED,
    Holding,
    QuarterlyReport,
)
from ..periods import parse_period

logger = logging.getLogger(__name__)

# |shares change %| below this counts as unchanged (absorbs rounding in filings)
UNCHANGED_THRESHOLD_PCT = 0.01


def _pct_change(change: int, previous: int) -> float:
    """Percent change with a zero guard on the base."""
    if previous > 0:
        return change / previous * 100
    return 0.0


def classify_change(
    shares_change: int,
    shares_change_pct: float,
    threshold_pct: float = UNCHANGED_THRESHOLD_PCT,
) -> str:
    """Classify a matched holding by its share movement."""
    if abs(shares_change_pct) < threshold_pct:
        return UNCHANGED
    if shares_change > 0:
        return INCREASED
    return DECREASED


def compare_holding(
    current: Holding,
    previous: Holding | None,
    threshold_pct: float = UNCHANGED_THRESHOLD_PCT,
) -> Holding:
    """Return ``current`` with QoQ fields filled in against ``previous``."""
    if previous is None:
        return replace(
            current,
            previous_value=None,
            previous_shares=None,
            value_change=None,
            value_change_pct=None,
            shares_change=None,
            shares_change_pct=None,
            change_type=NEW,
        )

    value_change = current.value - previous.value
    shares_change = current.shares - previous.shares
    value_change_pct = _pct_change(value_change, previous.value)
    shares_change_pct = _pct_change(shares_change, previous.shares)

    return replace(
        current,
        previous_value=previous.value,
        previous_shares=previous.shares,
        value_change=value_change,
        value_change_pct=value_change_pct,
        shares_change=shares_change,
        shares_change_pct=shares_change_pct,
        change_type=classify_change(shares_change, shares_change_pct, threshold_pct),
    )


def exited_holding(previous: Holding) -> Holding:
    """Synthetic zero-value entry for a position that disappeared."""
    return Holding(
        cusip=previous.cusip,
        issuer_name=previous.issuer_name,
        value=0,
        shares=0,
        title_of_class=previous.title_of_class,
        share_type=previous.share_type,
        ticker=previous.ticker,
        sector=previous.sector,
        percent_of_portfolio=0.0,
        previous_value=previous.value,
        previous_shares=previous.shares,
        value_change=-previous.value,
        value_change_pct=-100.0,
        shares_change=-previous.shares,
        shares_change_pct=-100.0,
        change_type=EXITED,
    )


def diff_holdings(
    current: list[Holding],
    previous_report: QuarterlyReport | None,
    threshold_pct: float = UNCHANGED_THRESHOLD_PCT,
) -> list[Holding]:
    """
    Merge a quarter's holdings with the prior report.

    Args:
        current: This quarter's resolved holdings (QoQ fields unset)
        previous_report: Report to compare against, or None for a first report
        threshold_pct: Share-change percent below which a position is UNCHANGED

    Returns:
        Current holdings with QoQ fields and change_type set, followed by a
        synthetic EXITED entry for every prior instrument no longer held
    """
    if previous_report is None:
        return [compare_holding(h, None, threshold_pct) for h in current]

    # Exited entries of the prior report are derived, not positions held
    prev_by_cusip = {h.cusip: h for h in previous_report.active_holdings}

    merged = [compare_holding(h, prev_by_cusip.get(h.cusip), threshold_pct) for h in current]
    for h in merged:
        logger.debug("%s %s: %s shares change %s", previous_report.quarter, h.cusip, h.change_type, h.shares_change)

    current_cusips = {h.cusip for h in current}
    exited = [exited_holding(h) for h in prev_by_cusip.values() if h.cusip not in current_cusips]
    if exited:
        logger.info("Found %d exited positions", len(exited))

    return merged + exited


def count_qoq(holdings: list[Holding]) -> int:
    """Number of holdings that were compared against a prior position."""
    return sum(1 for h in holdings if h.change_type != NEW)


def select_previous_report(
    reports: list[QuarterlyReport],
    quarter: str,
) -> QuarterlyReport | None:
    """
    Find the report to diff ``quarter`` against.

    Tries the immediately preceding quarter, then the one before it to ride
    over a single missing filing. Returns None if neither exists.
    """
    by_quarter = {r.quarter: r for r in reports}
    prev = parse_period(quarter).previous()

    report = by_quarter.get(prev.token)
    if report is not None:
        return report

    two_back = prev.previous()
    report = by_quarter.get(two_back.token)
    if report is not None:
        logger.info("Using %s for comparison - %s missing", two_back.token, prev.token)
    return report
