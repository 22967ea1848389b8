"""Filer report generator."""

from ..models import EXITED, NEW, Filer, Holding
from ..periods import parse_period, period_of


def _format_value(value: int) -> str:
    """Format a USD value for display."""
    if value >= 1_000_000_000:
        return f"${value / 1_000_000_000:.2f}B"
    elif value >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    elif value >= 1_000:
        return f"${value / 1_000:.0f}K"
    else:
        return f"${value}"


def _format_change(delta: int | None) -> str:
    """Format a value change with sign."""
    if delta is None:
        return "N/A"
    if delta >= 0:
        return f"+{_format_value(delta)}"
    else:
        return f"-{_format_value(abs(delta))}"


def _format_pct(pct: float | None, signed: bool = False) -> str:
    """Format a percentage (already scaled to 0-100)."""
    if pct is None:
        return "N/A"
    if signed:
        return f"{pct:+.1f}%"
    return f"{pct:.2f}%"


def _display_name(h: Holding) -> str:
    if h.ticker:
        return f"{h.issuer_name} ({h.ticker})"
    return h.issuer_name


def generate_filer_report(filer: Filer, quarter: str | None = None, top: int = 10) -> str:
    """
    Generate a Markdown report for one quarter of a filer.

    Args:
        filer: Filer with report history
        quarter: Period token to report on, ``YYQn`` or ``YYYYQn`` (default: latest)
        top: Number of holdings in the top-holdings table

    Returns:
        Markdown report as string
    """
    if not filer.reports:
        return f"# {filer.name}\n\nNo quarterly reports found."

    if quarter:
        quarter = parse_period(quarter).token
    report = filer.report_for(quarter) if quarter else filer.reports[0]
    if report is None:
        return f"# {filer.name}\n\nNo report found for quarter {quarter}."

    active = sorted(report.active_holdings, key=lambda h: h.value, reverse=True)
    changes = report.portfolio_changes
    lines: list[str] = []

    # Header
    lines.append(f"# {filer.name} - 13F Holdings ({report.quarter})")
    lines.append("")
    lines.append(f"**CIK:** {filer.cik}")
    lines.append(f"**Period of Report:** {report.period_of_report.isoformat()}")
    lines.append(f"**Quarter:** {period_of(report.period_of_report).label}")
    if report.filing_date:
        lines.append(f"**Filing Date:** {report.filing_date.isoformat()}")
    if report.is_amendment:
        lines.append("**Note:** This is an amended filing")
    lines.append(f"**Total Portfolio Value:** {_format_value(report.summary.total_market_value)}")
    lines.append(f"**Number of Positions:** {report.summary.holdings_count}")
    lines.append("")

    # Top holdings
    lines.append(f"## Top {top} Holdings")
    lines.append("")
    lines.append("| Rank | Issuer | CUSIP | Value | Weight | Change |")
    lines.append("|------|--------|-------|-------|--------|--------|")
    for i, h in enumerate(active[:top], 1):
        lines.append(
            f"| {i} | {_display_name(h)} | {h.cusip} | {_format_value(h.value)} "
            f"| {_format_pct(h.percent_of_portfolio)} | {h.change_type} |"
        )
    lines.append("")

    # Portfolio changes
    lines.append("## Portfolio Changes")
    lines.append("")
    if changes.previous_quarter is None:
        lines.append("First reported quarter; no prior period to compare against.")
    else:
        lines.append(f"Compared against **{changes.previous_quarter}**.")
        lines.append("")
        lines.append(
            f"- Value change: {_format_change(changes.value_change)} "
            f"({_format_pct(changes.value_change_pct, signed=True)})"
        )
        lines.append(f"- Holdings count change: {changes.holdings_count_change:+d}")
        lines.append(f"- Increased: {changes.increased_positions}")
        lines.append(f"- Decreased: {changes.decreased_positions}")
        lines.append(f"- Unchanged: {changes.unchanged_positions}")
        lines.append(f"- Exited: {changes.exited_positions}")
    lines.append(f"- New: {changes.new_positions}")
    lines.append("")

    # Sector mix
    lines.append("## Sector Breakdown")
    lines.append("")
    lines.append("| Sector | Value | Weight |")
    lines.append("|--------|-------|--------|")
    for s in report.sector_breakdown:
        lines.append(f"| {s.sector} | {_format_value(s.value)} | {_format_pct(s.percentage)} |")
    lines.append("")

    new_positions = [h for h in active if h.change_type == NEW]
    if new_positions and changes.previous_quarter is not None:
        lines.append("## New Positions")
        lines.append("")
        for h in new_positions[:top]:
            lines.append(f"- {_display_name(h)}: {_format_value(h.value)}")
        lines.append("")

    exited = sorted(
        (h for h in report.holdings if h.change_type == EXITED),
        key=lambda h: h.previous_value or 0,
        reverse=True,
    )
    if exited:
        lines.append("## Exited Positions")
        lines.append("")
        for h in exited[:top]:
            lines.append(f"- {_display_name(h)}: was {_format_value(h.previous_value or 0)}")
        lines.append("")

    return "\n".join(lines)
