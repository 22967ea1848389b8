"""Export report history and timelines to CSV and Parquet."""

from pathlib import Path

import pandas as pd

from ..analysis.timeline import HoldingsTimeline
from ..models import Filer, QuarterlyReport

HOLDING_COLUMNS = [
    "quarter",
    "period_of_report",
    "cusip",
    "issuer_name",
    "ticker",
    "sector",
    "title_of_class",
    "value",
    "shares",
    "percent_of_portfolio",
    "previous_value",
    "previous_shares",
    "value_change",
    "value_change_pct",
    "shares_change",
    "shares_change_pct",
    "change_type",
]


def report_to_dataframe(report: QuarterlyReport) -> pd.DataFrame:
    """Convert one report's holdings to a DataFrame."""
    rows = [
        {
            "quarter": report.quarter,
            "period_of_report": report.period_of_report.isoformat(),
            **h.to_dict(),
        }
        for h in report.holdings
    ]
    return pd.DataFrame(rows, columns=HOLDING_COLUMNS)


def history_to_dataframe(filer: Filer) -> pd.DataFrame:
    """All holdings across a filer's report history, newest quarter first."""
    frames = [report_to_dataframe(r) for r in filer.reports]
    if not frames:
        return pd.DataFrame(columns=HOLDING_COLUMNS)
    return pd.concat(frames, ignore_index=True)


def timeline_to_dataframe(timeline: HoldingsTimeline) -> pd.DataFrame:
    """
    Wide view of a timeline: one row per instrument, one value column per quarter.

    Quarters an instrument does not appear in are left empty.
    """
    rows = []
    for t in timeline.holdings:
        row = {
            "cusip": t.cusip,
            "issuer_name": t.issuer_name,
            "ticker": t.ticker,
            "sector": t.sector,
        }
        for point in t.quarterly_data:
            row[f"value_{point.quarter}"] = point.value
            row[f"change_{point.quarter}"] = point.change_type
        rows.append(row)

    columns = ["cusip", "issuer_name", "ticker", "sector"]
    for quarter in timeline.quarters:
        columns += [f"value_{quarter}", f"change_{quarter}"]
    return pd.DataFrame(rows, columns=columns)


def export_history_to_csv(filer: Filer, output_path: Path) -> Path:
    """
    Export a filer's full holdings history to CSV.

    Args:
        filer: The filer to export
        output_path: Directory to write the CSV file

    Returns:
        Path to the created CSV file
    """
    df = history_to_dataframe(filer)
    output_path.mkdir(parents=True, exist_ok=True)

    csv_path = output_path / f"{filer.cik}_holdings.csv"
    df.to_csv(csv_path, index=False)
    return csv_path


def export_history_to_parquet(filer: Filer, output_path: Path) -> Path:
    """
    Export a filer's full holdings history to Parquet.

    Args:
        filer: The filer to export
        output_path: Directory to write the Parquet file

    Returns:
        Path to the created Parquet file
    """
    df = history_to_dataframe(filer)
    output_path.mkdir(parents=True, exist_ok=True)

    parquet_path = output_path / f"{filer.cik}_holdings.parquet"
    df.to_parquet(parquet_path, index=False)
    return parquet_path


def export_timeline_to_csv(timeline: HoldingsTimeline, output_path: Path) -> Path:
    """Export a holdings timeline in wide format to CSV."""
    df = timeline_to_dataframe(timeline)
    output_path.mkdir(parents=True, exist_ok=True)

    csv_path = output_path / f"{timeline.cik}_timeline.csv"
    df.to_csv(csv_path, index=False)
    return csv_path
