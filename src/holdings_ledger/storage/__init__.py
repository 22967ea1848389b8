"""SQLite storage, report store and data export."""

from .database import Database
from .exports import export_history_to_csv, export_history_to_parquet, export_timeline_to_csv
from .report_store import FilerReportStore, UpsertResult

__all__ = [
    "Database",
    "FilerReportStore",
    "UpsertResult",
    "export_history_to_csv",
    "export_history_to_parquet",
    "export_timeline_to_csv",
]
