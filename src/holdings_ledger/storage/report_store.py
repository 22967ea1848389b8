"""Filer report store: versioned upsert of quarterly reports.

Each ingestion is a read-modify-write of a single filer row. The cycle runs
under a per-CIK lock and the final write is conditional on the row version
read at the start, so two writers for the same filer can never silently
drop each other's report.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date

from ..analysis.aggregate import aggregate_portfolio
from ..analysis.diff import count_qoq, diff_holdings, select_previous_report
from ..analysis.timeline import SORT_LATEST_VALUE, HoldingsTimeline, holdings_timeline
from ..config import Config
from ..enrichment import deduplicate_holdings
from ..errors import ConcurrentUpdateError, FilerNotFoundError, FilingValidationError
from ..models import (
    Address,
    Filer,
    FilingInput,
    Holding,
    QuarterlyReport,
    RawHolding,
    ReportSummary,
)
from ..periods import InvalidPeriodError, parse_period
from .database import Database

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Outcome of one quarterly-report upsert."""

    cik: str
    quarter: str
    filer_created: bool
    holdings_saved: int
    qoq_calculated: int
    replaced: bool = False
    rediffed_quarters: list[str] = field(default_factory=list)


def validate_filing(filing: FilingInput) -> tuple[str, date]:
    """
    Check a filing before anything is read or written.

    Returns:
        (period token, period end date); the date falls back to the quarter end
        when the filing only carries a token

    Raises:
        FilingValidationError: If the CIK, period or holdings are missing or malformed
    """
    if not filing.filer or not (filing.filer.cik or "").strip():
        raise FilingValidationError("CIK is required but not found in filer data")
    if filing.holdings is None:
        raise FilingValidationError(
            f"No holdings supplied for filing {filing.accession_number or '?'}"
        )
    try:
        quarter = filing.quarter
    except InvalidPeriodError as e:
        raise FilingValidationError(str(e)) from e
    return quarter, filing.period_of_report or parse_period(quarter).end_date()


def build_quarterly_report(
    reports: list[QuarterlyReport],
    quarter: str,
    holdings: list[RawHolding],
    period_of_report: date,
    filing_date: date | None,
    accession_number: str,
    form_type: str,
    config: Config,
) -> QuarterlyReport:
    """
    Diff and aggregate one quarter against the filer's other reports.

    ``reports`` must not contain a report for ``quarter`` itself.
    """
    previous = select_previous_report(reports, quarter)
    current = [Holding.from_raw(h) for h in deduplicate_holdings(holdings)]

    merged = diff_holdings(current, previous, config.unchanged_threshold_pct)
    aggregate = aggregate_portfolio(merged, previous, config.unknown_sector)

    return QuarterlyReport(
        quarter=quarter,
        period_of_report=period_of_report,
        filing_date=filing_date,
        accession_number=accession_number,
        form_type=form_type,
        summary=ReportSummary(
            holdings_count=aggregate.holdings_count,
            total_market_value=aggregate.total_market_value,
        ),
        sector_breakdown=aggregate.sector_breakdown,
        portfolio_changes=aggregate.portfolio_changes,
        holdings=aggregate.holdings,
    )


class FilerReportStore:
    """Persists filers and their quarterly report history."""

    def __init__(self, db: Database, config: Config) -> None:
        self.db = db
        self.config = config
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, cik: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(cik)
            if lock is None:
                lock = self._locks[cik] = threading.Lock()
            return lock

    # Reads

    def get_filer(self, cik: str) -> Filer:
        filer = self.db.get_filer(cik)
        if filer is None:
            raise FilerNotFoundError(cik)
        return filer

    def all_filers(self) -> list[Filer]:
        return self.db.get_all_filers()

    def holdings_timeline(
        self,
        cik: str,
        quarter_count: int | None = None,
        sort_by: str = SORT_LATEST_VALUE,
        change_type: str | None = None,
    ) -> HoldingsTimeline:
        """Instrument-centric view of a filer's most recent quarters."""
        filer = self.get_filer(cik)
        return holdings_timeline(
            filer,
            quarter_count or self.config.default_quarters,
            sort_by,
            change_type,
        )

    # Writes

    def upsert_quarterly_report(self, filing: FilingInput) -> UpsertResult:
        """
        Insert or replace the report for a filing's period.

        Re-ingesting a period replaces the stored report wholesale. Nothing
        is written unless the whole diff/aggregate cycle succeeds.

        Raises:
            FilingValidationError: If the filing is rejected before any mutation
            ConcurrentUpdateError: If the row kept changing under us past the retry budget
        """
        quarter, period_of_report = validate_filing(filing)
        cik = filing.filer.cik.strip()

        with self._lock_for(cik):
            retries = self.config.max_write_retries
            for attempt in range(1, retries + 1):
                try:
                    return self._upsert_once(cik, quarter, period_of_report, filing)
                except ConcurrentUpdateError:
                    logger.warning(
                        "Filer %s changed during upsert of %s, retrying (%d/%d)",
                        cik,
                        quarter,
                        attempt,
                        retries,
                    )
            return self._upsert_once(cik, quarter, period_of_report, filing)

    def _upsert_once(
        self, cik: str, quarter: str, period_of_report: date, filing: FilingInput
    ) -> UpsertResult:
        filer = self.db.get_filer(cik)
        filer_created = filer is None
        identity = filing.filer

        if filer is None:
            filer = Filer(cik=cik, name=identity.name or f"CIK:{cik}", address=identity.address or Address())
            logger.info("Created new filer: %s (CIK: %s)", filer.name, cik)
        else:
            filer.name = identity.name or filer.name
            filer.address = filer.address.merged_with(identity.address)

        replaced = filer.remove_report(quarter) is not None
        if replaced:
            logger.warning("Quarter %s already exists for %s. Replacing with new data.", quarter, filer.name)

        report = build_quarterly_report(
            filer.reports,
            quarter,
            filing.holdings,
            period_of_report,
            filing.filing_date,
            filing.accession_number,
            filing.form_type,
            self.config,
        )
        filer.reports.append(report)
        filer.sort_reports()

        rediffed = self._rediff_successors(filer, report)
        filer.refresh_latest_activity()
        self.db.save_filer(filer)

        result = UpsertResult(
            cik=cik,
            quarter=quarter,
            filer_created=filer_created,
            holdings_saved=len(report.holdings),
            qoq_calculated=count_qoq(report.holdings),
            replaced=replaced,
            rediffed_quarters=rediffed,
        )
        logger.info(
            "Saved %s for %s: %d holdings, %d QoQ changes, portfolio %d",
            quarter,
            filer.name,
            report.summary.holdings_count,
            result.qoq_calculated,
            report.summary.total_market_value,
        )
        return result

    def _rediff_successors(self, filer: Filer, inserted: QuarterlyReport) -> list[str]:
        """
        Re-diff newer reports whose comparison base is now ``inserted``.

        Covers late (out-of-order) filings and replacements of a quarter that
        later reports were already diffed against.
        """
        rediffed = []

        # oldest first so each rebuilt report sees its own predecessors settled
        for report in sorted(filer.reports, key=lambda r: r.period_of_report):
            if report.period_of_report <= inserted.period_of_report:
                continue
            others = [r for r in filer.reports if r is not report]
            if select_previous_report(others, report.quarter) is not inserted:
                continue

            rebuilt = build_quarterly_report(
                others,
                report.quarter,
                [h.to_raw() for h in report.active_holdings],
                report.period_of_report,
                report.filing_date,
                report.accession_number,
                report.form_type,
                self.config,
            )
            filer.reports[filer.reports.index(report)] = rebuilt
            rediffed.append(report.quarter)
            logger.info("Re-diffed %s against %s", report.quarter, inserted.quarter)

        return rediffed
