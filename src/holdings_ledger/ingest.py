"""Batch ingestion of parsed filings."""

import json
import logging
import sqlite3
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path

import yaml

from .enrichment import MappingResolver
from .errors import HoldingsLedgerError
from .models import FilingInput
from .storage.report_store import FilerReportStore, UpsertResult

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Per-batch counters; one failed filing never undoes another's upsert."""

    total_processed: int = 0
    filers_created: int = 0
    filers_updated: int = 0
    reports_added: int = 0
    holdings_saved: int = 0
    qoq_calculated: int = 0
    errors: int = 0
    error_details: list[str] = field(default_factory=list)
    results: list[UpsertResult] = field(default_factory=list)

    def record(self, result: UpsertResult) -> None:
        self.total_processed += 1
        if result.filer_created:
            self.filers_created += 1
        else:
            self.filers_updated += 1
        self.reports_added += 1
        self.holdings_saved += result.holdings_saved
        self.qoq_calculated += result.qoq_calculated
        self.results.append(result)

    def record_error(self, label: str, error: Exception) -> None:
        self.errors += 1
        self.error_details.append(f"{label}: {error}")


def load_filings(path: Path) -> list[dict]:
    """
    Load raw filing mappings from a YAML or JSON file.

    The file holds a single filing mapping, a list of them, or a ``filings``
    list. Mappings are not validated here; ``ingest_filings`` parses each one
    so a malformed filing fails on its own.
    """
    with open(path) as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if data is None:
        return []
    if isinstance(data, dict) and "filings" in data:
        return list(data["filings"] or [])
    if isinstance(data, list):
        return data
    return [data]


def _label(filing: FilingInput) -> str:
    return filing.accession_number or f"{filing.filer.cik}/{filing.period_of_report}"


def _raw_label(item, position: int) -> str:
    if isinstance(item, dict):
        filer = item.get("filer") if isinstance(item.get("filer"), dict) else {}
        period = item.get("period_of_report") or item.get("quarter")
        return str(item.get("accession_number") or f"{filer.get('cik', '?')}/{period}")
    return f"filing #{position}"


def _parse(items: list[FilingInput | dict], result: BatchResult) -> list[FilingInput]:
    parsed = []
    for position, item in enumerate(items, 1):
        if isinstance(item, FilingInput):
            parsed.append(item)
            continue
        try:
            parsed.append(FilingInput.from_dict(item))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            label = _raw_label(item, position)
            logger.error("Error parsing filing %s: %s", label, e)
            result.record_error(label, e)
    return parsed


def ingest_filings(
    store: FilerReportStore,
    filings: list[FilingInput | dict],
    resolver: MappingResolver | None = None,
) -> BatchResult:
    """
    Upsert filings one after another.

    Args:
        store: Report store to write to
        filings: Parsed filings or raw filing mappings, ideally oldest period first per filer
        resolver: Optional offline ticker/sector resolver

    Returns:
        BatchResult with per-filing success and failure counts
    """
    result = BatchResult()
    logger.info("Starting institutional holdings processing for %d filings", len(filings))

    # Oldest first per filer keeps re-diffing of successors to a minimum
    ordered = sorted(
        _parse(filings, result),
        key=lambda f: (f.period_of_report is None, f.period_of_report or date.min, _label(f)),
    )

    for filing in ordered:
        label = _label(filing)
        try:
            if resolver is not None and filing.holdings:
                filing = replace(filing, holdings=resolver.enrich(filing.holdings))
            upsert = store.upsert_quarterly_report(filing)
        except (HoldingsLedgerError, ValueError, KeyError, TypeError, sqlite3.Error) as e:
            logger.error("Error processing filing %s: %s", label, e)
            result.record_error(label, e)
            continue

        result.record(upsert)
        logger.info(
            "Processed %s: %d holdings, %d QoQ changes",
            filing.filer.name or filing.filer.cik,
            upsert.holdings_saved,
            upsert.qoq_calculated,
        )

    logger.info(
        "Processing complete: %d processed, %d created, %d updated, %d errors",
        result.total_processed,
        result.filers_created,
        result.filers_updated,
        result.errors,
    )
    return result
