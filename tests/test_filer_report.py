"""Tests for the Markdown filer report."""

import pytest

from holdings_ledger.errors import InvalidPeriodError
from holdings_ledger.models import Filer
from holdings_ledger.reports.filer_report import generate_filer_report


class TestFilerReport:
    def test_first_quarter(self, store, make_filing):
        store.upsert_quarterly_report(
            make_filing("25Q1", [("037833100", "APPLE INC", 2_500_000_000, 10_000, "Technology")])
        )
        report = generate_filer_report(store.get_filer("0001067983"))

        assert report.startswith("# BERKSHIRE HATHAWAY INC - 13F Holdings (25Q1)")
        assert "**Quarter:** 2025Q1" in report
        assert "$2.50B" in report
        assert "First reported quarter" in report
        assert "| Technology |" in report
        assert "## Exited Positions" not in report

    def test_changes_and_exits(self, store, make_filing):
        store.upsert_quarterly_report(
            make_filing("25Q1", [("037833100", "APPLE INC", 1000, 10), ("060505104", "BANK OF AMERICA", 500, 5)])
        )
        store.upsert_quarterly_report(
            make_filing("25Q2", [("037833100", "APPLE INC", 1000, 10), ("88160R101", "TESLA INC", 2000, 20)])
        )
        report = generate_filer_report(store.get_filer("0001067983"))

        assert "Compared against **25Q1**" in report
        assert "## New Positions" in report
        assert "- TESLA INC: $2K" in report
        assert "## Exited Positions" in report
        assert "- BANK OF AMERICA: was $500" in report
        assert "(+100.0%)" in report

    def test_specific_quarter(self, store, make_filing):
        store.upsert_quarterly_report(make_filing("25Q1", [("037833100", "APPLE INC", 1000, 10)]))
        store.upsert_quarterly_report(make_filing("25Q2", [("037833100", "APPLE INC", 1000, 10)]))
        report = generate_filer_report(store.get_filer("0001067983"), "25Q1")
        assert "(25Q1)" in report.splitlines()[0]

    def test_missing_quarter(self, store, make_filing):
        store.upsert_quarterly_report(make_filing("25Q1", [("037833100", "APPLE INC", 1000, 10)]))
        report = generate_filer_report(store.get_filer("0001067983"), "20Q1")
        assert "No report found for quarter 20Q1." in report

    def test_no_reports(self):
        report = generate_filer_report(Filer(cik="1", name="EMPTY LLC"))
        assert report == "# EMPTY LLC\n\nNo quarterly reports found."

    def test_quarter_forms_are_normalised(self, store, make_filing):
        store.upsert_quarterly_report(make_filing("25Q1", [("037833100", "APPLE INC", 1000, 10)]))
        store.upsert_quarterly_report(make_filing("25Q2", [("037833100", "APPLE INC", 1000, 10)]))
        filer = store.get_filer("0001067983")

        for quarter in ("25q1", "2025Q1", "2025q1"):
            assert generate_filer_report(filer, quarter).splitlines()[0].endswith("(25Q1)")

    def test_invalid_quarter(self, store, make_filing):
        store.upsert_quarterly_report(make_filing("25Q1", [("037833100", "APPLE INC", 1000, 10)]))
        with pytest.raises(InvalidPeriodError):
            generate_filer_report(store.get_filer("0001067983"), "25Q5")
