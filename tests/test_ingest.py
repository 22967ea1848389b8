"""Tests for batch ingestion."""

import json
from datetime import date

from holdings_ledger.enrichment import MappingResolver
from holdings_ledger.ingest import ingest_filings, load_filings
from holdings_ledger.models import FilingInput

FILING_YAML = """\
filings:
  - filer:
      cik: "0001067983"
      name: BERKSHIRE HATHAWAY INC
      address:
        city: OMAHA
        state: NE
    period_of_report: 2025-03-31
    filing_date: 2025-05-15
    accession_number: 0000950123-25-005701
    holdings:
      - cusip: "037833100"
        issuer_name: APPLE INC
        value: 1000000
        shares: 10000
  - filer:
      cik: "0001067983"
      name: BERKSHIRE HATHAWAY INC
    quarter: 25Q2
    accession_number: 0000950123-25-008343
    form_type: 13F-HR/A
    holdings: []
"""


def _parsed(path):
    return [FilingInput.from_dict(item) for item in load_filings(path)]


class TestLoadFilings:
    def test_yaml_list(self, tmp_path):
        path = tmp_path / "filings.yaml"
        path.write_text(FILING_YAML)

        filings = _parsed(path)
        assert len(filings) == 2

        first = filings[0]
        assert first.filer.cik == "0001067983"
        assert first.filer.address.city == "OMAHA"
        assert first.period_of_report == date(2025, 3, 31)
        assert first.filing_date == date(2025, 5, 15)
        assert first.quarter == "25Q1"
        assert first.holdings[0].value == 1_000_000

        second = filings[1]
        assert second.period_of_report == date(2025, 6, 30)
        assert second.quarter == "25Q2"
        assert second.holdings == []
        assert second.form_type == "13F-HR/A"

    def test_json_single_filing(self, tmp_path):
        path = tmp_path / "filing.json"
        path.write_text(
            json.dumps(
                {
                    "filer": {"cik": "0001364742", "name": "BLACKROCK INC"},
                    "period_of_report": "2024-12-31",
                    "accession_number": "acc-1",
                    "holdings": [{"cusip": "594918104", "issuer_name": "MICROSOFT", "value": 5, "shares": 1}],
                }
            )
        )
        filings = _parsed(path)
        assert len(filings) == 1
        assert filings[0].quarter == "24Q4"

    def test_missing_holdings_kept_as_none(self, tmp_path):
        path = tmp_path / "filing.yaml"
        path.write_text('filer:\n  cik: "1"\nquarter: 25Q1\n')
        assert _parsed(path)[0].holdings is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_filings(path) == []


class TestIngestFilings:
    def test_batch_counters(self, store, make_filing):
        filings = [
            make_filing("25Q2", [("037833100", "APPLE INC", 200, 20)]),
            make_filing("25Q1", [("037833100", "APPLE INC", 100, 10)]),
            make_filing("25Q1", [("594918104", "MICROSOFT", 50, 5)], cik="0001364742", name="BLACKROCK INC"),
        ]
        result = ingest_filings(store, filings)

        assert result.total_processed == 3
        assert result.filers_created == 2
        assert result.filers_updated == 1
        assert result.reports_added == 3
        assert result.holdings_saved == 3
        assert result.qoq_calculated == 1
        assert result.errors == 0

    def test_oldest_period_first(self, store, make_filing):
        filings = [
            make_filing("25Q2", [("037833100", "APPLE INC", 200, 20)]),
            make_filing("25Q1", [("037833100", "APPLE INC", 100, 10)]),
        ]
        result = ingest_filings(store, filings)
        assert [r.quarter for r in result.results] == ["25Q1", "25Q2"]
        assert all(not r.rediffed_quarters for r in result.results)

    def test_partial_failure(self, store, make_filing):
        filings = [
            make_filing("25Q1", [("037833100", "APPLE INC", 100, 10)]),
            make_filing("25Q2", None, accession="bad-filing"),
            make_filing("25Q3", [("037833100", "APPLE INC", 300, 30)]),
        ]
        result = ingest_filings(store, filings)

        assert result.total_processed == 2
        assert result.errors == 1
        assert result.error_details[0].startswith("bad-filing")

        filer = store.get_filer("0001067983")
        assert [r.quarter for r in filer.reports] == ["25Q3", "25Q1"]

    def test_resolver_enriches_holdings(self, store, make_filing):
        resolver = MappingResolver(tickers={"037833100": "AAPL"}, sectors={"AAPL": "Technology"})
        ingest_filings(store, [make_filing("25Q1", [("037833100", "APPLE INC", 100, 10)])], resolver)

        report = store.get_filer("0001067983").reports[0]
        assert report.holdings[0].ticker == "AAPL"
        assert report.sector_breakdown[0].sector == "Technology"

    def test_malformed_filing_does_not_stop_batch(self, store, tmp_path):
        path = tmp_path / "batch.yaml"
        path.write_text(
            """\
filings:
  - filer: {cik: "1", name: GOOD CAPITAL}
    quarter: 25Q1
    accession_number: good-1
    holdings:
      - {cusip: "037833100", issuer_name: APPLE INC, value: 100, shares: 10}
  - filer: {cik: "2", name: BROKEN CAPITAL}
    quarter: 25Q1
    accession_number: broken-1
    holdings:
      - {issuer_name: NO IDENTIFIER INC, value: 100, shares: 10}
  - filer: {cik: "3", name: BAD DATE CAPITAL}
    period_of_report: not-a-date
    holdings: []
  - filer: {cik: "4", name: BAD ADDRESS CAPITAL, address: {country: US}}
    quarter: 25Q1
    holdings: []
"""
        )
        result = ingest_filings(store, load_filings(path))

        assert result.total_processed == 1
        assert result.errors == 3
        assert result.error_details[0].startswith("broken-1")
        assert result.error_details[1].startswith("3/not-a-date")
        assert [f.cik for f in store.all_filers()] == ["1"]

    def test_non_mapping_entry(self, store, make_filing):
        result = ingest_filings(store, ["not a filing", make_filing("25Q1", [])])
        assert result.total_processed == 1
        assert result.error_details == ["filing #1: 'str' object has no attribute 'get'"]
