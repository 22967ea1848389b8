"""Tests for the command line interface."""

import json

import pytest
from click.testing import CliRunner

from holdings_ledger.cli import cli

FILINGS = """\
filings:
  - filer:
      cik: "0001067983"
      name: BERKSHIRE HATHAWAY INC
    quarter: 25Q1
    accession_number: acc-25q1
    holdings:
      - {cusip: "037833100", issuer_name: APPLE INC, value: 1000, shares: 10}
      - {cusip: "060505104", issuer_name: BANK OF AMERICA CORP, value: 500, shares: 5}
  - filer:
      cik: "0001067983"
      name: BERKSHIRE HATHAWAY INC
    quarter: 25Q2
    accession_number: acc-25q2
    holdings:
      - {cusip: "037833100", issuer_name: APPLE INC, value: 2000, shares: 20}
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def home(tmp_path, runner):
    filings = tmp_path / "filings.yaml"
    filings.write_text(FILINGS)
    result = runner.invoke(cli, ["--home", str(tmp_path), "ingest", str(filings)], obj={})
    assert result.exit_code == 0, result.output
    return tmp_path


def _run(runner, home, *args):
    return runner.invoke(cli, ["--home", str(home), *args], obj={})


class TestIngest:
    def test_summary_line(self, runner, tmp_path):
        filings = tmp_path / "filings.yaml"
        filings.write_text(FILINGS)
        result = _run(runner, tmp_path, "ingest", str(filings))

        assert result.exit_code == 0
        assert "Processed 2 filing(s): 1 filer(s) created, 1 updated, 0 error(s)" in result.output

    def test_bad_filing_reported(self, runner, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("filings:\n  - quarter: 25Q9\n")
        result = _run(runner, tmp_path, "ingest", str(bad))
        assert result.exit_code != 0
        assert "Processed 0 filing(s)" in result.output

    def test_malformed_filing_is_isolated(self, runner, tmp_path):
        batch = tmp_path / "batch.yaml"
        batch.write_text(
            "filings:\n"
            "  - filer: {cik: \"1\", name: GOOD CAPITAL}\n"
            "    quarter: 25Q1\n"
            "    holdings:\n"
            "      - {cusip: \"037833100\", issuer_name: APPLE INC, value: 100, shares: 10}\n"
            "  - filer: {cik: \"2\", name: BROKEN CAPITAL}\n"
            "    quarter: 25Q1\n"
            "    holdings:\n"
            "      - {issuer_name: NO IDENTIFIER INC, value: 100, shares: 10}\n"
        )
        result = _run(runner, tmp_path, "ingest", str(batch))

        assert result.exit_code == 0
        assert "Processed 1 filing(s): 1 filer(s) created, 0 updated, 1 error(s)" in result.output

    def test_unparseable_file_does_not_stop_others(self, runner, tmp_path):
        broken = tmp_path / "broken.yaml"
        broken.write_text("filings: [\n")
        good = tmp_path / "filings.yaml"
        good.write_text(FILINGS)
        result = _run(runner, tmp_path, "ingest", str(broken), str(good))

        assert result.exit_code == 0
        assert "Could not load" in result.output
        assert "Processed 2 filing(s): 1 filer(s) created, 1 updated, 1 error(s)" in result.output


class TestQueries:
    def test_filers_empty(self, runner, tmp_path):
        result = _run(runner, tmp_path, "filers")
        assert "No filers stored" in result.output

    def test_filers(self, runner, home):
        result = _run(runner, home, "filers")
        assert result.exit_code == 0
        assert "BERKSHIRE" in result.output

    def test_filer_json(self, runner, home):
        result = _run(runner, home, "filer", "0001067983")
        data = json.loads(result.output)
        assert data["latest_activity"]["last_reported_quarter"] == "25Q2"

    def test_unknown_filer(self, runner, home):
        result = _run(runner, home, "filer", "42")
        assert result.exit_code != 0
        assert "Filer not found with CIK: 42" in result.output

    def test_holdings_json(self, runner, home):
        result = _run(runner, home, "holdings", "0001067983", "--json", "--change-type", "EXITED")
        data = json.loads(result.output)
        assert data["quarters"] == ["25Q2", "25Q1"]
        assert [h["cusip"] for h in data["holdings"]] == ["060505104"]
        assert set(data["sector_breakdown_by_quarter"]) == {"25Q2", "25Q1"}

    def test_stats(self, runner, home):
        result = _run(runner, home, "stats")
        assert result.exit_code == 0
        assert "Filers: 1" in result.output
        assert "Total market value: $2,000" in result.output


class TestOutputs:
    def test_report_to_file(self, runner, home):
        out = home / "report.md"
        result = _run(runner, home, "report", "0001067983", "-o", str(out))
        assert result.exit_code == 0
        assert out.read_text().startswith("# BERKSHIRE HATHAWAY INC - 13F Holdings (25Q2)")

    def test_export_csv(self, runner, home):
        result = _run(runner, home, "export", "0001067983")
        assert result.exit_code == 0
        assert (home / "artifacts" / "exports" / "0001067983_holdings.csv").exists()

    def test_export_timeline(self, runner, home):
        result = _run(runner, home, "export", "0001067983", "--format", "timeline", "-o", str(home / "out"))
        assert result.exit_code == 0
        assert (home / "out" / "0001067983_timeline.csv").exists()

    @pytest.mark.parametrize("quarter", ["25q1", "2025Q1", " 25Q1 "])
    def test_report_quarter_forms(self, runner, home, quarter):
        out = home / "q1.md"
        result = _run(runner, home, "report", "0001067983", "--quarter", quarter, "-o", str(out))
        assert result.exit_code == 0
        assert out.read_text().startswith("# BERKSHIRE HATHAWAY INC - 13F Holdings (25Q1)")

    def test_report_invalid_quarter(self, runner, home):
        result = _run(runner, home, "report", "0001067983", "--quarter", "25Q9")
        assert result.exit_code != 0
        assert "Invalid period token" in result.output


class TestSettings:
    def test_show(self, runner, tmp_path):
        result = _run(runner, tmp_path, "settings")
        assert result.exit_code == 0
        assert "default_quarters: 4" in result.output
        assert "unknown_sector: Unknown" in result.output

    def test_save_and_use(self, runner, home):
        result = _run(runner, home, "settings", "default_quarters", "1")
        assert result.exit_code == 0
        assert (home / "data" / "settings.yaml").exists()

        result = _run(runner, home, "holdings", "0001067983", "--json")
        assert json.loads(result.output)["quarters"] == ["25Q2"]

    def test_invalid_value(self, runner, tmp_path):
        result = _run(runner, tmp_path, "settings", "top_filers", "many")
        assert result.exit_code != 0
        assert "Invalid value for top_filers" in result.output
