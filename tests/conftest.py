"""Shared fixtures."""

import pytest

from holdings_ledger.config import Config
from holdings_ledger.models import FilerIdentity, FilingInput, RawHolding
from holdings_ledger.periods import quarter_end_date
from holdings_ledger.storage.database import Database
from holdings_ledger.storage.report_store import FilerReportStore


@pytest.fixture
def config(tmp_path):
    return Config(base_dir=tmp_path)


@pytest.fixture
def db(config):
    with Database(config) as database:
        yield database


@pytest.fixture
def store(db, config):
    return FilerReportStore(db, config)


@pytest.fixture
def make_filing():
    """Factory for filings: holdings given as (cusip, issuer, value, shares[, sector])."""

    def _make(quarter, holdings, cik="0001067983", name="BERKSHIRE HATHAWAY INC", accession=None):
        raw = None
        if holdings is not None:
            raw = [
                RawHolding(
                    cusip=h[0],
                    issuer_name=h[1],
                    value=h[2],
                    shares=h[3],
                    title_of_class="COM",
                    sector=h[4] if len(h) > 4 else None,
                )
                for h in holdings
            ]
        return FilingInput(
            filer=FilerIdentity(cik=cik, name=name),
            period_of_report=quarter_end_date(quarter),
            accession_number=accession or f"{cik}-{quarter}",
            holdings=raw,
            quarter_token=quarter,
        )

    return _make
