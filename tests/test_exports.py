"""Tests for CSV/Parquet exports."""

import pandas as pd
import pytest

from holdings_ledger.storage.exports import (
    HOLDING_COLUMNS,
    export_history_to_csv,
    export_timeline_to_csv,
    history_to_dataframe,
    timeline_to_dataframe,
)
from holdings_ledger.models import Filer


@pytest.fixture
def filer(store, make_filing):
    store.upsert_quarterly_report(
        make_filing("25Q1", [("037833100", "APPLE INC", 100, 10), ("060505104", "BANK OF AMERICA", 50, 5)])
    )
    store.upsert_quarterly_report(make_filing("25Q2", [("037833100", "APPLE INC", 200, 20)]))
    return store.get_filer("0001067983")


class TestHistoryExport:
    def test_dataframe(self, filer):
        df = history_to_dataframe(filer)
        assert list(df.columns) == HOLDING_COLUMNS
        # 25Q2: APPLE + exited BAC, 25Q1: APPLE + BAC
        assert len(df) == 4
        assert df.iloc[0]["quarter"] == "25Q2"

    def test_empty_filer(self):
        df = history_to_dataframe(Filer(cik="1", name="EMPTY LLC"))
        assert df.empty
        assert list(df.columns) == HOLDING_COLUMNS

    def test_csv(self, filer, tmp_path):
        path = export_history_to_csv(filer, tmp_path / "out")
        assert path.name == "0001067983_holdings.csv"

        df = pd.read_csv(path, dtype={"cusip": str})
        assert set(df["change_type"]) == {"NEW", "INCREASED", "EXITED"}
        assert "037833100" in set(df["cusip"])


class TestTimelineExport:
    def test_wide_columns(self, store, filer):
        timeline = store.holdings_timeline(filer.cik, 2)
        df = timeline_to_dataframe(timeline)
        assert list(df.columns) == [
            "cusip",
            "issuer_name",
            "ticker",
            "sector",
            "value_25Q2",
            "change_25Q2",
            "value_25Q1",
            "change_25Q1",
        ]
        apple = df[df["cusip"] == "037833100"].iloc[0]
        assert apple["value_25Q2"] == 200
        assert apple["change_25Q2"] == "INCREASED"

    def test_csv(self, store, filer, tmp_path):
        timeline = store.holdings_timeline(filer.cik, 2)
        path = export_timeline_to_csv(timeline, tmp_path)
        assert path.name == "0001067983_timeline.csv"
        assert path.exists()
